"""Tests for key moment extraction and ranking."""

from dotacoach.analysis.highlights import (
    FIRST_BLOOD_TITLE,
    ROSHAN_TITLE,
    KeyMomentExtractor,
    KeyMomentsAnalysis,
    rank_moments,
    replay_deep_link,
    score_moment,
    streak_name,
)
from dotacoach.analysis.models import (
    Importance,
    KeyMoment,
    KillEvent,
    MatchRecord,
    MomentType,
    ObjectiveEvent,
    ParticipantRecord,
    PurchaseEvent,
)


def _make_kills(*times) -> tuple[KillEvent, ...]:
    return tuple(KillEvent(time=t, victim="npc_dota_hero_crystal_maiden") for t in times)


def _make_match(participant: ParticipantRecord, **overrides) -> MatchRecord:
    fields = dict(match_id="7000000001", duration=2400, radiant_win=True, participants=(participant,))
    fields.update(overrides)
    return MatchRecord(**fields)


def _moment(timestamp, importance=Importance.MEDIUM, type=MomentType.KILL, title="Kill") -> KeyMoment:
    return KeyMoment(timestamp=timestamp, type=type, title=title, description="", importance=importance)


def _of_type(analysis: KeyMomentsAnalysis, moment_type: MomentType) -> list[KeyMoment]:
    return [m for m in analysis.moments if m.type is moment_type]


class TestKills:
    """Test kill and multikill moments."""

    def test_first_blood(self):
        participant = ParticipantRecord(player_slot=0, hero_id=1, kills_log=_make_kills(100, 700))
        kills = _of_type(KeyMomentExtractor().extract(_make_match(participant), participant), MomentType.KILL)

        assert kills[0].title == FIRST_BLOOD_TITLE
        assert kills[0].importance is Importance.HIGH
        assert kills[0].description == "Killed Crystal Maiden"
        assert kills[1].title == "Kill"
        assert kills[1].importance is Importance.MEDIUM

    def test_late_first_kill_is_not_first_blood(self):
        participant = ParticipantRecord(player_slot=0, hero_id=1, kills_log=_make_kills(200))
        kills = _of_type(KeyMomentExtractor().extract(_make_match(participant), participant), MomentType.KILL)
        assert kills[0].title == "Kill"

    def test_triple_kill(self):
        """Kills 10s and 15s apart chain; the kill at 300 stands alone."""
        participant = ParticipantRecord(player_slot=0, hero_id=1, kills_log=_make_kills(100, 110, 125, 300))
        analysis = KeyMomentExtractor().extract(_make_match(participant), participant)
        multikills = _of_type(analysis, MomentType.MULTIKILL)

        assert len(multikills) == 1
        assert multikills[0].timestamp == 100
        assert multikills[0].title == "Triple Kill!"
        assert multikills[0].metadata.kill_streak == 3

    def test_streak_names(self):
        assert streak_name(2) == "Double Kill"
        assert streak_name(4) == "Ultra Kill"
        assert streak_name(5) == "RAMPAGE"
        assert streak_name(7) == "RAMPAGE"


class TestOtherMoments:
    """Test deaths, objectives, purchases, comebacks and fights."""

    def test_deaths_from_life_state(self):
        life_state = (0, 2, 0, 2, 0, 2, 0, 2, 2)
        participant = ParticipantRecord(player_slot=0, hero_id=1, life_state=life_state)
        deaths = _of_type(KeyMomentExtractor().extract(_make_match(participant), participant), MomentType.DEATH)

        assert [d.timestamp for d in deaths] == [60, 180, 300, 420]
        assert [d.importance for d in deaths] == [Importance.HIGH] * 3 + [Importance.MEDIUM]
        assert deaths[3].description == "Died (Death #4)"

    def test_objectives(self):
        """Own-team objectives and every Roshan kill are included."""
        participant = ParticipantRecord(player_slot=0, hero_id=1)
        objectives = (
            ObjectiveEvent(time=600, type="building_kill", team=2, key="npc_dota_badguys_tower1_mid"),
            ObjectiveEvent(time=700, type="building_kill", team=3, key="npc_dota_goodguys_tower1_top"),
            ObjectiveEvent(time=1500, type="CHAT_MESSAGE_ROSHAN_KILL", team=3),
        )
        match = _make_match(participant, objectives=objectives)
        moments = _of_type(KeyMomentExtractor().extract(match, participant), MomentType.OBJECTIVE)

        assert [m.timestamp for m in moments] == [600, 1500]
        assert moments[1].title == ROSHAN_TITLE
        assert moments[1].description == "Enemy team slayed Roshan"
        assert moments[1].importance is Importance.HIGH

    def test_major_purchases(self):
        log = (PurchaseEvent(time=60, item="tango"), PurchaseEvent(time=900, item="black_king_bar"))
        participant = ParticipantRecord(player_slot=0, hero_id=1, purchase_log=log)
        moments = _of_type(KeyMomentExtractor().extract(_make_match(participant), participant), MomentType.ITEM_PURCHASE)

        assert len(moments) == 1
        assert moments[0].description == "Purchased Black King Bar"
        assert moments[0].metadata.item_purchased == "black_king_bar"

    def test_comeback_for_radiant(self):
        gold = (0, -1000, -3500, -4000, -4000, -4000, -4000, 2000)
        radiant = ParticipantRecord(player_slot=0, hero_id=1)
        dire = ParticipantRecord(player_slot=128, hero_id=2)
        match = _make_match(radiant, participants=(radiant, dire), radiant_gold_adv=gold)

        comebacks = _of_type(KeyMomentExtractor().extract(match, radiant), MomentType.COMEBACK)
        assert [m.timestamp for m in comebacks] == [420]
        assert comebacks[0].metadata.gold_swing == 5500

        assert _of_type(KeyMomentExtractor().extract(match, dire), MomentType.COMEBACK) == []

    def test_team_fight_from_kill_and_death_events(self):
        participant = ParticipantRecord(
            player_slot=0, hero_id=1, kills_log=_make_kills(100, 110), life_state=(0, 0, 2)
        )
        fights = _of_type(KeyMomentExtractor().extract(_make_match(participant), participant), MomentType.TEAM_FIGHT)
        assert len(fights) == 1
        assert fights[0].timestamp == 100
        assert fights[0].importance is Importance.MEDIUM

    def test_timestamps_clamped_to_match(self):
        log = (PurchaseEvent(time=-30, item="blink"), PurchaseEvent(time=9999, item="butterfly"))
        participant = ParticipantRecord(player_slot=0, hero_id=1, purchase_log=log)
        analysis = KeyMomentExtractor().extract(_make_match(participant), participant)
        assert [m.timestamp for m in analysis.moments] == [0, 2400]

    def test_missing_telemetry(self):
        participant = ParticipantRecord(player_slot=0, hero_id=1)
        analysis = KeyMomentExtractor().extract(_make_match(participant), participant)
        assert analysis.moments == []
        assert analysis.top_moments == []


class TestRanking:
    """Test scoring and top-N selection."""

    def test_score(self):
        assert score_moment(_moment(0, Importance.HIGH, MomentType.MULTIKILL, "Triple Kill!")) == 18
        assert score_moment(_moment(0, Importance.HIGH, MomentType.OBJECTIVE, ROSHAN_TITLE)) == 15
        assert score_moment(_moment(0, Importance.HIGH, MomentType.KILL, FIRST_BLOOD_TITLE)) == 15
        assert score_moment(_moment(0, Importance.LOW)) == 2

    def test_top_moments_in_time_order(self):
        moments = [
            _moment(900, Importance.LOW),
            _moment(600, Importance.HIGH, MomentType.MULTIKILL),
            _moment(300, Importance.HIGH),
        ]
        top = rank_moments(moments, count=2)
        assert [m.timestamp for m in top] == [300, 600]

    def test_ties_go_to_earlier_moment(self):
        top = rank_moments([_moment(50), _moment(10), _moment(30)], count=1)
        assert top[0].timestamp == 10

    def test_ranking_is_idempotent(self):
        moments = [_moment(t, imp) for t, imp in [(5, Importance.LOW), (7, Importance.HIGH), (3, Importance.MEDIUM)]]
        once = rank_moments(moments, count=2)
        assert rank_moments(once, count=2) == once

    def test_round_trip(self):
        participant = ParticipantRecord(player_slot=0, hero_id=1, kills_log=_make_kills(100, 110))
        analysis = KeyMomentExtractor().extract(_make_match(participant), participant)
        restored = KeyMomentsAnalysis.from_dict(analysis.to_dict())
        assert restored == analysis


class TestLinks:
    def test_replay_link(self):
        assert replay_deep_link(123) == (
            "steam://rungame/570/76561202255233023/+download_match 123 +playdemo replays/123.dem"
        )
        assert replay_deep_link("123", 754.6).endswith("replays/123.dem 754")
