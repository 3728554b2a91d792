"""
Key moment extraction for replay navigation.

Builds a chronological stream of notable events for one participant:
  - Kills (the player's first kill inside two minutes is First Blood)
  - Deaths
  - Multi-kills (Double / Triple / Ultra Kill / RAMPAGE)
  - Objectives taken by the player's team, plus every Roshan kill
  - Major item purchases
  - Comebacks (large gold swings from behind)
  - Team fights (bursts of the player's kills and deaths)

The top moments are picked by a score of importance plus a per-type bonus
and returned in time order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from dotacoach.analysis.models import (
    Importance,
    KeyMoment,
    MatchRecord,
    MomentMetadata,
    MomentType,
    ParticipantRecord,
    TeamSide,
)
from dotacoach.core.config import MomentsConfig
from dotacoach.core.items import format_item_key, is_major_purchase

logger = logging.getLogger(__name__)

FIRST_BLOOD_TITLE = "First Blood!"
ROSHAN_TITLE = "Roshan Slain"

STREAK_NAMES = {2: "Double Kill", 3: "Triple Kill", 4: "Ultra Kill"}

# Steam client launch URL for Dota 2 replays
REPLAY_URL_BASE = "steam://rungame/570/76561202255233023/"
MATCH_PAGE_URL = "https://www.opendota.com/matches/{match_id}"


@dataclass
class KeyMomentsAnalysis:
    match_id: str
    duration: float
    moments: list[KeyMoment] = field(default_factory=list)
    top_moments: list[KeyMoment] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_id": self.match_id,
            "duration": self.duration,
            "moments": [m.to_dict() for m in self.moments],
            "top_moments": [m.to_dict() for m in self.top_moments],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KeyMomentsAnalysis:
        return cls(
            match_id=str(data.get("match_id", "")),
            duration=data.get("duration", 0),
            moments=[KeyMoment.from_dict(m) for m in data.get("moments", [])],
            top_moments=[KeyMoment.from_dict(m) for m in data.get("top_moments", [])],
        )


def streak_name(count: int) -> str:
    if count >= 5:
        return "RAMPAGE"
    return STREAK_NAMES.get(count, "Double Kill")


def replay_deep_link(match_id: str | int, timestamp: float | None = None) -> str:
    """Steam URL that downloads the replay and starts playback, optionally at a time."""
    link = f"{REPLAY_URL_BASE}+download_match {match_id} +playdemo replays/{match_id}.dem"
    if timestamp is not None:
        link += f" {int(timestamp)}"
    return link


def match_page_link(match_id: str | int) -> str:
    return MATCH_PAGE_URL.format(match_id=match_id)


def score_moment(moment: KeyMoment, config: MomentsConfig | None = None) -> int:
    """Ranking score: importance base plus type bonuses."""
    config = config or MomentsConfig()
    score = config.importance_scores.get(moment.importance.value, 0)
    score += config.type_bonuses.get(moment.type.value, 0)
    if moment.type is MomentType.OBJECTIVE and moment.title == ROSHAN_TITLE:
        score += config.roshan_bonus
    if moment.title == FIRST_BLOOD_TITLE:
        score += config.first_blood_bonus
    return score


def rank_moments(moments: list[KeyMoment], count: int = 5, config: MomentsConfig | None = None) -> list[KeyMoment]:
    """Top ``count`` moments by score, returned in time order.

    Ties in score go to the earlier moment.
    """
    by_time = sorted(moments, key=lambda m: m.timestamp)
    ranked = sorted(by_time, key=lambda m: score_moment(m, config), reverse=True)
    return sorted(ranked[:count], key=lambda m: m.timestamp)


class KeyMomentExtractor:
    """Derives and ranks key moments for one participant of a match."""

    def __init__(self, config: MomentsConfig | None = None):
        self.config = config or MomentsConfig()

    def extract(self, match: MatchRecord, participant: ParticipantRecord) -> KeyMomentsAnalysis:
        moments: list[KeyMoment] = []
        moments.extend(self._kills(match, participant))
        moments.extend(self._deaths(participant))
        moments.extend(self._multikills(participant))
        moments.extend(self._objectives(match, participant))
        moments.extend(self._purchases(participant))
        moments.extend(self._comebacks(match, participant))
        moments.extend(self._team_fights(participant))

        moments = [self._clamp(m, match.duration) for m in moments]
        moments.sort(key=lambda m: m.timestamp)
        top = rank_moments(moments, self.config.top_moments, self.config)

        logger.debug(f"Extracted {len(moments)} key moment(s) for match {match.match_id}")
        return KeyMomentsAnalysis(
            match_id=match.match_id,
            duration=match.duration,
            moments=moments,
            top_moments=top,
        )

    @staticmethod
    def _clamp(moment: KeyMoment, duration: float) -> KeyMoment:
        if 0 <= moment.timestamp <= duration:
            return moment
        return KeyMoment(
            timestamp=min(max(moment.timestamp, 0.0), duration),
            type=moment.type,
            title=moment.title,
            description=moment.description,
            importance=moment.importance,
            metadata=moment.metadata,
        )

    def _kills(self, match: MatchRecord, participant: ParticipantRecord) -> list[KeyMoment]:
        if participant.kills_log is None:
            return []
        moments = []
        for index, kill in enumerate(participant.kills_log):
            first_blood = index == 0 and kill.time < self.config.first_blood_window_seconds
            victim = match.hero_name_for(kill.victim)
            moments.append(
                KeyMoment(
                    timestamp=kill.time,
                    type=MomentType.KILL,
                    title=FIRST_BLOOD_TITLE if first_blood else "Kill",
                    description=f"Killed {victim}",
                    importance=Importance.HIGH if first_blood else Importance.MEDIUM,
                    metadata=MomentMetadata(hero_killed=victim),
                )
            )
        return moments

    def _deaths(self, participant: ParticipantRecord) -> list[KeyMoment]:
        death_times = participant.death_times()
        if death_times is None:
            return []
        return [
            KeyMoment(
                timestamp=t,
                type=MomentType.DEATH,
                title="Death",
                description=f"Died (Death #{n})",
                importance=Importance.HIGH if n <= self.config.high_importance_deaths else Importance.MEDIUM,
            )
            for n, t in enumerate(death_times, start=1)
        ]

    def _multikills(self, participant: ParticipantRecord) -> list[KeyMoment]:
        kill_times = participant.kill_times()
        if not kill_times:
            return []
        kills = sorted(kill_times)
        gap = self.config.multikill_gap_seconds
        moments = []

        i = 0
        while i < len(kills) - 1:
            if kills[i + 1] - kills[i] > gap:
                i += 1
                continue
            j = i + 1
            while j + 1 < len(kills) and kills[j + 1] - kills[j] <= gap:
                j += 1
            count = j - i + 1
            name = streak_name(count)
            moments.append(
                KeyMoment(
                    timestamp=kills[i],
                    type=MomentType.MULTIKILL,
                    title=f"{name}!",
                    description=f"{count} kills in quick succession",
                    importance=Importance.HIGH,
                    metadata=MomentMetadata(kill_streak=count),
                )
            )
            i = j + 1
        return moments

    def _objectives(self, match: MatchRecord, participant: ParticipantRecord) -> list[KeyMoment]:
        if match.objectives is None:
            return []
        moments = []
        for objective in match.objectives:
            ours = objective.side is participant.side
            if not (ours or objective.is_roshan):
                continue
            team_text = "Your team" if ours else "Enemy team"
            if objective.is_roshan:
                title = ROSHAN_TITLE
                description = f"{team_text} slayed Roshan"
            elif objective.key:
                title = objective.key
                description = f"{team_text} destroyed {objective.key}"
            else:
                title = "Objective"
                description = f"{team_text} completed objective"
            moments.append(
                KeyMoment(
                    timestamp=objective.time,
                    type=MomentType.OBJECTIVE,
                    title=title,
                    description=description,
                    importance=Importance.HIGH if objective.is_roshan else Importance.MEDIUM,
                )
            )
        return moments

    def _purchases(self, participant: ParticipantRecord) -> list[KeyMoment]:
        if participant.purchase_log is None:
            return []
        return [
            KeyMoment(
                timestamp=purchase.time,
                type=MomentType.ITEM_PURCHASE,
                title="Major Item",
                description=f"Purchased {format_item_key(purchase.item)}",
                importance=Importance.MEDIUM,
                metadata=MomentMetadata(item_purchased=purchase.item),
            )
            for purchase in participant.purchase_log
            if is_major_purchase(purchase.item)
        ]

    def _comebacks(self, match: MatchRecord, participant: ParticipantRecord) -> list[KeyMoment]:
        if match.radiant_gold_adv is None:
            return []
        cfg = self.config
        sign = 1 if participant.side is TeamSide.RADIANT else -1
        advantage = [sign * v for v in match.radiant_gold_adv]
        moments = []

        for minute in range(cfg.comeback_lookback_minutes, len(advantage)):
            previous = advantage[minute - cfg.comeback_lookback_minutes]
            current = advantage[minute]
            if previous < cfg.comeback_deficit and current > previous + cfg.comeback_swing:
                swing = current - previous
                moments.append(
                    KeyMoment(
                        timestamp=float(minute * 60),
                        type=MomentType.COMEBACK,
                        title="Comeback Moment",
                        description=f"Gold swing: {round(swing / 1000)}k gold gained",
                        importance=Importance.HIGH,
                        metadata=MomentMetadata(gold_swing=swing),
                    )
                )
        return moments

    def _team_fights(self, participant: ParticipantRecord) -> list[KeyMoment]:
        events = (participant.kill_times() or []) + (participant.death_times() or [])
        events.sort()
        cfg = self.config
        window = cfg.team_fight_window_seconds
        need = cfg.team_fight_min_events
        moments = []

        i = 0
        while i <= len(events) - need:
            start = events[i]
            if events[i + need - 1] - start > window:
                i += 1
                continue
            j = i + need
            while j < len(events) and events[j] - start <= window:
                j += 1
            size = j - i
            moments.append(
                KeyMoment(
                    timestamp=start,
                    type=MomentType.TEAM_FIGHT,
                    title="Team Fight",
                    description=f"Major engagement ({size} events in {round(events[j - 1] - start)}s)",
                    importance=Importance.HIGH if size >= cfg.team_fight_high_events else Importance.MEDIUM,
                )
            )
            i = j
        return moments
