"""Tests for play sessions, tilt detection and time-of-day patterns."""

from datetime import timezone

import pytest

from dotacoach.analysis.models import Trend, TiltRisk, WarningSeverity, WarningType
from dotacoach.analysis.sessions import (
    NOT_ENOUGH_DATA,
    SessionMatch,
    SessionTiltAnalyzer,
    group_sessions,
    longest_losing_streak,
    resolve_timezone,
    session_trend,
    time_period,
)
from dotacoach.core.config import SessionConfig

HOUR = 3600
DAY = 86400
# Tuesday 2023-11-14 12:00 UTC
NOON = 1_699_963_200


def _make_match(start_time: int, won: bool = True, duration: float = 2400, **overrides) -> SessionMatch:
    fields = dict(
        match_id=str(start_time),
        won=won,
        kills=5,
        deaths=5,
        assists=10,
        gold_per_min=450,
        start_time=start_time,
        duration=duration,
    )
    fields.update(overrides)
    return SessionMatch(**fields)


def _analyzer(**overrides) -> SessionTiltAnalyzer:
    return SessionTiltAnalyzer(SessionConfig(timezone="UTC", **overrides))


class TestGroupSessions:
    """Test gap-based session partitioning."""

    def test_overlapping_then_gap(self):
        matches = [_make_match(NOON + offset, duration=1500) for offset in (0, 1000, 10000)]
        sessions = group_sessions(matches)

        assert len(sessions) == 2
        assert [len(s.matches) for s in sessions] == [2, 1]
        assert [s.session_id for s in sessions] == ["session-1", "session-2"]

    def test_gap_measured_from_previous_end(self):
        """Starts 80 minutes apart but only 40 minutes between end and start."""
        matches = [_make_match(NOON), _make_match(NOON + 80 * 60)]
        assert len(group_sessions(matches)) == 1

    def test_custom_gap(self):
        matches = [_make_match(NOON), _make_match(NOON + 80 * 60)]
        assert len(group_sessions(matches, SessionConfig(gap_minutes=30))) == 2

    def test_unsorted_input(self):
        matches = [_make_match(NOON + DAY), _make_match(NOON)]
        sessions = group_sessions(matches)
        assert sessions[0].start_time == NOON

    def test_empty(self):
        assert group_sessions([]) == []

    def test_session_stats(self):
        matches = [
            _make_match(NOON, won=True, gold_per_min=400),
            _make_match(NOON + HOUR, won=False, gold_per_min=500),
            _make_match(NOON + 2 * HOUR, won=False, gold_per_min=600),
        ]
        stats = group_sessions(matches)[0].stats

        assert (stats.total_matches, stats.wins, stats.losses) == (3, 1, 2)
        assert stats.win_rate == pytest.approx(100 / 3)
        assert stats.avg_gpm == pytest.approx(500)
        assert stats.avg_kda == pytest.approx(3.0)
        assert stats.longest_losing_streak == 2


class TestStreaksAndTrend:
    def test_longest_losing_streak(self):
        results = [False, True, False, False, False, True, False]
        matches = [_make_match(NOON + i * HOUR, won=w) for i, w in enumerate(results)]
        assert longest_losing_streak(matches) == 3

    def test_improving(self):
        matches = [_make_match(NOON + i * HOUR, won=w) for i, w in enumerate([False, False, True, True])]
        assert session_trend(matches) is Trend.IMPROVING

    def test_declining(self):
        matches = [_make_match(NOON + i * HOUR, won=w) for i, w in enumerate([True, True, False, False])]
        assert session_trend(matches) is Trend.DECLINING

    def test_too_few_matches_is_stable(self):
        matches = [_make_match(NOON + i * HOUR, won=w) for i, w in enumerate([False, True, True])]
        assert session_trend(matches) is Trend.STABLE


class TestPlaySessions:
    def test_most_recent_first_within_lookback(self):
        matches = [_make_match(NOON - 40 * DAY), _make_match(NOON - 2 * DAY), _make_match(NOON)]
        sessions = _analyzer().get_play_sessions(matches, now=NOON + HOUR)

        assert [s.start_time for s in sessions] == [NOON, NOON - 2 * DAY]

    def test_custom_days_back(self):
        matches = [_make_match(NOON - 2 * DAY), _make_match(NOON)]
        sessions = _analyzer().get_play_sessions(matches, days_back=1, now=NOON + HOUR)
        assert len(sessions) == 1


class TestTiltReport:
    """Test streak-based tilt risk and warnings."""

    def test_five_losses_is_high_risk(self):
        matches = [_make_match(NOON + i * DAY, won=False) for i in range(5)]
        report = _analyzer().get_tilt_report(matches, now=NOON + 5 * DAY)

        assert report.current_tilt_risk is TiltRisk.HIGH
        assert report.recent_losing_streak == 5
        assert report.last_match_won is False
        streak = report.active_warnings[0]
        assert streak.type is WarningType.LOSING_STREAK
        assert streak.severity is WarningSeverity.DANGER

    def test_three_losses_is_medium_risk(self):
        results = [True, True, False, False, False]
        matches = [_make_match(NOON + i * DAY, won=w) for i, w in enumerate(results)]
        report = _analyzer().get_tilt_report(matches, now=NOON + 5 * DAY)

        assert report.current_tilt_risk is TiltRisk.MEDIUM
        assert report.recent_losing_streak == 3
        assert report.active_warnings[0].severity is WarningSeverity.WARNING

    def test_win_resets_streak(self):
        results = [False, False, False, False, True]
        matches = [_make_match(NOON + i * DAY, won=w) for i, w in enumerate(results)]
        report = _analyzer().get_tilt_report(matches, now=NOON + 5 * DAY)

        assert report.recent_losing_streak == 0
        assert report.current_tilt_risk is TiltRisk.LOW
        assert report.last_match_won is True

    def test_empty_history(self):
        report = _analyzer().get_tilt_report([])
        assert report.current_tilt_risk is TiltRisk.LOW
        assert report.last_match_won is None
        assert report.patterns == {
            "performance_after_loss": 50.0,
            "late_night_win_rate": 50.0,
            "long_session_win_rate": 50.0,
        }

    def test_long_session_warning(self):
        """Games four and five of a session were both lost."""
        results = [True, True, True, False, False]
        matches = [_make_match(NOON + i * HOUR, won=w) for i, w in enumerate(results)]
        report = _analyzer().get_tilt_report(matches, now=NOON + DAY)

        assert report.long_session_win_rate == 0.0
        assert WarningType.LONG_SESSION in [w.type for w in report.active_warnings]

    def test_late_night_warning(self):
        late = NOON - 11 * HOUR  # 01:00 UTC
        matches = [_make_match(late + i * DAY, won=w) for i, w in enumerate([False, False, True, False])]
        matches.append(_make_match(NOON + 4 * DAY, won=True))
        report = _analyzer().get_tilt_report(matches, now=NOON + 5 * DAY)

        assert report.late_night_win_rate == 25.0
        assert [w.type for w in report.active_warnings] == [WarningType.LATE_NIGHT]
        assert report.current_tilt_risk is TiltRisk.LOW

    def test_to_dict(self):
        matches = [_make_match(NOON + i * DAY, won=False) for i in range(3)]
        data = _analyzer().get_tilt_report(matches, now=NOON + 3 * DAY).to_dict()
        assert data["current_tilt_risk"] == "medium"
        assert data["active_warnings"][0]["type"] == "losing_streak"
        assert set(data["patterns"]) == {"performance_after_loss", "late_night_win_rate", "long_session_win_rate"}


class TestTiltPatterns:
    def test_performance_after_loss(self):
        results = [False, True, False, False, True]
        matches = [_make_match(NOON + i * DAY, won=w) for i, w in enumerate(results)]
        assert _analyzer().performance_after_loss(matches) == pytest.approx(200 / 3)

    def test_performance_after_loss_without_losses(self):
        matches = [_make_match(NOON + i * DAY) for i in range(3)]
        assert _analyzer().performance_after_loss(matches) is None

    def test_late_night_win_rate(self):
        late = NOON - 11 * HOUR
        matches = [_make_match(late + i * DAY, won=w) for i, w in enumerate([True, False, False])]
        assert _analyzer().late_night_win_rate(matches) == pytest.approx(100 / 3)

    def test_late_night_needs_three_matches(self):
        late = NOON - 11 * HOUR
        matches = [_make_match(late), _make_match(late + DAY)]
        assert _analyzer().late_night_win_rate(matches) is None

    def test_even_late_night_split_does_not_warn(self):
        late = NOON - 11 * HOUR
        matches = [_make_match(late + i * DAY, won=w) for i, w in enumerate([False, True, False, True])]
        report = _analyzer().get_tilt_report(matches, now=NOON + 4 * DAY)
        assert report.late_night_win_rate == 50.0
        assert report.active_warnings == []


class TestTimeBuckets:
    """Test time-of-day and day-of-week aggregates."""

    def test_time_of_day_needs_history(self):
        stats = _analyzer().time_of_day_stats([_make_match(NOON)] * 4)
        assert stats.best_time_to_play == NOT_ENOUGH_DATA
        assert all(b.games == 0 for b in stats.periods.values())

    def test_best_time_to_play(self):
        morning = NOON - 4 * HOUR
        evening = NOON + 8 * HOUR
        matches = [_make_match(morning + i * DAY, won=w) for i, w in enumerate([True, True, False])]
        matches += [_make_match(evening + i * DAY, won=True) for i in range(3)]
        stats = _analyzer().time_of_day_stats(matches)

        assert stats.periods["morning"].games == 3
        assert stats.periods["morning"].win_rate == pytest.approx(200 / 3)
        assert stats.periods["evening"].wins == 3
        assert stats.periods["night"].games == 0
        assert stats.best_time_to_play == "Evening"

    def test_small_buckets_never_best(self):
        matches = [_make_match(NOON + i * DAY, won=False) for i in range(4)]
        matches.append(_make_match(NOON + 8 * HOUR, won=True))
        stats = _analyzer().time_of_day_stats(matches)
        assert stats.best_time_to_play == "Afternoon"

    def test_day_of_week(self):
        week = 7 * DAY
        matches = [_make_match(NOON + i * week, won=True) for i in range(3)]  # Tuesdays
        matches += [_make_match(NOON + DAY + i * week, won=False) for i in range(3)]  # Wednesdays
        matches.append(_make_match(NOON + 2 * DAY, won=True))  # Thursday
        stats = _analyzer().day_of_week_stats(matches)

        assert list(stats.days)[0] == "Sunday"
        assert stats.days["Tuesday"].games == 3
        assert stats.days["Thursday"].games == 1
        assert stats.best_day == "Tuesday"
        assert stats.worst_day == "Wednesday"

    def test_day_of_week_needs_history(self):
        stats = _analyzer().day_of_week_stats([_make_match(NOON)] * 6)
        assert stats.best_day == NOT_ENOUGH_DATA
        assert stats.worst_day == NOT_ENOUGH_DATA

    def test_time_period(self):
        assert time_period(0) == "night"
        assert time_period(6) == "morning"
        assert time_period(12) == "afternoon"
        assert time_period(23) == "evening"


class TestTimezone:
    def test_utc(self):
        assert resolve_timezone("UTC") is timezone.utc

    def test_local(self):
        assert resolve_timezone(None) is None

    def test_named_zone_shifts_local_time(self):
        analyzer = SessionTiltAnalyzer(SessionConfig(timezone="Asia/Tokyo"))
        assert analyzer.local_time(NOON).hour == 21
