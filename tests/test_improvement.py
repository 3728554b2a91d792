"""Tests for long-term improvement tracking."""

import pytest

from dotacoach.analysis.improvement import (
    habits_from_insights,
    improvement_metrics,
    improvement_trend,
    period_stats,
    weekly_focus_area,
)
from dotacoach.analysis.models import Insight, InsightCategory, InsightType, Severity, Trend
from dotacoach.analysis.sessions import SessionMatch

DAY = 86400
NOW = 1_700_000_000


def _make_match(days_ago: float, won: bool, **overrides) -> SessionMatch:
    fields = dict(
        match_id=f"m{days_ago}",
        won=won,
        kills=5,
        deaths=5,
        assists=5,
        gold_per_min=450,
        start_time=int(NOW - days_ago * DAY),
        duration=2400,
    )
    fields.update(overrides)
    return SessionMatch(**fields)


def _insight(category: InsightCategory, severity: Severity = Severity.HIGH) -> Insight:
    return Insight(InsightType.MISTAKE, category, severity, "t", "d", "r")


class TestPeriodStats:
    def test_window_aggregates(self):
        matches = [
            _make_match(1, True, kills=10, deaths=2, assists=8, gold_per_min=600, last_hits=250),
            _make_match(2, False, kills=2, deaths=6, assists=4, gold_per_min=400, last_hits=150),
            _make_match(40, True),
        ]
        stats = period_stats(matches, NOW - 30 * DAY, NOW)

        assert stats.total_matches == 2
        assert stats.win_rate == pytest.approx(50)
        assert stats.avg_gpm == pytest.approx(500)
        assert stats.avg_last_hits == pytest.approx(200)
        # (6 + 6) / 4
        assert stats.avg_kda == pytest.approx(3.0)

    def test_empty_window(self):
        stats = period_stats([], NOW - DAY, NOW)
        assert stats.total_matches == 0
        assert stats.win_rate == 0.0

    def test_mistake_counts(self):
        matches = [_make_match(1, True)]
        insights = {
            matches[0].match_id: [
                _insight(InsightCategory.POSITIONING, Severity.CRITICAL),
                _insight(InsightCategory.POSITIONING, Severity.HIGH),
                _insight(InsightCategory.VISION, Severity.MEDIUM),
                _insight(InsightCategory.TEAMFIGHT, Severity.LOW),
            ]
        }
        stats = period_stats(matches, NOW - DAY * 2, NOW, insights)

        assert (stats.critical_mistakes, stats.high_mistakes, stats.medium_mistakes) == (1, 1, 1)
        assert stats.top_mistake_categories == [("positioning", 2), ("vision", 1)]


class TestTrend:
    def test_two_positive_signals(self):
        assert improvement_trend(10, 6, 0, 0) is Trend.IMPROVING

    def test_single_signal_is_stable(self):
        assert improvement_trend(20, 0, 0, 0) is Trend.STABLE

    def test_two_negative_signals(self):
        assert improvement_trend(-10, 0, -8, 0) is Trend.DECLINING


class TestImprovementMetrics:
    def test_no_previous_period(self):
        metrics = improvement_metrics([_make_match(1, True)], days_back=30, now=NOW)
        assert metrics.previous is None
        assert metrics.trend is Trend.STABLE

    def test_improving_player(self):
        matches = [_make_match(35 + i, False, kills=2, deaths=8, gold_per_min=380) for i in range(4)]
        matches += [_make_match(1 + i, True, kills=8, deaths=3, gold_per_min=520) for i in range(4)]
        metrics = improvement_metrics(matches, days_back=30, now=NOW)

        assert metrics.previous.total_matches == 4
        assert metrics.win_rate_change == pytest.approx(100)
        assert metrics.gpm_change > 5
        assert metrics.trend is Trend.IMPROVING

    def test_habits_only_from_current_window(self):
        recent = _make_match(2, False)
        old = _make_match(45, False)
        insights = {
            recent.match_id: [_insight(InsightCategory.VISION)],
            old.match_id: [_insight(InsightCategory.POSITIONING), _insight(InsightCategory.POSITIONING)],
            "not-in-history": [_insight(InsightCategory.TEAMFIGHT, Severity.CRITICAL)],
        }
        metrics = improvement_metrics([old, recent], days_back=30, now=NOW, insights_by_match=insights)

        assert [h.category for h in metrics.habits] == ["vision"]
        assert metrics.habits[0].matches == 1


class TestHabitsAndFocus:
    def test_habits(self):
        insights = {
            "a": [_insight(InsightCategory.POSITIONING), _insight(InsightCategory.POSITIONING)],
            "b": [_insight(InsightCategory.POSITIONING), _insight(InsightCategory.VISION, Severity.CRITICAL)],
            "c": [_insight(InsightCategory.ITEMIZATION, Severity.MEDIUM)],
        }
        habits = habits_from_insights(insights)

        assert [h.category for h in habits] == ["positioning", "vision"]
        assert habits[0].occurrences == 3
        assert habits[0].matches == 2
        assert habits[0].habit_type == "recurring_positioning_issues"

    def test_focus_area_without_data(self):
        focus = weekly_focus_area([_make_match(1, True)], now=NOW)
        assert focus.category == "general"
        assert "1 matches" in focus.current_status

    def test_focus_area_from_recent_mistakes(self):
        recent = _make_match(2, False)
        old = _make_match(20, False)
        insights = {
            recent.match_id: [_insight(InsightCategory.VISION), _insight(InsightCategory.VISION)],
            old.match_id: [_insight(InsightCategory.POSITIONING)] * 5,
        }
        focus = weekly_focus_area([recent, old], insights, now=NOW)

        assert focus.category == "vision"
        assert focus.goal == "Place 15+ observer wards per match"
        assert focus.current_status == "2 vision mistakes in last 7 days"
