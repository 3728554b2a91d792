"""Long-term improvement tracking.

Compares a player's recent window of matches against the window before it,
picks out recurring high-severity mistake categories, and suggests a weekly
focus area. Pure functions over match history; callers fetch the rows.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field

from dotacoach.analysis.models import Insight, InsightCategory, Severity, Trend
from dotacoach.analysis.sessions import SessionMatch

logger = logging.getLogger(__name__)

DAY_SECONDS = 86400

# Thresholds for counting a period-over-period change as a signal
WIN_RATE_SIGNAL = 5.0  # percentage points
KDA_SIGNAL = 5.0  # percent
GPM_SIGNAL = 5.0  # percent
MISTAKE_SIGNAL = 10.0  # percent
MIN_SIGNALS = 2

HABIT_SEVERITIES = (Severity.HIGH, Severity.CRITICAL)
MAX_HABITS = 10

FOCUS_AREAS: dict[str, tuple[str, str]] = {
    InsightCategory.POSITIONING.value: (
        "Work on map awareness and safer positioning in teamfights",
        "Reduce positioning-related deaths by 30%",
    ),
    InsightCategory.ITEMIZATION.value: (
        "Focus on building optimal items for each situation",
        "Achieve an item build score of 80+ in the next 3 matches",
    ),
    InsightCategory.FARM_EFFICIENCY.value: (
        "Improve last hitting and farming patterns",
        "Increase average GPM by 50",
    ),
    InsightCategory.VISION.value: (
        "Place more wards and improve map vision control",
        "Place 15+ observer wards per match",
    ),
    InsightCategory.TEAMFIGHT.value: (
        "Better teamfight positioning and ability usage",
        "Improve KDA ratio by 20%",
    ),
    InsightCategory.DECISION_MAKING.value: (
        "Make smarter decisions about when to fight or farm",
        "Reduce critical mistakes by 50%",
    ),
}


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass
class PeriodStats:
    """Aggregates over the matches that started inside one time window."""

    period_start: float
    period_end: float
    total_matches: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    avg_kills: float = 0.0
    avg_deaths: float = 0.0
    avg_assists: float = 0.0
    avg_kda: float = 0.0
    avg_last_hits: float = 0.0
    avg_gpm: float = 0.0
    avg_xpm: float = 0.0
    critical_mistakes: int = 0
    high_mistakes: int = 0
    medium_mistakes: int = 0
    top_mistake_categories: list[tuple[str, int]] = field(default_factory=list)

    @property
    def serious_mistakes(self) -> int:
        return self.critical_mistakes + self.high_mistakes


@dataclass
class Habit:
    """A mistake category that keeps coming back."""

    habit_type: str
    category: str
    occurrences: int
    matches: int
    description: str


@dataclass
class ImprovementMetrics:
    current: PeriodStats
    previous: PeriodStats | None
    win_rate_change: float = 0.0  # percentage points
    kda_change: float = 0.0  # percent
    gpm_change: float = 0.0  # percent
    mistake_reduction: float = 0.0  # percent
    trend: Trend = Trend.STABLE
    habits: list[Habit] = field(default_factory=list)


@dataclass
class FocusArea:
    category: str
    description: str
    goal: str
    current_status: str


# ---------------------------------------------------------------------------
# Functions
# ---------------------------------------------------------------------------


def period_stats(
    matches: list[SessionMatch],
    start: float,
    end: float,
    insights_by_match: dict[str, list[Insight]] | None = None,
) -> PeriodStats:
    """Aggregate the matches whose start time falls in ``[start, end)``."""
    window = [m for m in matches if start <= m.start_time < end]
    stats = PeriodStats(period_start=start, period_end=end)
    if not window:
        return stats

    n = len(window)
    stats.total_matches = n
    stats.wins = sum(1 for m in window if m.won)
    stats.losses = n - stats.wins
    stats.win_rate = stats.wins / n * 100
    stats.avg_kills = sum(m.kills for m in window) / n
    stats.avg_deaths = sum(m.deaths for m in window) / n
    stats.avg_assists = sum(m.assists for m in window) / n
    stats.avg_kda = (stats.avg_kills + stats.avg_assists) / (stats.avg_deaths or 1)
    stats.avg_last_hits = sum(m.last_hits for m in window) / n
    stats.avg_gpm = sum(m.gold_per_min for m in window) / n
    stats.avg_xpm = sum(m.xp_per_min for m in window) / n

    if insights_by_match:
        categories: Counter[str] = Counter()
        for match in window:
            for insight in insights_by_match.get(match.match_id, []):
                if insight.severity is Severity.CRITICAL:
                    stats.critical_mistakes += 1
                elif insight.severity is Severity.HIGH:
                    stats.high_mistakes += 1
                elif insight.severity is Severity.MEDIUM:
                    stats.medium_mistakes += 1
                else:
                    continue
                categories[insight.category.value] += 1
        stats.top_mistake_categories = categories.most_common(5)

    return stats


def _pct_change(current: float, previous: float) -> float:
    if previous <= 0:
        return 0.0
    return (current - previous) / previous * 100


def improvement_trend(
    win_rate_change: float, kda_change: float, gpm_change: float, mistake_reduction: float
) -> Trend:
    """Improving or declining when at least two signals agree."""
    positive = sum(
        [
            win_rate_change > WIN_RATE_SIGNAL,
            kda_change > KDA_SIGNAL,
            gpm_change > GPM_SIGNAL,
            mistake_reduction > MISTAKE_SIGNAL,
        ]
    )
    negative = sum(
        [
            win_rate_change < -WIN_RATE_SIGNAL,
            kda_change < -KDA_SIGNAL,
            gpm_change < -GPM_SIGNAL,
            mistake_reduction < -MISTAKE_SIGNAL,
        ]
    )
    if positive >= MIN_SIGNALS:
        return Trend.IMPROVING
    if negative >= MIN_SIGNALS:
        return Trend.DECLINING
    return Trend.STABLE


def improvement_metrics(
    matches: list[SessionMatch],
    days_back: int = 30,
    now: float | None = None,
    insights_by_match: dict[str, list[Insight]] | None = None,
) -> ImprovementMetrics:
    """Compare the last ``days_back`` days against the window before it."""
    now = time.time() if now is None else now
    split = now - days_back * DAY_SECONDS
    current = period_stats(matches, split, now, insights_by_match)
    previous = period_stats(matches, split - days_back * DAY_SECONDS, split, insights_by_match)

    # Habits only count mistakes from the current window
    window_ids = {m.match_id for m in matches if split <= m.start_time < now}
    window_insights = {
        match_id: insights
        for match_id, insights in (insights_by_match or {}).items()
        if match_id in window_ids
    }
    metrics = ImprovementMetrics(
        current=current,
        previous=previous if previous.total_matches > 0 else None,
        habits=habits_from_insights(window_insights),
    )
    if metrics.previous is None:
        return metrics

    metrics.win_rate_change = current.win_rate - previous.win_rate
    metrics.kda_change = _pct_change(current.avg_kda, previous.avg_kda)
    metrics.gpm_change = _pct_change(current.avg_gpm, previous.avg_gpm)
    metrics.mistake_reduction = (
        (previous.serious_mistakes - current.serious_mistakes) / (previous.serious_mistakes or 1) * 100
    )
    metrics.trend = improvement_trend(
        metrics.win_rate_change, metrics.kda_change, metrics.gpm_change, metrics.mistake_reduction
    )
    logger.debug(f"Improvement trend over {days_back}d: {metrics.trend.value}")
    return metrics


def habits_from_insights(insights_by_match: dict[str, list[Insight]]) -> list[Habit]:
    """Categories with high or critical insights, most frequent first."""
    occurrences: Counter[str] = Counter()
    match_counts: Counter[str] = Counter()
    for insights in insights_by_match.values():
        seen = set()
        for insight in insights:
            if insight.severity not in HABIT_SEVERITIES:
                continue
            occurrences[insight.category.value] += 1
            seen.add(insight.category.value)
        match_counts.update(seen)

    return [
        Habit(
            habit_type=f"recurring_{category}_issues",
            category=category,
            occurrences=count,
            matches=match_counts[category],
            description=f"Repeated {category} mistakes detected in recent matches",
        )
        for category, count in occurrences.most_common(MAX_HABITS)
    ]


def weekly_focus_area(
    matches: list[SessionMatch],
    insights_by_match: dict[str, list[Insight]] | None = None,
    now: float | None = None,
) -> FocusArea:
    """One category to work on this week, from the last seven days of mistakes."""
    now = time.time() if now is None else now
    week = period_stats(matches, now - 7 * DAY_SECONDS, now, insights_by_match)

    if not week.top_mistake_categories:
        return FocusArea(
            category="general",
            description="Keep playing more matches to identify areas for improvement",
            goal="Complete 5 matches this week",
            current_status=f"{week.total_matches} matches played in the last 7 days",
        )

    category, count = week.top_mistake_categories[0]
    description, goal = FOCUS_AREAS[category]
    return FocusArea(
        category=category,
        description=description,
        goal=goal,
        current_status=f"{count} {category} mistakes in last 7 days",
    )
