"""
End-of-match stat rules.

Evaluates a participant's final numbers against role-appropriate thresholds
and, where available, the running benchmark for their hero. Every rule is
independent; several may fire for the same player.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from dotacoach.analysis.models import (
    AnalysisSummary,
    HeroBenchmark,
    Insight,
    InsightCategory,
    InsightType,
    ParticipantRecord,
    Role,
    Severity,
)
from dotacoach.core.config import PerformanceConfig, RoleConfig
from dotacoach.core.roles import classify_role, cs_per_minute

logger = logging.getLogger(__name__)


@dataclass
class PerformanceAnalysis:
    insights: list[Insight] = field(default_factory=list)
    role: Role = Role.SUPPORT


def kda_ratio(kills: int, deaths: int, assists: int) -> float:
    """(K + A) / D, or K + A for a deathless game."""
    if deaths == 0:
        return float(kills + assists)
    return (kills + assists) / deaths


def generate_summary(insights: list[Insight], max_categories: int = 5) -> AnalysisSummary:
    """Count insights per severity and list distinct categories in first-seen order."""
    summary = AnalysisSummary()
    categories: list[str] = []
    for insight in insights:
        if insight.severity is Severity.CRITICAL:
            summary.critical += 1
        elif insight.severity is Severity.HIGH:
            summary.high += 1
        elif insight.severity is Severity.MEDIUM:
            summary.medium += 1
        else:
            summary.low += 1
        if insight.category.value not in categories:
            categories.append(insight.category.value)
    summary.top_categories = categories[:max_categories]
    return summary


class PerformanceInsightDetector:
    """Rule-based insights from final match stats."""

    def __init__(self, config: PerformanceConfig | None = None, role_config: RoleConfig | None = None):
        self.config = config or PerformanceConfig()
        self.role_config = role_config or RoleConfig()

    def analyze(
        self,
        stats: ParticipantRecord,
        duration: float,
        hero_name: str = "",
        benchmark: HeroBenchmark | None = None,
    ) -> PerformanceAnalysis:
        """Run every rule against one participant.

        Args:
            stats: The participant's final stats.
            duration: Match length in seconds.
            hero_name: Used only in insight text.
            benchmark: Hero benchmark; generic constants are used when absent.

        Returns:
            Insights in rule order plus the derived role.
        """
        cfg = self.config
        minutes = duration / 60
        cs_min = cs_per_minute(stats.last_hits, duration)
        role = classify_role(stats.gold_per_min, stats.last_hits, duration, self.role_config)
        kda = kda_ratio(stats.kills, stats.deaths, stats.assists)
        hero_label = hero_name or stats.hero_name or "this hero"

        insights: list[Insight] = []

        if role is Role.CORE:
            insights.extend(self._core_farm(stats, minutes, cs_min, hero_label, benchmark))

        if stats.deaths > cfg.high_deaths:
            insights.append(
                Insight(
                    insight_type=InsightType.MISTAKE,
                    category=InsightCategory.POSITIONING,
                    severity=Severity.CRITICAL if stats.deaths > cfg.critical_deaths else Severity.HIGH,
                    title="High death count",
                    description=f"You died {stats.deaths} times this game. Your KDA ratio is {kda:.2f}.",
                    recommendation=(
                        "Focus on map awareness and positioning. Check the minimap every 3-5 "
                        "seconds and avoid pushing without vision."
                    ),
                )
            )

        if kda < cfg.low_kda and stats.deaths > cfg.low_kda_min_deaths:
            insights.append(
                Insight(
                    insight_type=InsightType.MISTAKE,
                    category=InsightCategory.TEAMFIGHT,
                    severity=Severity.MEDIUM,
                    title="Low KDA ratio",
                    description=(
                        f"Your KDA ratio of {kda:.2f} suggests you're trading your life inefficiently."
                    ),
                    recommendation=(
                        "Position more carefully in fights. Wait for initiators to go first and "
                        "focus on staying alive while dealing damage."
                    ),
                )
            )

        if role is Role.SUPPORT:
            insights.extend(self._support(stats, minutes))

        if stats.hero_damage < cfg.low_hero_damage and minutes > cfg.low_hero_damage_min_minutes:
            insights.append(
                Insight(
                    insight_type=InsightType.MISTAKE,
                    category=InsightCategory.TEAMFIGHT,
                    severity=Severity.MEDIUM,
                    title="Low hero damage output",
                    description=(
                        f"You dealt only {stats.hero_damage} hero damage in a "
                        f"{int(minutes)}-minute game."
                    ),
                    recommendation=(
                        "Participate more actively in teamfights. Position to maximize damage "
                        "output while staying safe."
                    ),
                )
            )

        if kda > cfg.excellent_kda and stats.kills > cfg.excellent_kda_min_kills:
            insights.append(
                Insight(
                    insight_type=InsightType.GOOD_PLAY,
                    category=InsightCategory.TEAMFIGHT,
                    severity=Severity.LOW,
                    title="Excellent KDA ratio",
                    description=f"Great job! Your KDA ratio of {kda:.2f} shows strong performance.",
                    recommendation=(
                        "Keep up this level of efficiency. Focus on closing games faster when ahead."
                    ),
                )
            )

        if role is Role.CORE:
            if benchmark is not None:
                excellent = benchmark.avg_cs_per_min * cfg.excellent_cs_ratio
                comparison = f"well above the {hero_label} average of {benchmark.avg_cs_per_min:.1f} CS/min"
            else:
                excellent = cfg.fallback_excellent_cs_per_min
                comparison = "very strong farming"
            if cs_min > excellent:
                insights.append(
                    Insight(
                        insight_type=InsightType.GOOD_PLAY,
                        category=InsightCategory.FARM_EFFICIENCY,
                        severity=Severity.LOW,
                        title="Excellent farming",
                        description=f"{stats.last_hits} last hits ({cs_min:.1f} CS/min) is {comparison}.",
                        recommendation=(
                            "Convert your farm advantage into objectives. Push towers and control the map."
                        ),
                    )
                )

        logger.debug(f"Performance rules fired {len(insights)} insight(s) for {hero_label} ({role.value})")
        return PerformanceAnalysis(insights=insights, role=role)

    def _core_farm(
        self,
        stats: ParticipantRecord,
        minutes: float,
        cs_min: float,
        hero_label: str,
        benchmark: HeroBenchmark | None,
    ) -> list[Insight]:
        cfg = self.config
        insights = []

        avg_cs = benchmark.avg_cs_per_min if benchmark else cfg.fallback_avg_cs_per_min
        avg_gpm = benchmark.avg_gpm if benchmark else cfg.fallback_avg_gpm

        if cs_min < avg_cs * cfg.low_cs_ratio:
            if benchmark:
                comparison = (
                    f"For {hero_label}, the average is {avg_cs:.1f} CS/min based on "
                    f"{benchmark.total_matches} analyzed matches"
                )
            else:
                comparison = "For a core player, aim for at least 5-6 CS/min"
            insights.append(
                Insight(
                    insight_type=InsightType.MISTAKE,
                    category=InsightCategory.FARM_EFFICIENCY,
                    severity=Severity.HIGH,
                    title="Low last hit count for a core role",
                    description=(
                        f"You only secured {stats.last_hits} last hits in {int(minutes)} minutes "
                        f"({cs_min:.1f} CS/min). {comparison}."
                    ),
                    recommendation=(
                        "Focus on last hitting in lane and use jungle camps between waves. "
                        "Practice last hitting in demo mode."
                    ),
                )
            )

        if stats.gold_per_min < avg_gpm * cfg.low_gpm_ratio:
            if benchmark:
                comparison = (
                    f"for {hero_label}, average GPM is {round(avg_gpm)} based on "
                    f"{benchmark.total_matches} matches"
                )
            else:
                comparison = "target: 500+ for core roles"
            insights.append(
                Insight(
                    insight_type=InsightType.MISTAKE,
                    category=InsightCategory.FARM_EFFICIENCY,
                    severity=Severity.MEDIUM,
                    title="Low gold per minute",
                    description=(
                        f"Your GPM was {stats.gold_per_min:.0f}, which is below average ({comparison})."
                    ),
                    recommendation=(
                        "Minimize downtime between waves and camps. Look for chances to take "
                        "towers and join kills."
                    ),
                )
            )

        return insights

    def _support(self, stats: ParticipantRecord, minutes: float) -> list[Insight]:
        cfg = self.config
        insights = []

        expected_wards = int(minutes // cfg.ward_interval_minutes)
        wards = stats.wards_placed
        if wards is not None and wards < expected_wards * cfg.ward_ratio:
            insights.append(
                Insight(
                    insight_type=InsightType.MISTAKE,
                    category=InsightCategory.VISION,
                    severity=Severity.HIGH,
                    title="Insufficient ward placement",
                    description=(
                        f"You only placed {wards} wards in a {int(minutes)}-minute game. "
                        "As a support, vision control is crucial."
                    ),
                    recommendation=(
                        "Place observer wards every time they come off cooldown. Prioritize "
                        "high-traffic areas and objectives."
                    ),
                )
            )

        if stats.gold_per_min < cfg.support_low_gpm:
            insights.append(
                Insight(
                    insight_type=InsightType.MISSED_OPPORTUNITY,
                    category=InsightCategory.FARM_EFFICIENCY,
                    severity=Severity.LOW,
                    title="Very low GPM for support",
                    description=(
                        f"GPM of {stats.gold_per_min:.0f} is quite low. Even supports need some "
                        "farm for key items."
                    ),
                    recommendation=(
                        "Stack camps for your cores and take bounty runes. Farm empty lanes when "
                        "cores are elsewhere."
                    ),
                )
            )

        return insights
