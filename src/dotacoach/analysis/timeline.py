"""
Timeline pattern detection.

Three independent scans over one player's timelines:

- death clusters: several deaths packed into a short window
- farm droughts: consecutive minutes of near-zero last hits after the laning phase
- team-fight quality: the first badly played and the first well played fight

Each scan only runs when its input is present; missing telemetry just means
fewer insights.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from dotacoach.analysis.models import (
    Insight,
    InsightCategory,
    InsightType,
    MatchRecord,
    ParticipantRecord,
    Severity,
    TeamFight,
)
from dotacoach.core.config import TimelineConfig

logger = logging.getLogger(__name__)


def format_clock(seconds: float) -> str:
    """Game clock as ``M:SS``."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


@dataclass(frozen=True)
class TimelineData:
    """The timeline inputs for one participant; None means not recorded."""

    death_times: tuple[float, ...] | None = None
    lh_t: tuple[int, ...] | None = None
    teamfights: tuple[TeamFight, ...] | None = None
    player_index: int = 0

    @classmethod
    def from_participant(cls, participant: ParticipantRecord, match: MatchRecord) -> TimelineData:
        deaths = participant.death_times()
        return cls(
            death_times=tuple(deaths) if deaths is not None else None,
            lh_t=participant.lh_t,
            teamfights=match.teamfights,
            player_index=participant.fight_index,
        )


class TimelineInsightDetector:
    """Windowed scans over death, last-hit and team-fight timelines."""

    def __init__(self, config: TimelineConfig | None = None):
        self.config = config or TimelineConfig()

    def analyze(self, data: TimelineData) -> list[Insight]:
        insights: list[Insight] = []
        if data.death_times:
            insights.extend(self.death_clusters(data.death_times))
        if data.lh_t is not None:
            insights.extend(self.farm_droughts(data.lh_t))
        if data.teamfights:
            insights.extend(self.teamfight_quality(data.teamfights, data.player_index))
        logger.debug(f"Timeline scans produced {len(insights)} insight(s)")
        return insights

    def death_clusters(self, death_times: tuple[float, ...] | list[float]) -> list[Insight]:
        """Non-overlapping runs of deaths within the cluster window.

        A cluster needs ``death_cluster_size`` deaths inside the window and
        absorbs every later death still within the window of its first death.
        """
        cfg = self.config
        deaths = sorted(death_times)
        insights = []

        i = 0
        while i <= len(deaths) - cfg.death_cluster_size:
            first = deaths[i]
            if deaths[i + cfg.death_cluster_size - 1] - first > cfg.death_cluster_window_seconds:
                i += 1
                continue

            end = i + cfg.death_cluster_size - 1
            while end + 1 < len(deaths) and deaths[end + 1] - first <= cfg.death_cluster_window_seconds:
                end += 1
            count = end - i + 1
            last = deaths[end]

            insights.append(
                Insight(
                    insight_type=InsightType.MISTAKE,
                    category=InsightCategory.POSITIONING,
                    severity=Severity.CRITICAL if count >= cfg.death_cluster_critical_size else Severity.HIGH,
                    title="Death cluster detected",
                    description=(
                        f"You died {count} times between {format_clock(first)} and {format_clock(last)}. "
                        "This suggests tilt or poor decision-making."
                    ),
                    recommendation=(
                        "When you die repeatedly, take a moment to reset mentally. Avoid revenge plays "
                        "and focus on safer farming patterns."
                    ),
                    game_time=first,
                )
            )
            i = end + 1

        return insights

    def farm_droughts(self, lh_t: tuple[int, ...] | list[int]) -> list[Insight]:
        """Runs of low-CS minutes after the laning phase, one insight per run."""
        cfg = self.config
        if len(lh_t) < cfg.drought_min_samples:
            return []

        deltas = [lh_t[m] - lh_t[m - 1] for m in range(1, len(lh_t))]
        run = cfg.drought_run_minutes
        insights = []

        minute = cfg.drought_start_minute
        while minute <= len(deltas) - run:
            window = deltas[minute : minute + run]
            if all(d < cfg.drought_cs_per_minute for d in window):
                insights.append(
                    Insight(
                        insight_type=InsightType.MISSED_OPPORTUNITY,
                        category=InsightCategory.FARM_EFFICIENCY,
                        severity=Severity.MEDIUM,
                        title="Extended farm drought",
                        description=(
                            f"Between {minute}:00 and {minute + run}:00, you averaged less than "
                            f"{cfg.drought_cs_per_minute} CS/min. You secured only {sum(window)} last hits "
                            f"in {run} minutes."
                        ),
                        recommendation=(
                            "Even during active periods, try to find farm between fights. Push out side "
                            "lanes and rotate to jungle camps."
                        ),
                        game_time=float(minute * 60),
                    )
                )
                minute += run
            else:
                minute += 1

        return insights

    def teamfight_quality(self, teamfights: tuple[TeamFight, ...] | list[TeamFight], player_index: int) -> list[Insight]:
        """First poor fight and first excellent fight, if any."""
        cfg = self.config
        poor: Insight | None = None
        great: Insight | None = None

        for fight in teamfights:
            if player_index >= len(fight.players):
                continue
            player = fight.players[player_index]

            if poor is None and player.deaths > 0 and player.damage < cfg.poor_fight_max_damage:
                poor = Insight(
                    insight_type=InsightType.MISTAKE,
                    category=InsightCategory.TEAMFIGHT,
                    severity=Severity.MEDIUM,
                    title="Poor teamfight execution",
                    description=(
                        f"At {format_clock(fight.start)}, you died while dealing only {player.damage:.0f} "
                        "damage in a major teamfight. This suggests poor positioning or premature engagement."
                    ),
                    recommendation=(
                        "In teamfights, position safely and wait for key enemy cooldowns before committing. "
                        "Focus on staying alive while dealing consistent damage."
                    ),
                    game_time=fight.start,
                )

            if (
                great is None
                and player.deaths == 0
                and player.damage > cfg.great_fight_min_damage
                and player.gold_delta > cfg.great_fight_min_gold
            ):
                great = Insight(
                    insight_type=InsightType.GOOD_PLAY,
                    category=InsightCategory.TEAMFIGHT,
                    severity=Severity.LOW,
                    title="Excellent teamfight performance",
                    description=(
                        f"At {format_clock(fight.start)}, you dealt {player.damage:.0f} damage without dying "
                        f"and gained {player.gold_delta:.0f} net worth. Great execution!"
                    ),
                    recommendation=(
                        "This is the kind of teamfight positioning and execution to replicate. "
                        "Analyze what you did right here."
                    ),
                    game_time=fight.start,
                )

            if poor is not None and great is not None:
                break

        return [i for i in (poor, great) if i is not None]
