"""
Match Analysis Orchestrator - per-player analysis pipeline.

Resolves the participant, short-circuits on a cached result, runs the four
single-match components in parallel, merges their insights and hands the
result to the store.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable

from dotacoach.analysis.benchmarks import BenchmarkSample, HeroBenchmarkStore
from dotacoach.analysis.highlights import KeyMomentExtractor, KeyMomentsAnalysis
from dotacoach.analysis.item_build import ItemBuildAnalyzer, ItemBuildResult
from dotacoach.analysis.models import (
    AnalysisSummary,
    HeroBenchmark,
    Insight,
    MatchRecord,
    ParticipantRecord,
    Role,
)
from dotacoach.analysis.performance import PerformanceInsightDetector, generate_summary
from dotacoach.analysis.timeline import TimelineData, TimelineInsightDetector
from dotacoach.core.config import DotaCoachConfig, get_config
from dotacoach.core.errors import DotaCoachError
from dotacoach.core.roles import classify_participant
from dotacoach.pipeline.ports import CoachingTextGenerator, MatchHistorySource, MatchProvider, ResultStore

logger = logging.getLogger(__name__)

RULE_BASED = "rule_based"
COACHING_TEXT = "coaching_text"

PERFORMANCE = "performance"
TIMELINE = "timeline"
ITEM_BUILD = "item_build"
KEY_MOMENTS = "key_moments"


@dataclass
class AnalysisResult:
    """Everything produced for one player in one match."""

    match_id: str
    player_slot: int
    hero_id: int
    hero_name: str
    role: Role
    won: bool
    insights: list[Insight] = field(default_factory=list)
    summary: AnalysisSummary = field(default_factory=AnalysisSummary)
    key_moments: KeyMomentsAnalysis | None = None
    item_build: ItemBuildResult | None = None
    insight_source: str = RULE_BASED
    skipped_components: list[str] = field(default_factory=list)
    missing_telemetry: list[str] = field(default_factory=list)
    player: dict[str, Any] = field(default_factory=dict)
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_id": self.match_id,
            "player_slot": self.player_slot,
            "hero_id": self.hero_id,
            "hero_name": self.hero_name,
            "role": self.role.value,
            "won": self.won,
            "insights": [i.to_dict() for i in self.insights],
            "summary": self.summary.to_dict(),
            "key_moments": self.key_moments.to_dict() if self.key_moments else None,
            "item_build": self.item_build.to_dict() if self.item_build else None,
            "insight_source": self.insight_source,
            "skipped_components": list(self.skipped_components),
            "missing_telemetry": list(self.missing_telemetry),
            "player": dict(self.player),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], cached: bool = False) -> AnalysisResult:
        key_moments = data.get("key_moments")
        item_build = data.get("item_build")
        return cls(
            match_id=str(data["match_id"]),
            player_slot=int(data["player_slot"]),
            hero_id=int(data.get("hero_id", 0)),
            hero_name=data.get("hero_name", ""),
            role=Role(data["role"]),
            won=bool(data.get("won", False)),
            insights=[Insight.from_dict(i) for i in data.get("insights", [])],
            summary=AnalysisSummary.from_dict(data.get("summary", {})),
            key_moments=KeyMomentsAnalysis.from_dict(key_moments) if key_moments else None,
            item_build=ItemBuildResult.from_dict(item_build) if item_build else None,
            insight_source=data.get("insight_source", RULE_BASED),
            skipped_components=list(data.get("skipped_components", [])),
            missing_telemetry=list(data.get("missing_telemetry", [])),
            player=dict(data.get("player", {})),
            cached=cached,
        )


def _player_row(match: MatchRecord, participant: ParticipantRecord, won: bool) -> dict[str, Any]:
    return {
        "hero_id": participant.hero_id,
        "hero_name": participant.hero_name,
        "won": won,
        "kills": participant.kills,
        "deaths": participant.deaths,
        "assists": participant.assists,
        "last_hits": participant.last_hits,
        "denies": participant.denies,
        "hero_damage": participant.hero_damage,
        "gold_per_min": participant.gold_per_min,
        "xp_per_min": participant.xp_per_min,
        "start_time": match.start_time,
        "duration": match.duration,
    }


class AnalysisOrchestrator:
    """
    Composes the single-match analyzers.

    Handles:
    - Participant resolution
    - Cache short-circuit (a hit runs no detectors)
    - Parallel detector execution with per-component failure isolation
    - Coaching-text vs rule-based insight selection
    - Benchmark recording and result persistence
    - Percentile refresh from the stored history of the hero
    """

    def __init__(
        self,
        benchmarks: HeroBenchmarkStore | None = None,
        result_store: ResultStore | None = None,
        coaching: CoachingTextGenerator | None = None,
        provider: MatchProvider | None = None,
        config: DotaCoachConfig | None = None,
        history: MatchHistorySource | None = None,
    ):
        self.config = config or get_config()
        self.benchmarks = benchmarks if benchmarks is not None else HeroBenchmarkStore()
        self.result_store = result_store
        self.coaching = coaching
        self.provider = provider
        self.history = history

        self.performance = PerformanceInsightDetector(self.config.performance, self.config.roles)
        self.timeline = TimelineInsightDetector(self.config.timeline)
        self.item_build = ItemBuildAnalyzer(self.config.items)
        self.key_moments = KeyMomentExtractor(self.config.moments)

    def analyze_match_id(
        self,
        match_id: str,
        player_slot: int | None = None,
        account_id: int | None = None,
        *,
        force: bool = False,
        user_id: str | None = None,
    ) -> AnalysisResult:
        """Fetch a match through the provider, then analyze it."""
        if self.provider is None:
            raise DotaCoachError("No match provider configured")
        match = self.provider.fetch_match(str(match_id))
        return self.analyze_match(match, player_slot, account_id, force=force, user_id=user_id)

    def analyze_match(
        self,
        match: MatchRecord,
        player_slot: int | None = None,
        account_id: int | None = None,
        *,
        force: bool = False,
        user_id: str | None = None,
    ) -> AnalysisResult:
        """
        Analyze one participant of a match.

        Args:
            match: The match record.
            player_slot: Participant slot; takes precedence over account_id.
            account_id: Participant account, used when no slot is given.
            force: Ignore any cached result.
            user_id: Owner recorded with the stored result.

        Returns:
            AnalysisResult; ``cached`` is True when it came from the store.

        Raises:
            ParticipantNotFoundError: No participant matches the selector.
        """
        participant = match.find_participant(player_slot=player_slot, account_id=account_id)

        if self.config.pipeline.use_cache and self.result_store is not None and not force:
            try:
                cached = self.result_store.get_cached_result(match.match_id, participant.player_slot)
                if cached is not None:
                    logger.info(f"Cache hit for match {match.match_id} slot {participant.player_slot}")
                    return AnalysisResult.from_dict(cached, cached=True)
            except Exception as e:
                logger.warning(f"Cache lookup failed, proceeding with analysis: {e}")

        logger.info(f"Analyzing match {match.match_id} slot {participant.player_slot}")
        role = classify_participant(participant, match.duration, self.config.roles)
        won = match.player_won(participant)
        hero_name = participant.hero_name or f"Hero {participant.hero_id}"
        benchmark = self.benchmarks.get_benchmark(participant.hero_id)

        tasks: dict[str, Callable[[], Any]] = {
            PERFORMANCE: lambda: self.performance.analyze(participant, match.duration, hero_name, benchmark),
            TIMELINE: lambda: self.timeline.analyze(TimelineData.from_participant(participant, match)),
            ITEM_BUILD: lambda: self.item_build.analyze_participant(participant, role, match.duration),
            KEY_MOMENTS: lambda: self.key_moments.extract(match, participant),
        }
        outputs, skipped = self._run_components(tasks)

        insights: list[Insight] = []
        source = RULE_BASED
        coaching_insights = self._coaching_insights(match, participant, role, benchmark, skipped)
        if coaching_insights:
            insights.extend(coaching_insights)
            source = COACHING_TEXT
        elif PERFORMANCE in outputs:
            insights.extend(outputs[PERFORMANCE].insights)

        insights.extend(outputs.get(TIMELINE, []))
        item_build: ItemBuildResult | None = outputs.get(ITEM_BUILD)
        if item_build is not None:
            insights.extend(item_build.insights)

        result = AnalysisResult(
            match_id=match.match_id,
            player_slot=participant.player_slot,
            hero_id=participant.hero_id,
            hero_name=hero_name,
            role=role,
            won=won,
            insights=insights,
            summary=generate_summary(insights),
            key_moments=outputs.get(KEY_MOMENTS),
            item_build=item_build,
            insight_source=source,
            skipped_components=skipped,
            missing_telemetry=match.missing_telemetry(participant),
            player=_player_row(match, participant, won),
        )

        if self.config.pipeline.record_benchmarks:
            self._record_benchmark(match, participant)

        if self.result_store is not None:
            try:
                self.result_store.save_result(result.to_dict(), user_id=user_id)
            except Exception as e:
                logger.warning(f"Failed to store analysis for match {match.match_id}: {e}")

        if self.config.pipeline.record_benchmarks:
            self._refresh_percentiles(participant.hero_id)

        return result

    def _run_components(self, tasks: dict[str, Callable[[], Any]]) -> tuple[dict[str, Any], list[str]]:
        """Run components concurrently; a failure skips only that component."""
        outputs: dict[str, Any] = {}
        skipped: list[str] = []
        with ThreadPoolExecutor(max_workers=self.config.pipeline.max_workers) as executor:
            futures = {name: executor.submit(task) for name, task in tasks.items()}
            for name, future in futures.items():
                try:
                    outputs[name] = future.result()
                except Exception as e:
                    logger.warning(f"Component {name} failed, skipping: {e}")
                    skipped.append(name)
        return outputs, skipped

    def _coaching_insights(
        self,
        match: MatchRecord,
        participant: ParticipantRecord,
        role: Role,
        benchmark: HeroBenchmark | None,
        skipped: list[str],
    ) -> list[Insight]:
        if self.coaching is None:
            return []
        try:
            return list(self.coaching.generate_insights(match, participant, role, benchmark) or [])
        except Exception as e:
            logger.warning(f"Coaching text generation failed, using rule-based insights: {e}")
            skipped.append(COACHING_TEXT)
            return []

    def _record_benchmark(self, match: MatchRecord, participant: ParticipantRecord) -> None:
        try:
            self.benchmarks.record_sample(
                participant.hero_id,
                BenchmarkSample.from_participant(participant, match.duration),
                hero_name=participant.hero_name,
            )
        except Exception as e:
            logger.warning(f"Failed to record benchmark for hero {participant.hero_id}: {e}")

    def _refresh_percentiles(self, hero_id: int) -> None:
        """Recompute the hero's p50/p75 thresholds once enough matches are stored."""
        if self.history is None:
            return
        try:
            played = self.history.get_match_history(hero_id=hero_id)
            if len(played) < self.config.pipeline.min_percentile_samples:
                return
            self.benchmarks.update_percentiles(
                hero_id,
                [m.gold_per_min for m in played],
                [m.xp_per_min for m in played],
                [m.last_hits / (m.duration / 60) for m in played if m.duration > 0],
            )
            logger.debug(f"Refreshed percentiles for hero {hero_id} from {len(played)} matches")
        except Exception as e:
            logger.warning(f"Failed to refresh percentiles for hero {hero_id}: {e}")
