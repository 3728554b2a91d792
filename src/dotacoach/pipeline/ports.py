"""Collaborator interfaces the orchestrator talks to.

Implementations live outside the analysis core: the match-data provider,
persistence, and the optional natural-language coaching generator.
"""

from __future__ import annotations

from typing import Any, Protocol

from dotacoach.analysis.models import HeroBenchmark, Insight, MatchRecord, ParticipantRecord, Role
from dotacoach.analysis.sessions import SessionMatch


class MatchProvider(Protocol):
    """Supplies match records.

    Raises MatchNotFoundError for unknown ids and RateLimitedError when
    throttled. Optional telemetry fields may be None.
    """

    def fetch_match(self, match_id: str) -> MatchRecord: ...


class ResultStore(Protocol):
    """Cache of serialized analysis results keyed by (match id, player slot)."""

    def get_cached_result(self, match_id: str, player_slot: int) -> dict[str, Any] | None: ...

    def save_result(self, result: dict[str, Any], user_id: str | None = None) -> None: ...


class CoachingTextGenerator(Protocol):
    """Produces a richer insight list; an empty list means fall back to rules."""

    def generate_insights(
        self,
        match: MatchRecord,
        participant: ParticipantRecord,
        role: Role,
        benchmark: HeroBenchmark | None,
    ) -> list[Insight]: ...


class MatchHistorySource(Protocol):
    """Analyzed matches ordered by start time, optionally narrowed to a user or hero."""

    def get_match_history(self, user_id: str | None = None, hero_id: int | None = None) -> list[SessionMatch]: ...
