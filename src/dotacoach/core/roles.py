"""Role classification shared by every component that needs a core/support split."""

from __future__ import annotations

from dotacoach.analysis.models import ParticipantRecord, Role
from dotacoach.core.config import RoleConfig


def cs_per_minute(last_hits: float, duration_seconds: float) -> float:
    """Last hits per minute; 0 for a zero-length match."""
    if duration_seconds <= 0:
        return 0.0
    return last_hits / (duration_seconds / 60)


def classify_role(
    gold_per_min: float,
    last_hits: float,
    duration_seconds: float,
    config: RoleConfig | None = None,
) -> Role:
    """Core if the player farmed like one, otherwise Support.

    A player counts as a core when GPM is above ``core_min_gpm`` or CS/min is
    above ``core_min_cs_per_min``. Lane assignment is deliberately ignored.
    """
    config = config or RoleConfig()
    if gold_per_min > config.core_min_gpm:
        return Role.CORE
    if cs_per_minute(last_hits, duration_seconds) > config.core_min_cs_per_min:
        return Role.CORE
    return Role.SUPPORT


def classify_participant(
    participant: ParticipantRecord, duration_seconds: float, config: RoleConfig | None = None
) -> Role:
    return classify_role(participant.gold_per_min, participant.last_hits, duration_seconds, config)
