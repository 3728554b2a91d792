"""Exception types raised across dotacoach.

Detectors never raise for missing telemetry or small samples; only malformed
input (for example a participant that is not in the match) terminates an
analysis call.
"""

from __future__ import annotations


class DotaCoachError(Exception):
    """Base class for all dotacoach errors."""


class ConfigError(DotaCoachError):
    """Configuration could not be loaded or is invalid."""


class MatchNotFoundError(DotaCoachError):
    """The match provider has no record for the requested match id."""

    def __init__(self, match_id: str | int):
        super().__init__(f"Match not found: {match_id}")
        self.match_id = str(match_id)


class ParticipantNotFoundError(DotaCoachError):
    """No participant in the match matches the requested slot or account."""

    def __init__(self, match_id: str | int, player_slot: int | None = None, account_id: int | None = None):
        if player_slot is not None:
            target = f"player slot {player_slot}"
        elif account_id is not None:
            target = f"account {account_id}"
        else:
            target = "no participant selector"
        super().__init__(f"Match {match_id}: {target} not found")
        self.match_id = str(match_id)
        self.player_slot = player_slot
        self.account_id = account_id


class RateLimitedError(DotaCoachError):
    """The match provider throttled the request; safe to retry later."""

    retryable = True

    def __init__(self, message: str = "Match provider rate limited the request", retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class BenchmarkNotFoundError(DotaCoachError):
    """No benchmark samples have been recorded for the hero yet."""

    def __init__(self, hero_id: int):
        super().__init__(f"No benchmark recorded for hero {hero_id}")
        self.hero_id = hero_id
