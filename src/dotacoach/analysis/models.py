"""
Data models for match analysis.

Input records (MatchRecord, ParticipantRecord and their event types) are built
once by the ingest layer and treated as read-only. Output values (Insight,
KeyMoment, HeroBenchmark) are frozen dataclasses with to_dict()/from_dict()
so they can be cached and restored field-for-field.

Optional timeline arrays use None for "no data", never an empty list, so
detectors can tell missing telemetry apart from a genuine zero.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any

from dotacoach.core.errors import ParticipantNotFoundError

# Slots below this value belong to the radiant side
DIRE_SLOT_OFFSET = 128

# life_state value for a dead hero
LIFE_STATE_DEAD = 2

ROSHAN_KILL = "CHAT_MESSAGE_ROSHAN_KILL"


# ============================================================================
# Closed value sets
# ============================================================================


class InsightType(Enum):
    MISTAKE = "mistake"
    MISSED_OPPORTUNITY = "missed_opportunity"
    GOOD_PLAY = "good_play"


class InsightCategory(Enum):
    POSITIONING = "positioning"
    ITEMIZATION = "itemization"
    FARM_EFFICIENCY = "farm_efficiency"
    VISION = "vision"
    TEAMFIGHT = "teamfight"
    DECISION_MAKING = "decision_making"


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class MomentType(Enum):
    KILL = "kill"
    DEATH = "death"
    MULTIKILL = "multikill"
    OBJECTIVE = "objective"
    ITEM_PURCHASE = "item_purchase"
    COMEBACK = "comeback"
    TEAM_FIGHT = "team_fight"


class Importance(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Role(Enum):
    """Derived from farm, never stored on the participant."""

    CORE = "Core"
    SUPPORT = "Support"


class TeamSide(Enum):
    RADIANT = "radiant"
    DIRE = "dire"


class Trend(Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class TiltRisk(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class WarningSeverity(Enum):
    WARNING = "warning"
    DANGER = "danger"


class WarningType(Enum):
    LOSING_STREAK = "losing_streak"
    DECLINING_PERFORMANCE = "declining_performance"
    LONG_SESSION = "long_session"
    LATE_NIGHT = "late_night"


class PercentileRating(Enum):
    """Where a player's hero GPM sits against the hero's benchmark."""

    BELOW_AVERAGE = "below_average"
    AVERAGE = "average"
    ABOVE_AVERAGE = "above_average"
    TOP_25 = "top_25"


# ============================================================================
# Output values
# ============================================================================


@dataclass(frozen=True)
class Insight:
    """A single coaching observation."""

    insight_type: InsightType
    category: InsightCategory
    severity: Severity
    title: str
    description: str
    recommendation: str
    game_time: float | None = None  # seconds, for timeline insights

    def to_dict(self) -> dict[str, Any]:
        return {
            "insight_type": self.insight_type.value,
            "category": self.category.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "recommendation": self.recommendation,
            "game_time": self.game_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Insight:
        return cls(
            insight_type=InsightType(data["insight_type"]),
            category=InsightCategory(data["category"]),
            severity=Severity(data["severity"]),
            title=data["title"],
            description=data["description"],
            recommendation=data["recommendation"],
            game_time=data.get("game_time"),
        )


@dataclass(frozen=True)
class MomentMetadata:
    """Extra context attached to a key moment."""

    hero_killed: str | None = None
    item_purchased: str | None = None
    gold_swing: float | None = None
    kill_streak: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MomentMetadata:
        return cls(
            hero_killed=data.get("hero_killed"),
            item_purchased=data.get("item_purchased"),
            gold_swing=data.get("gold_swing"),
            kill_streak=data.get("kill_streak"),
        )


@dataclass(frozen=True)
class KeyMoment:
    """A timestamped event worth jumping to in the replay."""

    timestamp: float  # seconds from match start
    type: MomentType
    title: str
    description: str
    importance: Importance
    metadata: MomentMetadata | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp,
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "importance": self.importance.value,
        }
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KeyMoment:
        metadata = data.get("metadata")
        return cls(
            timestamp=data["timestamp"],
            type=MomentType(data["type"]),
            title=data["title"],
            description=data["description"],
            importance=Importance(data["importance"]),
            metadata=MomentMetadata.from_dict(metadata) if metadata is not None else None,
        )


@dataclass(frozen=True)
class HeroBenchmark:
    """Running averages for one hero across every analyzed match."""

    hero_id: int
    hero_name: str = ""
    total_matches: int = 0

    avg_gpm: float = 0.0
    avg_xpm: float = 0.0
    avg_cs_per_min: float = 0.0
    avg_last_hits: float = 0.0
    avg_denies: float = 0.0
    avg_kills: float = 0.0
    avg_deaths: float = 0.0
    avg_assists: float = 0.0
    avg_hero_damage: float = 0.0
    avg_tower_damage: float = 0.0
    avg_hero_healing: float = 0.0
    avg_obs_placed: float = 0.0
    avg_sen_placed: float = 0.0
    avg_camps_stacked: float = 0.0

    # Ward and stack counts are optional telemetry, so their means keep their own N
    obs_samples: int = 0
    sen_samples: int = 0
    camps_samples: int = 0

    # Percentile thresholds, only present once computed from raw samples
    p50_gpm: float | None = None
    p50_xpm: float | None = None
    p50_cs_per_min: float | None = None
    p75_gpm: float | None = None
    p75_xpm: float | None = None
    p75_cs_per_min: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HeroBenchmark:
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


# ============================================================================
# Input records
# ============================================================================


@dataclass(frozen=True)
class KillEvent:
    """A hero kill by the participant."""

    time: float
    victim: str  # provider key, e.g. "npc_dota_hero_axe"


@dataclass(frozen=True)
class PurchaseEvent:
    time: float
    item: str  # provider key, e.g. "black_king_bar"


@dataclass(frozen=True)
class ObjectiveEvent:
    time: float
    type: str
    team: int | None = None  # 2 = radiant, 3 = dire
    key: str | None = None

    @property
    def side(self) -> TeamSide | None:
        if self.team == 2:
            return TeamSide.RADIANT
        if self.team == 3:
            return TeamSide.DIRE
        return None

    @property
    def is_roshan(self) -> bool:
        return self.type == ROSHAN_KILL


@dataclass(frozen=True)
class TeamFightParticipant:
    deaths: int = 0
    damage: float = 0.0
    healing: float = 0.0
    gold_delta: float = 0.0
    xp_delta: float = 0.0


@dataclass(frozen=True)
class TeamFight:
    start: float
    end: float
    deaths: int = 0
    players: tuple[TeamFightParticipant, ...] = ()


@dataclass(frozen=True)
class ParticipantRecord:
    """Final stats and optional timelines for one of the ten players."""

    player_slot: int
    hero_id: int
    account_id: int | None = None
    hero_name: str = ""

    kills: int = 0
    deaths: int = 0
    assists: int = 0
    last_hits: int = 0
    denies: int = 0
    gold_per_min: float = 0.0
    xp_per_min: float = 0.0
    net_worth: int = 0
    hero_damage: int = 0
    tower_damage: int = 0
    hero_healing: int = 0
    level: int = 0
    obs_placed: int | None = None
    sen_placed: int | None = None
    camps_stacked: int | None = None

    items: tuple[int, ...] = ()

    # Optional cumulative last hits per minute
    lh_t: tuple[int, ...] | None = None

    # Optional event logs
    kills_log: tuple[KillEvent, ...] | None = None
    life_state: tuple[int, ...] | None = None
    purchase_log: tuple[PurchaseEvent, ...] | None = None

    @property
    def side(self) -> TeamSide:
        return TeamSide.RADIANT if self.player_slot < DIRE_SLOT_OFFSET else TeamSide.DIRE

    @property
    def is_radiant(self) -> bool:
        return self.side is TeamSide.RADIANT

    @property
    def fight_index(self) -> int:
        """Index into a team fight's per-player list."""
        slot = self.player_slot % DIRE_SLOT_OFFSET
        return slot if self.is_radiant else slot + 5

    @property
    def wards_placed(self) -> int | None:
        """Observer plus sentry wards, or None when neither count was reported."""
        if self.obs_placed is None and self.sen_placed is None:
            return None
        return (self.obs_placed or 0) + (self.sen_placed or 0)

    def death_times(self) -> list[float] | None:
        """Minute marks where life_state flips into the dead state."""
        if self.life_state is None:
            return None
        times: list[float] = []
        previous = None
        for minute, state in enumerate(self.life_state):
            if state == LIFE_STATE_DEAD and previous != LIFE_STATE_DEAD:
                times.append(float(minute * 60))
            previous = state
        return times

    def kill_times(self) -> list[float] | None:
        if self.kills_log is None:
            return None
        return [k.time for k in self.kills_log]


@dataclass(frozen=True)
class MatchRecord:
    """Everything the provider knows about one finished match."""

    match_id: str
    duration: float  # seconds
    radiant_win: bool
    participants: tuple[ParticipantRecord, ...] = ()
    start_time: int | None = None  # unix seconds
    radiant_gold_adv: tuple[float, ...] | None = None
    objectives: tuple[ObjectiveEvent, ...] | None = None
    teamfights: tuple[TeamFight, ...] | None = None

    @property
    def duration_minutes(self) -> float:
        return self.duration / 60

    def find_participant(
        self, player_slot: int | None = None, account_id: int | None = None
    ) -> ParticipantRecord:
        """Look up a participant by slot (preferred) or account id."""
        for p in self.participants:
            if player_slot is not None:
                if p.player_slot == player_slot:
                    return p
            elif account_id is not None and p.account_id == account_id:
                return p
        raise ParticipantNotFoundError(self.match_id, player_slot=player_slot, account_id=account_id)

    def player_won(self, participant: ParticipantRecord) -> bool:
        return participant.is_radiant == self.radiant_win

    def hero_name_for(self, hero_key: str | int) -> str:
        """Display name for a kill-log victim key or hero id."""
        if isinstance(hero_key, int) or str(hero_key).isdigit():
            for p in self.participants:
                if p.hero_id == int(hero_key) and p.hero_name:
                    return p.hero_name
            return f"Hero {hero_key}"
        key = str(hero_key).removeprefix("npc_dota_hero_")
        return " ".join(word.capitalize() for word in key.split("_")) or "Unknown Hero"

    def missing_telemetry(self, participant: ParticipantRecord) -> list[str]:
        """Names of optional inputs that are absent for this participant."""
        missing = []
        for name in ("lh_t", "kills_log", "life_state", "purchase_log"):
            if getattr(participant, name) is None:
                missing.append(name)
        for name in ("radiant_gold_adv", "objectives", "teamfights"):
            if getattr(self, name) is None:
                missing.append(name)
        return missing


@dataclass
class AnalysisSummary:
    """Severity buckets over a merged insight list."""

    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    top_categories: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalysisSummary:
        return cls(
            critical=data.get("critical", 0),
            high=data.get("high", 0),
            medium=data.get("medium", 0),
            low=data.get("low", 0),
            top_categories=list(data.get("top_categories", [])),
        )
