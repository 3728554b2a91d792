"""
Configuration Management for dotacoach

Provides configuration loading from multiple sources:
- Default values
- Configuration files (YAML, TOML, JSON)
- Environment variables

Configuration precedence (highest to lowest):
1. Explicit configuration file passed to load_config()
2. Environment variables (DOTACOACH_*)
3. First configuration file found in the default search paths
4. Default values

Every detection threshold lives here so rules can be tuned without touching
the detectors themselves.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from dotacoach.core.errors import ConfigError

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration Dataclasses
# ============================================================================


@dataclass
class RoleConfig:
    """Core/support split used by every component that cares about role."""

    core_min_gpm: float = 350.0
    core_min_cs_per_min: float = 3.0


@dataclass
class PerformanceConfig:
    """Thresholds for end-of-match stat rules."""

    # Core farm, as a fraction of the hero benchmark
    low_cs_ratio: float = 0.85
    low_gpm_ratio: float = 0.8
    excellent_cs_ratio: float = 1.2

    # Generic fallbacks when no hero benchmark exists
    fallback_avg_cs_per_min: float = 7.0
    fallback_avg_gpm: float = 500.0
    fallback_excellent_cs_per_min: float = 8.0

    # Deaths
    high_deaths: int = 8
    critical_deaths: int = 12

    # KDA
    low_kda: float = 2.0
    low_kda_min_deaths: int = 5
    excellent_kda: float = 5.0
    excellent_kda_min_kills: int = 5

    # Support
    ward_ratio: float = 0.5
    ward_interval_minutes: float = 2.0
    support_low_gpm: float = 250.0

    # Impact
    low_hero_damage: int = 5000
    low_hero_damage_min_minutes: float = 25.0


@dataclass
class TimelineConfig:
    """Windows for per-minute and per-event timeline scans."""

    death_cluster_size: int = 3
    death_cluster_window_seconds: float = 300.0
    death_cluster_critical_size: int = 4

    drought_start_minute: int = 10
    drought_min_samples: int = 11
    drought_run_minutes: int = 3
    drought_cs_per_minute: int = 2

    poor_fight_max_damage: int = 500
    great_fight_min_damage: int = 2000
    great_fight_min_gold: int = 500


@dataclass
class MomentsConfig:
    """Key moment detection and ranking."""

    first_blood_window_seconds: float = 120.0
    high_importance_deaths: int = 3
    multikill_gap_seconds: float = 18.0

    comeback_lookback_minutes: int = 5
    comeback_deficit: float = -3000.0
    comeback_swing: float = 5000.0

    team_fight_window_seconds: float = 30.0
    team_fight_min_events: int = 3
    team_fight_high_events: int = 5

    importance_scores: dict[str, int] = field(
        default_factory=lambda: {"high": 10, "medium": 5, "low": 2}
    )
    type_bonuses: dict[str, int] = field(
        default_factory=lambda: {"multikill": 8, "comeback": 7, "team_fight": 6}
    )
    roshan_bonus: int = 5
    first_blood_bonus: int = 5
    top_moments: int = 5


@dataclass
class ItemBuildConfig:
    """Score deltas for the item build review."""

    base_score: int = 70
    spell_immunity_after_minutes: float = 25.0
    missing_spell_immunity: int = -15
    has_spell_immunity: int = 5
    missing_mobility: int = -8
    has_mobility: int = 3
    late_game_minutes: float = 35.0
    early_items_late: int = -5
    sold_boots_late: int = 5
    no_damage_net_worth: int = 15000
    no_damage_items: int = -12
    damage_items_bonus: int = 8
    defensive_min_deaths: int = 8
    no_defensive_items: int = -15
    farm_item_min_gpm: float = 550.0
    farm_item_bonus: int = 5
    low_gpm_farm_check: float = 450.0
    low_gpm_farm_minutes: float = 20.0
    luxury_minutes: float = 40.0


@dataclass
class SessionConfig:
    """Play-session grouping and tilt heuristics."""

    gap_minutes: float = 45.0
    trend_min_matches: int = 4
    trend_threshold: float = 0.15
    lookback_days: int = 30
    long_session_lookback_days: int = 60

    tilt_window: int = 20
    streak_warning: int = 3
    streak_danger: int = 5
    medium_risk_warnings: int = 2

    late_night_start_hour: int = 0
    late_night_end_hour: int = 4
    late_night_min_matches: int = 3
    long_session_from_match: int = 4
    low_win_rate: float = 40.0
    default_rate: float = 50.0
    best_bucket_min_games: int = 3

    # IANA zone name for "local" time; None uses the host's local zone
    timezone: str | None = None


@dataclass
class StorageConfig:
    """Persistence settings."""

    db_path: str | None = None
    echo_sql: bool = False


@dataclass
class PipelineConfig:
    """Per-match orchestration settings."""

    max_workers: int = 4
    record_benchmarks: bool = True
    use_cache: bool = True
    # Stored matches of a hero needed before p50/p75 thresholds are computed
    min_percentile_samples: int = 10


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str | None = None
    file_max_bytes: int = 10 * 1024 * 1024  # 10MB
    file_backup_count: int = 5


@dataclass
class DotaCoachConfig:
    """Main configuration container."""

    roles: RoleConfig = field(default_factory=RoleConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    timeline: TimelineConfig = field(default_factory=TimelineConfig)
    moments: MomentsConfig = field(default_factory=MomentsConfig)
    items: ItemBuildConfig = field(default_factory=ItemBuildConfig)
    sessions: SessionConfig = field(default_factory=SessionConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Version of the config format
    config_version: str = "1.0"


SECTIONS = (
    "roles",
    "performance",
    "timeline",
    "moments",
    "items",
    "sessions",
    "storage",
    "pipeline",
    "logging",
)


# ============================================================================
# Configuration Loading
# ============================================================================


def get_default_config_paths() -> list[Path]:
    """Get the default paths to search for configuration files."""
    paths = [
        Path.cwd() / "dotacoach.yaml",
        Path.cwd() / "dotacoach.toml",
        Path.cwd() / "dotacoach.json",
        Path.cwd() / ".dotacoach.yaml",
    ]

    home = Path.home()
    xdg_config = os.environ.get("XDG_CONFIG_HOME", str(home / ".config"))
    paths.append(Path(xdg_config) / "dotacoach" / "config.yaml")
    paths.append(Path(xdg_config) / "dotacoach" / "config.toml")
    paths.append(home / ".dotacoach.yaml")

    return paths


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load configuration from a YAML file."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from a TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from a JSON file."""
    with open(path) as f:
        return json.load(f)


def load_config_file(path: Path) -> dict[str, Any]:
    """Load configuration from a file, detecting format from extension."""
    if not path.exists():
        return {}

    suffix = path.suffix.lower()
    try:
        if suffix in (".yaml", ".yml"):
            return load_yaml_config(path)
        elif suffix == ".toml":
            return load_toml_config(path)
        elif suffix == ".json":
            return load_json_config(path)
    except (yaml.YAMLError, tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e

    logger.warning(f"Unknown config file format: {suffix}")
    return {}


ENV_MAPPINGS: dict[str, tuple[str, str]] = {
    "DOTACOACH_LOG_LEVEL": ("logging", "level"),
    "DOTACOACH_LOG_FILE": ("logging", "file"),
    "DOTACOACH_DB_PATH": ("storage", "db_path"),
    "DOTACOACH_TIMEZONE": ("sessions", "timezone"),
    "DOTACOACH_SESSION_GAP_MINUTES": ("sessions", "gap_minutes"),
    "DOTACOACH_COMEBACK_SWING": ("moments", "comeback_swing"),
    "DOTACOACH_COMEBACK_DEFICIT": ("moments", "comeback_deficit"),
    "DOTACOACH_COMEBACK_LOOKBACK": ("moments", "comeback_lookback_minutes"),
    "DOTACOACH_MAX_WORKERS": ("pipeline", "max_workers"),
    "DOTACOACH_RECORD_BENCHMARKS": ("pipeline", "record_benchmarks"),
    "DOTACOACH_USE_CACHE": ("pipeline", "use_cache"),
}


def _coerce_env_value(value: str) -> Any:
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    if value.lstrip("-").isdigit():
        return int(value)
    try:
        return float(value)
    except ValueError:
        return value


def load_env_config() -> dict[str, Any]:
    """Load configuration from environment variables."""
    config: dict[str, Any] = {}

    for env_var, (section, key) in ENV_MAPPINGS.items():
        value = os.environ.get(env_var)
        if value is not None:
            config.setdefault(section, {})[key] = _coerce_env_value(value)

    return config


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge two configuration dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def dict_to_config(data: dict[str, Any]) -> DotaCoachConfig:
    """Convert a dictionary to DotaCoachConfig, ignoring unknown keys."""
    config = DotaCoachConfig()

    for section in SECTIONS:
        values = data.get(section)
        if not values:
            continue
        if not isinstance(values, dict):
            raise ConfigError(f"Config section '{section}' must be a mapping")
        target = getattr(config, section)
        for key, value in values.items():
            if hasattr(target, key):
                setattr(target, key, value)
            else:
                logger.debug(f"Ignoring unknown config key {section}.{key}")

    return config


def load_config(config_file: Path | None = None, include_env: bool = True) -> DotaCoachConfig:
    """
    Load configuration from all sources.

    Args:
        config_file: Explicit path to a config file (optional)
        include_env: Whether to include environment variables

    Returns:
        Merged DotaCoachConfig
    """
    file_data: dict[str, Any] = {}

    if config_file is None:
        for path in get_default_config_paths():
            if path.exists():
                file_data = load_config_file(path)
                logger.info(f"Loaded config from: {path}")
                break

    config_data = file_data
    if include_env:
        config_data = merge_configs(config_data, load_env_config())

    if config_file is not None:
        if not config_file.exists():
            raise ConfigError(f"Config file not found: {config_file}")
        config_data = merge_configs(config_data, load_config_file(config_file))
        logger.info(f"Loaded config from: {config_file}")

    return dict_to_config(config_data)


def config_to_dict(config: DotaCoachConfig) -> dict[str, Any]:
    """Convert DotaCoachConfig to a dictionary."""
    return asdict(config)


def save_config(config: DotaCoachConfig, path: Path) -> None:
    """
    Save configuration to a file.

    Args:
        config: Configuration to save
        path: Path to save to (YAML or JSON, detected from extension)
    """
    data = config_to_dict(config)
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        with open(path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    elif suffix == ".json":
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
    else:
        raise ConfigError(f"Unsupported config format for saving: {suffix}")

    logger.info(f"Saved config to: {path}")


def configure_logging(config: LoggingConfig) -> None:
    """Apply logging settings to the root logger."""
    root = logging.getLogger()
    root.setLevel(config.level.upper())

    formatter = logging.Formatter(config.format)
    if not root.handlers:
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        root.addHandler(stream)

    if config.file:
        file_handler = logging.handlers.RotatingFileHandler(
            config.file,
            maxBytes=config.file_max_bytes,
            backupCount=config.file_backup_count,
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


# ============================================================================
# Global Configuration
# ============================================================================

_global_config: DotaCoachConfig | None = None


def get_config() -> DotaCoachConfig:
    """Get the global configuration, loading it if necessary."""
    global _global_config

    if _global_config is None:
        _global_config = load_config()

    return _global_config


def set_config(config: DotaCoachConfig) -> None:
    """Set the global configuration."""
    global _global_config
    _global_config = config


def reset_config() -> None:
    """Reset the global configuration to defaults."""
    global _global_config
    _global_config = None


# ============================================================================
# Configuration Templates
# ============================================================================

DEFAULT_CONFIG_YAML = """# dotacoach configuration

# Core/support split
roles:
  core_min_gpm: 350
  core_min_cs_per_min: 3

# Key moment detection
moments:
  multikill_gap_seconds: 18
  comeback_lookback_minutes: 5
  comeback_deficit: -3000
  comeback_swing: 5000
  top_moments: 5

# Session grouping and tilt
sessions:
  gap_minutes: 45
  tilt_window: 20
  # timezone: Europe/Stockholm

# Persistence
storage:
  # db_path: /path/to/coach.db
  echo_sql: false

# Logging settings
logging:
  level: INFO
  # file: /path/to/dotacoach.log
"""


def generate_default_config(path: Path) -> None:
    """Generate a default configuration file."""
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        path.write_text(DEFAULT_CONFIG_YAML)
    else:
        save_config(DotaCoachConfig(), path)

    logger.info(f"Generated default config at: {path}")
