"""
Hero coaching - how one user plays each hero.

Aggregates the user's analyzed-match history per hero, compares a hero's
averages against its running benchmark, and ranks the user's heroes into
best and needs-work lists. Nothing here is persisted.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

import pandas as pd

from dotacoach.analysis.benchmarks import HeroBenchmarkStore
from dotacoach.analysis.models import HeroBenchmark, PercentileRating, Role
from dotacoach.analysis.sessions import SessionMatch

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Stand-in averages when a hero has no benchmark value
FALLBACK_BENCHMARK: dict[str, float] = {
    "gpm": 450.0,
    "xpm": 500.0,
    "kills": 6.0,
    "deaths": 6.0,
    "assists": 10.0,
    "last_hits": 150.0,
    "hero_damage": 15000.0,
}

RECENT_GAMES = 5
MIN_RANKED_GAMES = 3
RANKING_SIZE = 3

# Percent difference from the benchmark
FARM_THRESHOLD = 10.0
IMPACT_THRESHOLD = 15.0

# (comparison key, threshold, strength, weakness)
STRENGTH_RULES: list[tuple[str, float, str, str]] = [
    ("gpm_diff", FARM_THRESHOLD, "Excellent farming efficiency", "Farm slower than average"),
    ("xpm_diff", FARM_THRESHOLD, "Great experience gain", "Falling behind in levels"),
    ("kda_diff", IMPACT_THRESHOLD, "Strong fight participation", "Dying too often or missing fights"),
    ("hero_damage_diff", IMPACT_THRESHOLD, "High damage output", "Lower damage than expected"),
    ("last_hits_diff", IMPACT_THRESHOLD, "Excellent last hitting", "Missing too many last hits"),
]

AVERAGED_COLUMNS = [
    "kills",
    "deaths",
    "assists",
    "gold_per_min",
    "xp_per_min",
    "last_hits",
    "denies",
    "hero_damage",
]

# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MatchExtreme:
    match_id: str
    kda: float
    gpm: float


@dataclass
class HeroPerformance:
    """A user's aggregate record on one hero."""

    hero_id: int
    hero_name: str
    games_played: int
    wins: int
    win_rate: float  # percent
    avg_kills: float
    avg_deaths: float
    avg_assists: float
    avg_kda: float  # ratio of the averages
    avg_gpm: float
    avg_xpm: float
    avg_last_hits: float
    avg_denies: float
    avg_hero_damage: float
    core_games: int
    support_games: int
    recent_win_rate: float  # percent over the last RECENT_GAMES
    best_match: MatchExtreme | None = None
    worst_match: MatchExtreme | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class HeroBenchmarkComparison:
    """A user's hero averages against the hero benchmark, in percent differences."""

    hero_id: int
    hero_name: str
    games_played: int
    player_stats: dict[str, float]
    benchmarks: dict[str, float | None]
    comparison: dict[str, float]
    percentile_rating: PercentileRating
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["percentile_rating"] = self.percentile_rating.value
        return data


@dataclass(frozen=True)
class RankedHero:
    hero_id: int
    hero_name: str
    games_played: int
    win_rate: float
    score: float
    reason: str


@dataclass
class HeroRanking:
    best_heroes: list[RankedHero] = field(default_factory=list)
    needs_work_heroes: list[RankedHero] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def kda_ratio(kills: float, deaths: float, assists: float) -> float:
    if deaths > 0:
        return (kills + assists) / deaths
    return float(kills + assists)


def pct_diff(value: float, reference: float) -> float:
    if not reference:
        return 0.0
    return (value - reference) / reference * 100


def _extreme(row: pd.Series) -> MatchExtreme:
    return MatchExtreme(match_id=str(row["match_id"]), kda=float(row["kda"]), gpm=float(row["gold_per_min"]))


def _performance(hero_id: int, group: pd.DataFrame) -> HeroPerformance:
    games = len(group)
    wins = int(group["won"].sum())
    avg = group[AVERAGED_COLUMNS].mean()

    recent = group.sort_values("start_time", kind="stable").tail(RECENT_GAMES)
    by_kda = group.sort_values("kda", ascending=False, kind="stable")
    names = [name for name in group["hero_name"] if name]

    return HeroPerformance(
        hero_id=hero_id,
        hero_name=names[-1] if names else f"Hero {hero_id}",
        games_played=games,
        wins=wins,
        win_rate=wins / games * 100,
        avg_kills=float(avg["kills"]),
        avg_deaths=float(avg["deaths"]),
        avg_assists=float(avg["assists"]),
        avg_kda=kda_ratio(float(avg["kills"]), float(avg["deaths"]), float(avg["assists"])),
        avg_gpm=float(avg["gold_per_min"]),
        avg_xpm=float(avg["xp_per_min"]),
        avg_last_hits=float(avg["last_hits"]),
        avg_denies=float(avg["denies"]),
        avg_hero_damage=float(avg["hero_damage"]),
        core_games=int((group["role"] == Role.CORE.value).sum()),
        support_games=int((group["role"] == Role.SUPPORT.value).sum()),
        recent_win_rate=float(recent["won"].mean()) * 100,
        best_match=_extreme(by_kda.iloc[0]),
        worst_match=_extreme(by_kda.iloc[-1]) if games > 1 else None,
    )


def hero_performances(matches: list[SessionMatch]) -> list[HeroPerformance]:
    """Per-hero aggregates for a match history, most played first."""
    if not matches:
        return []
    frame = pd.DataFrame([m.to_dict() for m in matches])
    frame["won"] = frame["won"].astype(bool)
    frame["kda"] = [m.kda for m in matches]

    heroes = [_performance(int(hero_id), group) for hero_id, group in frame.groupby("hero_id", sort=False)]
    heroes.sort(key=lambda h: h.games_played, reverse=True)
    return heroes


# ---------------------------------------------------------------------------
# Benchmark comparison
# ---------------------------------------------------------------------------


def _reference(benchmark: HeroBenchmark | None, key: str) -> float:
    value = getattr(benchmark, f"avg_{key}", 0.0) if benchmark is not None else 0.0
    return value or FALLBACK_BENCHMARK[key]


def percentile_rating(gpm: float, gpm_diff: float, benchmark: HeroBenchmark | None) -> PercentileRating:
    """Rate GPM against the p75/p50 thresholds, falling back to the mean difference."""
    p75 = benchmark.p75_gpm if benchmark is not None else None
    p50 = benchmark.p50_gpm if benchmark is not None else None
    if p75 and gpm >= p75:
        return PercentileRating.TOP_25
    if p50 and gpm >= p50:
        return PercentileRating.ABOVE_AVERAGE
    if gpm_diff < -FARM_THRESHOLD:
        return PercentileRating.BELOW_AVERAGE
    return PercentileRating.AVERAGE


def compare_to_benchmark(
    performance: HeroPerformance,
    benchmark: HeroBenchmark | None,
) -> HeroBenchmarkComparison:
    """
    Compare a user's hero averages with the hero benchmark.

    Zero or missing benchmark averages fall back to FALLBACK_BENCHMARK.
    Positive differences mean the player is above the benchmark.
    """
    player = {
        "gpm": performance.avg_gpm,
        "xpm": performance.avg_xpm,
        "kills": performance.avg_kills,
        "deaths": performance.avg_deaths,
        "assists": performance.avg_assists,
        "last_hits": performance.avg_last_hits,
        "hero_damage": performance.avg_hero_damage,
    }
    reference = {key: _reference(benchmark, key) for key in FALLBACK_BENCHMARK}
    reference_kda = kda_ratio(reference["kills"], reference["deaths"], reference["assists"])

    comparison = {
        "gpm_diff": pct_diff(player["gpm"], reference["gpm"]),
        "xpm_diff": pct_diff(player["xpm"], reference["xpm"]),
        "kda_diff": pct_diff(performance.avg_kda, reference_kda),
        "last_hits_diff": pct_diff(player["last_hits"], reference["last_hits"]),
        "hero_damage_diff": pct_diff(player["hero_damage"], reference["hero_damage"]),
    }

    strengths: list[str] = []
    weaknesses: list[str] = []
    for key, threshold, strength, weakness in STRENGTH_RULES:
        if comparison[key] > threshold:
            strengths.append(strength)
        elif comparison[key] < -threshold:
            weaknesses.append(weakness)

    benchmarks: dict[str, float | None] = {f"avg_{key}": value for key, value in reference.items()}
    benchmarks["p50_gpm"] = benchmark.p50_gpm if benchmark is not None else None
    benchmarks["p75_gpm"] = benchmark.p75_gpm if benchmark is not None else None

    return HeroBenchmarkComparison(
        hero_id=performance.hero_id,
        hero_name=performance.hero_name,
        games_played=performance.games_played,
        player_stats=player,
        benchmarks=benchmarks,
        comparison=comparison,
        percentile_rating=percentile_rating(player["gpm"], comparison["gpm_diff"], benchmark),
        strengths=strengths,
        weaknesses=weaknesses,
    )


# ---------------------------------------------------------------------------
# Rankings
# ---------------------------------------------------------------------------


def hero_score(hero: HeroPerformance) -> float:
    """Win rate, capped KDA and GPM blended into one number."""
    kda_score = min(hero.avg_kda * 10, 50)
    return hero.win_rate * 0.5 + kda_score * 0.3 + hero.avg_gpm / 10 * 0.2


def _best_reason(hero: HeroPerformance) -> str:
    if hero.win_rate >= 55:
        return f"{hero.win_rate:.0f}% win rate over {hero.games_played} games"
    return f"Strong {hero.avg_kda:.1f} KDA average"


def _needs_work_reason(hero: HeroPerformance) -> str:
    if hero.win_rate < 45:
        return f"Only {hero.win_rate:.0f}% win rate"
    return f"{hero.avg_deaths:.1f} avg deaths - dying too often"


def _ranked(hero: HeroPerformance, score: float, reason: str) -> RankedHero:
    return RankedHero(
        hero_id=hero.hero_id,
        hero_name=hero.hero_name,
        games_played=hero.games_played,
        win_rate=hero.win_rate,
        score=score,
        reason=reason,
    )


def rank_heroes(
    heroes: list[HeroPerformance],
    min_games: int = MIN_RANKED_GAMES,
    size: int = RANKING_SIZE,
) -> HeroRanking:
    """
    Split heroes with enough games into best and needs-work lists.

    Needs-work is drawn from heroes not already listed as best, worst first.
    """
    qualified = [h for h in heroes if h.games_played >= min_games]
    scored = sorted(((hero_score(h), h) for h in qualified), key=lambda pair: pair[0], reverse=True)

    best = [_ranked(h, score, _best_reason(h)) for score, h in scored[:size]]
    rest = scored[size:]
    needs_work = [_ranked(h, score, _needs_work_reason(h)) for score, h in reversed(rest[-size:])]
    return HeroRanking(best_heroes=best, needs_work_heroes=needs_work)


class HeroCoach:
    """Hero coaching over a user's match history and the hero benchmark store."""

    def __init__(self, benchmarks: HeroBenchmarkStore | None = None):
        self.benchmarks = benchmarks if benchmarks is not None else HeroBenchmarkStore()

    def get_all_heroes(self, matches: list[SessionMatch]) -> list[HeroPerformance]:
        return hero_performances(matches)

    def get_hero_comparison(self, matches: list[SessionMatch], hero_id: int) -> HeroBenchmarkComparison | None:
        """Benchmark comparison for one hero; None when the user never played it."""
        played = [m for m in matches if m.hero_id == hero_id]
        if not played:
            return None
        performance = hero_performances(played)[0]
        benchmark = self.benchmarks.get_benchmark(hero_id)
        if benchmark is None:
            logger.debug(f"No benchmark for hero {hero_id}, comparing against defaults")
        return compare_to_benchmark(performance, benchmark)

    def get_rankings(self, matches: list[SessionMatch]) -> HeroRanking:
        return rank_heroes(hero_performances(matches))
