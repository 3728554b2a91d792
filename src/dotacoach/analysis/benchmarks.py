"""Per-hero performance benchmarks.

Keeps running averages for every hero across all analyzed matches. Each new
match updates every mean incrementally::

    new_mean = (old_mean * N + sample) / (N + 1)

and then increments N. Samples are never retracted.

Updates for the same hero are serialized with a per-hero lock so concurrent
analyses cannot lose each other's writes; different heroes update in parallel.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, Protocol

import numpy as np

from dotacoach.analysis.models import HeroBenchmark, ParticipantRecord
from dotacoach.core.errors import BenchmarkNotFoundError
from dotacoach.core.roles import cs_per_minute

logger = logging.getLogger(__name__)

# HeroBenchmark field -> BenchmarkSample field
AVERAGED_FIELDS: dict[str, str] = {
    "avg_gpm": "gpm",
    "avg_xpm": "xpm",
    "avg_cs_per_min": "cs_per_min",
    "avg_last_hits": "last_hits",
    "avg_denies": "denies",
    "avg_kills": "kills",
    "avg_deaths": "deaths",
    "avg_assists": "assists",
    "avg_hero_damage": "hero_damage",
    "avg_tower_damage": "tower_damage",
    "avg_hero_healing": "hero_healing",
    "avg_obs_placed": "obs_placed",
    "avg_sen_placed": "sen_placed",
    "avg_camps_stacked": "camps_stacked",
}

# Means over optional telemetry -> the HeroBenchmark field counting their samples
SAMPLE_COUNT_FIELDS: dict[str, str] = {
    "avg_obs_placed": "obs_samples",
    "avg_sen_placed": "sen_samples",
    "avg_camps_stacked": "camps_samples",
}

# Seeding templates for heroes with no real samples yet, by primary role
ROLE_TEMPLATES: dict[str, dict[str, float]] = {
    "carry": {
        "gpm": 550, "xpm": 620, "cs_per_min": 7.5, "last_hits": 225, "denies": 15,
        "kills": 8, "deaths": 5, "assists": 9, "hero_damage": 18000, "tower_damage": 4500,
        "hero_healing": 0, "obs_placed": 0, "sen_placed": 0, "camps_stacked": 1,
    },
    "mid": {
        "gpm": 520, "xpm": 650, "cs_per_min": 6.8, "last_hits": 204, "denies": 20,
        "kills": 10, "deaths": 6, "assists": 11, "hero_damage": 20000, "tower_damage": 2500,
        "hero_healing": 0, "obs_placed": 1, "sen_placed": 0, "camps_stacked": 0,
    },
    "offlane": {
        "gpm": 450, "xpm": 550, "cs_per_min": 5.5, "last_hits": 165, "denies": 12,
        "kills": 6, "deaths": 7, "assists": 14, "hero_damage": 15000, "tower_damage": 3000,
        "hero_healing": 500, "obs_placed": 2, "sen_placed": 1, "camps_stacked": 1,
    },
    "support": {
        "gpm": 300, "xpm": 350, "cs_per_min": 1.5, "last_hits": 45, "denies": 8,
        "kills": 3, "deaths": 8, "assists": 16, "hero_damage": 8000, "tower_damage": 800,
        "hero_healing": 1200, "obs_placed": 12, "sen_placed": 8, "camps_stacked": 3,
    },
}


@dataclass(frozen=True)
class BenchmarkSample:
    """One match's contribution to a hero benchmark."""

    gpm: float
    xpm: float
    cs_per_min: float
    last_hits: float
    denies: float
    kills: float
    deaths: float
    assists: float
    hero_damage: float
    tower_damage: float
    hero_healing: float = 0.0
    obs_placed: float | None = None
    sen_placed: float | None = None
    camps_stacked: float | None = None

    @classmethod
    def from_participant(cls, p: ParticipantRecord, duration_seconds: float) -> BenchmarkSample:
        return cls(
            gpm=p.gold_per_min,
            xpm=p.xp_per_min,
            cs_per_min=cs_per_minute(p.last_hits, duration_seconds),
            last_hits=p.last_hits,
            denies=p.denies,
            kills=p.kills,
            deaths=p.deaths,
            assists=p.assists,
            hero_damage=p.hero_damage,
            tower_damage=p.tower_damage,
            hero_healing=p.hero_healing,
            obs_placed=p.obs_placed,
            sen_placed=p.sen_placed,
            camps_stacked=p.camps_stacked,
        )


class BenchmarkBackend(Protocol):
    """Storage for benchmark rows keyed by hero id.

    ``update`` applies a read-modify-write atomically with respect to other
    writers of the same storage.
    """

    def get(self, hero_id: int) -> HeroBenchmark | None: ...

    def update(self, hero_id: int, fn: Callable[[HeroBenchmark | None], HeroBenchmark]) -> HeroBenchmark: ...

    def all(self) -> list[HeroBenchmark]: ...


class InMemoryBenchmarkBackend:
    """Dict-backed storage, used in tests and for one-off CLI runs."""

    def __init__(self) -> None:
        self._rows: dict[int, HeroBenchmark] = {}

    def get(self, hero_id: int) -> HeroBenchmark | None:
        return self._rows.get(hero_id)

    def update(self, hero_id: int, fn: Callable[[HeroBenchmark | None], HeroBenchmark]) -> HeroBenchmark:
        benchmark = fn(self._rows.get(hero_id))
        self._rows[hero_id] = benchmark
        return benchmark

    def all(self) -> list[HeroBenchmark]:
        return list(self._rows.values())


def apply_sample(benchmark: HeroBenchmark, sample: BenchmarkSample) -> HeroBenchmark:
    """Fold one sample into the running means and bump the match count.

    Optional stats missing from the sample leave their mean and count untouched.
    """
    n = benchmark.total_matches
    updates: dict[str, float | int] = {}
    for avg_field, sample_field in AVERAGED_FIELDS.items():
        value = getattr(sample, sample_field)
        count_field = SAMPLE_COUNT_FIELDS.get(avg_field)
        if count_field is None:
            updates[avg_field] = (getattr(benchmark, avg_field) * n + value) / (n + 1)
        elif value is not None:
            count = getattr(benchmark, count_field)
            updates[avg_field] = (getattr(benchmark, avg_field) * count + value) / (count + 1)
            updates[count_field] = count + 1
    return replace(benchmark, total_matches=n + 1, **updates)


def percentile_thresholds(values: list[float]) -> tuple[float, float] | None:
    """(p50, p75) of raw samples, or None without data."""
    if not values:
        return None
    p50, p75 = np.percentile(np.asarray(values, dtype=float), [50, 75])
    return float(p50), float(p75)


class HeroBenchmarkStore:
    """Service object over a benchmark backend.

    Pass it explicitly to anything that needs benchmarks; there is no
    module-level instance.
    """

    def __init__(self, backend: BenchmarkBackend | None = None):
        self.backend = backend if backend is not None else InMemoryBenchmarkBackend()
        self._locks: dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, hero_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(hero_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[hero_id] = lock
            return lock

    def record_sample(self, hero_id: int, sample: BenchmarkSample, hero_name: str = "") -> HeroBenchmark:
        """Fold one match into the hero's running averages."""
        return self.record_samples(hero_id, [sample], hero_name=hero_name)

    def record_samples(
        self, hero_id: int, samples: list[BenchmarkSample], hero_name: str = ""
    ) -> HeroBenchmark:
        """Fold several matches in order; same result as calling record_sample for each."""

        def fold(stored: HeroBenchmark | None) -> HeroBenchmark:
            current = stored or HeroBenchmark(hero_id=hero_id, hero_name=hero_name)
            if hero_name and not current.hero_name:
                current = replace(current, hero_name=hero_name)
            for sample in samples:
                current = apply_sample(current, sample)
            return current

        with self._lock_for(hero_id):
            current = self.backend.update(hero_id, fold)

        logger.info(
            f"Recorded {len(samples)} benchmark sample(s) for hero {hero_id} "
            f"(N={current.total_matches})"
        )
        return current

    def get_benchmark(self, hero_id: int) -> HeroBenchmark | None:
        """Current aggregate, or None when nothing has been recorded."""
        benchmark = self.backend.get(hero_id)
        if benchmark is None or benchmark.total_matches == 0:
            return None
        return benchmark

    def require_benchmark(self, hero_id: int) -> HeroBenchmark:
        benchmark = self.get_benchmark(hero_id)
        if benchmark is None:
            raise BenchmarkNotFoundError(hero_id)
        return benchmark

    def all_benchmarks(self) -> list[HeroBenchmark]:
        """Every hero with at least one sample, most-sampled first."""
        rows = [b for b in self.backend.all() if b.total_matches > 0]
        return sorted(rows, key=lambda b: b.total_matches, reverse=True)

    def seed_from_template(
        self, hero_id: int, hero_name: str, role: str, virtual_matches: int = 100
    ) -> HeroBenchmark | None:
        """Seed an unseen hero from a role template.

        The template counts as ``virtual_matches`` samples so real matches only
        shift it gradually. Heroes that already have data are left alone and
        None is returned.
        """
        template = ROLE_TEMPLATES.get(role)
        if template is None:
            raise ValueError(f"Unknown role template: {role}")

        seeded: list[HeroBenchmark] = []

        def seed(stored: HeroBenchmark | None) -> HeroBenchmark:
            if stored is not None and stored.total_matches > 0:
                return stored
            benchmark = HeroBenchmark(
                hero_id=hero_id,
                hero_name=hero_name,
                total_matches=virtual_matches,
                **{avg: float(template[sample]) for avg, sample in AVERAGED_FIELDS.items()},
                **{count: virtual_matches for count in SAMPLE_COUNT_FIELDS.values()},
            )
            seeded.append(benchmark)
            return benchmark

        with self._lock_for(hero_id):
            benchmark = self.backend.update(hero_id, seed)

        if not seeded:
            logger.debug(f"Skipping seed for hero {hero_id}: already has data")
            return None
        logger.info(f"Seeded benchmark for {hero_name or hero_id} from '{role}' template")
        return benchmark

    def update_percentiles(
        self,
        hero_id: int,
        gpm_samples: list[float],
        xpm_samples: list[float],
        cs_samples: list[float],
    ) -> HeroBenchmark:
        """Store p50/p75 thresholds computed from raw per-match values."""
        updates: dict[str, float] = {}
        for name, values in (("gpm", gpm_samples), ("xpm", xpm_samples), ("cs_per_min", cs_samples)):
            thresholds = percentile_thresholds(values)
            if thresholds is not None:
                updates[f"p50_{name}"], updates[f"p75_{name}"] = thresholds

        def set_thresholds(stored: HeroBenchmark | None) -> HeroBenchmark:
            if stored is None or stored.total_matches == 0:
                raise BenchmarkNotFoundError(hero_id)
            return replace(stored, **updates)

        with self._lock_for(hero_id):
            return self.backend.update(hero_id, set_thresholds)
