"""Tests for the SQLite persistence layer."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from dotacoach.analysis.benchmarks import BenchmarkSample, HeroBenchmarkStore
from dotacoach.analysis.models import HeroBenchmark
from dotacoach.infra.database import DatabaseManager, SqlBenchmarkBackend


@pytest.fixture
def db(tmp_path):
    return DatabaseManager(tmp_path / "coach.db")


def _make_result(match_id="100", slot=0, start_time=1_700_000_000, won=True, insights=None) -> dict:
    return {
        "match_id": match_id,
        "player_slot": slot,
        "hero_id": 1,
        "hero_name": "Anti-Mage",
        "role": "Core",
        "won": won,
        "insights": insights or [],
        "player": {
            "hero_id": 1,
            "hero_name": "Anti-Mage",
            "won": won,
            "kills": 7,
            "deaths": 3,
            "assists": 5,
            "last_hits": 280,
            "denies": 12,
            "hero_damage": 21000,
            "gold_per_min": 590.0,
            "xp_per_min": 640.0,
            "start_time": start_time,
            "duration": 2400.0,
        },
    }


class TestResultCache:
    """Test the (match, slot) analysis cache."""

    def test_miss(self, db):
        assert db.get_cached_result("100", 0) is None

    def test_save_and_load(self, db):
        db.save_result(_make_result(), user_id="alice")
        cached = db.get_cached_result("100", 0)
        assert cached["hero_name"] == "Anti-Mage"
        assert cached["player"]["kills"] == 7

    def test_slot_is_part_of_key(self, db):
        db.save_result(_make_result(slot=0))
        assert db.get_cached_result("100", 128) is None

    def test_save_replaces_existing(self, db):
        db.save_result(_make_result(won=True))
        db.save_result(_make_result(won=False))

        assert db.get_cached_result("100", 0)["won"] is False
        assert db.get_global_stats()["analyzed_matches"] == 1


class TestMatchHistory:
    def test_history_oldest_first(self, db):
        db.save_result(_make_result(match_id="2", start_time=2000), user_id="alice")
        db.save_result(_make_result(match_id="1", start_time=1000), user_id="alice")
        db.save_result(_make_result(match_id="3", start_time=3000), user_id="bob")

        history = db.get_match_history("alice")
        assert [m.match_id for m in history] == ["1", "2"]
        assert history[0].gold_per_min == 590.0
        assert history[0].last_hits == 280
        assert len(db.get_match_history()) == 3

    def test_history_carries_hero_fields(self, db):
        db.save_result(_make_result(), user_id="alice")
        match = db.get_match_history("alice")[0]
        assert match.hero_id == 1
        assert match.role == "Core"
        assert match.denies == 12
        assert match.hero_damage == 21000

    def test_history_for_one_hero_across_users(self, db):
        db.save_result(_make_result(match_id="1", start_time=1000), user_id="alice")
        db.save_result(_make_result(match_id="2", start_time=2000), user_id="bob")
        other = _make_result(match_id="3", start_time=3000)
        other["player"]["hero_id"] = 5
        db.save_result(other, user_id="alice")

        assert [m.match_id for m in db.get_match_history(hero_id=1)] == ["1", "2"]
        assert [m.match_id for m in db.get_match_history("alice", hero_id=5)] == ["3"]

    def test_insights_by_match(self, db):
        insight = {
            "insight_type": "mistake",
            "category": "vision",
            "severity": "high",
            "title": "Insufficient ward placement",
            "description": "d",
            "recommendation": "r",
            "game_time": None,
        }
        db.save_result(_make_result(insights=[insight]), user_id="alice")

        insights = db.get_insights_by_match("alice")
        assert insights["100"][0].title == "Insufficient ward placement"


class TestHeroStatistics:
    def test_update_and_get(self, db):
        seen = []

        def create(stored):
            seen.append(stored)
            return HeroBenchmark(hero_id=1, hero_name="Anti-Mage", total_matches=3, avg_gpm=580, obs_samples=2)

        db.update_hero_statistic(1, create)
        bench = db.get_hero_statistic(1)
        assert seen == [None]
        assert bench.total_matches == 3
        assert bench.avg_gpm == 580
        assert bench.obs_samples == 2
        assert bench.p50_gpm is None

    def test_failed_update_writes_nothing(self, db):
        def fail(stored):
            raise ValueError("boom")

        with pytest.raises(ValueError):
            db.update_hero_statistic(1, fail)
        assert db.get_hero_statistic(1) is None

    def test_unknown_hero(self, db):
        assert db.get_hero_statistic(999) is None

    def test_store_over_sql_backend(self, db):
        store = HeroBenchmarkStore(SqlBenchmarkBackend(db))
        sample = BenchmarkSample(
            gpm=600, xpm=700, cs_per_min=8, last_hits=320, denies=10,
            kills=9, deaths=2, assists=7, hero_damage=22000, tower_damage=5000,
        )
        store.record_sample(1, sample, hero_name="Anti-Mage")
        store.record_sample(1, sample)

        reloaded = HeroBenchmarkStore(SqlBenchmarkBackend(DatabaseManager(db.db_path)))
        bench = reloaded.require_benchmark(1)
        assert bench.total_matches == 2
        assert bench.avg_cs_per_min == pytest.approx(8)
        assert bench.hero_name == "Anti-Mage"
        assert db.get_global_stats()["heroes_benchmarked"] == 1

    def test_separate_managers_do_not_lose_increments(self, db):
        """Two managers on one file stand in for two CLI processes."""
        other = DatabaseManager(db.db_path)
        stores = [HeroBenchmarkStore(SqlBenchmarkBackend(db)), HeroBenchmarkStore(SqlBenchmarkBackend(other))]
        sample = BenchmarkSample(
            gpm=500, xpm=600, cs_per_min=7, last_hits=280, denies=8,
            kills=6, deaths=4, assists=9, hero_damage=18000, tower_damage=3000,
        )

        with ThreadPoolExecutor(max_workers=4) as executor:
            list(executor.map(lambda i: stores[i % 2].record_sample(5, sample), range(40)))

        bench = db.get_hero_statistic(5)
        assert bench.total_matches == 40
        assert bench.avg_gpm == pytest.approx(500)

    def test_percentiles_persist(self, db):
        store = HeroBenchmarkStore(SqlBenchmarkBackend(db))
        store.seed_from_template(5, "Mirana", "support")
        store.update_percentiles(5, [300, 400, 500], [400, 500], [])

        bench = db.get_hero_statistic(5)
        assert bench.p50_gpm == pytest.approx(400)
        assert bench.p75_xpm == pytest.approx(475)
        assert bench.p50_cs_per_min is None
