"""Tests for per-hero aggregates, benchmark comparison and hero rankings."""

import pytest

from dotacoach.analysis.benchmarks import HeroBenchmarkStore
from dotacoach.analysis.hero_coaching import (
    HeroCoach,
    HeroPerformance,
    compare_to_benchmark,
    hero_performances,
    hero_score,
    percentile_rating,
    rank_heroes,
)
from dotacoach.analysis.models import HeroBenchmark, PercentileRating
from dotacoach.analysis.sessions import SessionMatch

HOUR = 3600
NOON = 1_699_963_200


def _make_match(i: int, hero_id: int = 1, won: bool = True, **overrides) -> SessionMatch:
    fields = dict(
        match_id=f"{hero_id}-{i}",
        won=won,
        kills=5,
        deaths=5,
        assists=10,
        gold_per_min=450,
        start_time=NOON + i * HOUR,
        duration=2400,
        hero_name="Anti-Mage" if hero_id == 1 else "Crystal Maiden",
        last_hits=150,
        xp_per_min=500,
        hero_id=hero_id,
        role="Core",
    )
    fields.update(overrides)
    return SessionMatch(**fields)


def _performance(hero_id: int = 1, **overrides) -> HeroPerformance:
    fields = dict(
        hero_id=hero_id,
        hero_name=f"Hero {hero_id}",
        games_played=5,
        wins=3,
        win_rate=60.0,
        avg_kills=6.0,
        avg_deaths=6.0,
        avg_assists=10.0,
        avg_kda=16 / 6,
        avg_gpm=450.0,
        avg_xpm=500.0,
        avg_last_hits=150.0,
        avg_denies=5.0,
        avg_hero_damage=15000.0,
        core_games=5,
        support_games=0,
        recent_win_rate=60.0,
    )
    fields.update(overrides)
    return HeroPerformance(**fields)


class TestHeroPerformances:
    """Test per-hero aggregation of a match history."""

    def test_aggregates_one_hero(self):
        matches = [
            _make_match(0, kills=10, deaths=2, assists=4, gold_per_min=600),
            _make_match(1, won=False, kills=2, deaths=8, assists=2, gold_per_min=400),
            _make_match(2, kills=6, deaths=2, assists=6, gold_per_min=500, role="Support"),
            _make_match(3, hero_id=5),
        ]
        heroes = hero_performances(matches)

        assert [h.hero_id for h in heroes] == [1, 5]
        am = heroes[0]
        assert am.hero_name == "Anti-Mage"
        assert am.games_played == 3
        assert am.wins == 2
        assert am.win_rate == pytest.approx(200 / 3)
        assert am.avg_kills == pytest.approx(6.0)
        assert am.avg_deaths == pytest.approx(4.0)
        assert am.avg_kda == pytest.approx(2.5)
        assert am.avg_gpm == pytest.approx(500.0)
        assert am.core_games == 2
        assert am.support_games == 1
        assert am.best_match.match_id == "1-0"
        assert am.best_match.kda == pytest.approx(7.0)
        assert am.worst_match.match_id == "1-1"
        assert am.worst_match.gpm == 400

    def test_recent_win_rate_covers_last_five(self):
        results = [True, True, False, False, True, False, True]
        heroes = hero_performances([_make_match(i, won=won) for i, won in enumerate(results)])

        assert heroes[0].win_rate == pytest.approx(400 / 7)
        assert heroes[0].recent_win_rate == pytest.approx(40.0)

    def test_single_match_has_no_worst(self):
        hero = hero_performances([_make_match(0)])[0]
        assert hero.best_match is not None
        assert hero.worst_match is None

    def test_missing_name_falls_back_to_id(self):
        hero = hero_performances([_make_match(0, hero_id=7, hero_name="")])[0]
        assert hero.hero_name == "Hero 7"

    def test_empty_history(self):
        assert hero_performances([]) == []

    def test_to_dict_nests_matches(self):
        data = hero_performances([_make_match(0, kills=9), _make_match(1)])[0].to_dict()
        assert data["best_match"]["match_id"] == "1-0"


class TestPercentileRating:
    """Test the GPM rating against stored thresholds."""

    BENCH = HeroBenchmark(hero_id=1, total_matches=50, avg_gpm=500, p50_gpm=500, p75_gpm=600)

    @pytest.mark.parametrize(
        "gpm, diff, expected",
        [
            (650, 30, PercentileRating.TOP_25),
            (600, 20, PercentileRating.TOP_25),
            (550, 10, PercentileRating.ABOVE_AVERAGE),
            (440, -12, PercentileRating.BELOW_AVERAGE),
            (480, -4, PercentileRating.AVERAGE),
        ],
    )
    def test_thresholds(self, gpm, diff, expected):
        assert percentile_rating(gpm, diff, self.BENCH) is expected

    def test_without_thresholds_only_mean_difference_counts(self):
        assert percentile_rating(1000, 50, None) is PercentileRating.AVERAGE
        assert percentile_rating(300, -33, None) is PercentileRating.BELOW_AVERAGE


class TestCompareToBenchmark:
    """Test percent differences, strengths and weaknesses."""

    def test_fallback_benchmark_when_none_recorded(self):
        comparison = compare_to_benchmark(_performance(), None)

        assert comparison.benchmarks["avg_gpm"] == 450
        assert comparison.benchmarks["avg_hero_damage"] == 15000
        assert comparison.benchmarks["p50_gpm"] is None
        assert all(diff == pytest.approx(0.0) for diff in comparison.comparison.values())
        assert comparison.percentile_rating is PercentileRating.AVERAGE
        assert comparison.strengths == []
        assert comparison.weaknesses == []

    def test_strengths_and_weaknesses(self):
        bench = HeroBenchmark(
            hero_id=1,
            total_matches=20,
            avg_gpm=500,
            avg_xpm=500,
            avg_kills=5,
            avg_deaths=5,
            avg_assists=10,
            avg_last_hits=200,
            avg_hero_damage=20000,
        )
        player = _performance(
            avg_gpm=600,
            avg_xpm=400,
            avg_kills=5,
            avg_deaths=5,
            avg_assists=10,
            avg_kda=3.0,
            avg_last_hits=200,
            avg_hero_damage=25000,
        )
        comparison = compare_to_benchmark(player, bench)

        assert comparison.comparison["gpm_diff"] == pytest.approx(20.0)
        assert comparison.comparison["xpm_diff"] == pytest.approx(-20.0)
        assert comparison.comparison["kda_diff"] == pytest.approx(0.0)
        assert comparison.strengths == ["Excellent farming efficiency", "High damage output"]
        assert comparison.weaknesses == ["Falling behind in levels"]

    def test_zero_average_uses_fallback(self):
        bench = HeroBenchmark(hero_id=1, total_matches=3, avg_gpm=450, avg_hero_damage=0.0)
        comparison = compare_to_benchmark(_performance(avg_hero_damage=12000), bench)

        assert comparison.benchmarks["avg_hero_damage"] == 15000
        assert comparison.comparison["hero_damage_diff"] == pytest.approx(-20.0)
        assert "Lower damage than expected" in comparison.weaknesses

    def test_to_dict_uses_rating_value(self):
        assert compare_to_benchmark(_performance(), None).to_dict()["percentile_rating"] == "average"


class TestRankHeroes:
    """Test hero scoring and best / needs-work lists."""

    def test_score_blends_win_rate_kda_and_gpm(self):
        assert hero_score(_performance(win_rate=60, avg_kda=3, avg_gpm=500)) == pytest.approx(49.0)

    def test_kda_contribution_is_capped(self):
        assert hero_score(_performance(win_rate=0, avg_kda=8, avg_gpm=0)) == pytest.approx(15.0)

    def test_best_and_needs_work(self):
        heroes = [
            _performance(hero_id=i + 1, win_rate=rate, avg_kda=2.0, avg_gpm=400, avg_deaths=7.0)
            for i, rate in enumerate([80, 70, 60, 50, 40])
        ]
        ranking = rank_heroes(heroes)

        assert [h.hero_id for h in ranking.best_heroes] == [1, 2, 3]
        assert [h.hero_id for h in ranking.needs_work_heroes] == [5, 4]
        assert ranking.best_heroes[0].reason == "80% win rate over 5 games"
        assert ranking.needs_work_heroes[0].reason == "Only 40% win rate"
        assert ranking.needs_work_heroes[1].reason == "7.0 avg deaths - dying too often"

    def test_low_win_rate_best_hero_cites_kda(self):
        ranking = rank_heroes([_performance(win_rate=50, avg_kda=4.4)])
        assert ranking.best_heroes[0].reason == "Strong 4.4 KDA average"

    def test_heroes_below_minimum_games_excluded(self):
        ranking = rank_heroes([_performance(hero_id=1), _performance(hero_id=2, games_played=2)])
        assert [h.hero_id for h in ranking.best_heroes] == [1]
        assert ranking.needs_work_heroes == []


class TestHeroCoach:
    """Test the coach over a history and a benchmark store."""

    def test_comparison_reads_store_percentiles(self):
        store = HeroBenchmarkStore()
        store.seed_from_template(1, "Anti-Mage", "carry")
        store.update_percentiles(1, [400, 500, 600], [500, 600, 700], [5.0, 6.0, 7.0])
        matches = [_make_match(i, gold_per_min=600) for i in range(3)]

        comparison = HeroCoach(store).get_hero_comparison(matches, 1)

        assert comparison.games_played == 3
        assert comparison.benchmarks["p75_gpm"] == 550
        assert comparison.percentile_rating is PercentileRating.TOP_25

    def test_unplayed_hero(self):
        assert HeroCoach().get_hero_comparison([_make_match(0)], 99) is None

    def test_rankings_and_listing(self):
        matches = [_make_match(i, won=i % 2 == 0) for i in range(4)] + [_make_match(i, hero_id=5) for i in range(2)]
        coach = HeroCoach()

        assert [h.hero_id for h in coach.get_all_heroes(matches)] == [1, 5]
        assert [h.hero_id for h in coach.get_rankings(matches).best_heroes] == [1]
