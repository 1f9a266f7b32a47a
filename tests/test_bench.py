"""Tests for bench package."""

import pytest

from bench import SCENARIOS, BenchContext, Variant, get_scenarios, run_scenario, time_variant
from cache.query_cache import QueryCache
from db.connection import SessionFactory


@pytest.fixture
def bench_ctx(seeded_pool, temp_db_path):
    """Benchmark context over the seeded pool."""
    return BenchContext(
        pool=seeded_pool,
        factory=SessionFactory(temp_db_path),
        cache=QueryCache(),
        keyword="Blog Name 1",
    )


class TestScenarios:
    """Tests for the scenario registry."""

    def test_all_registered(self):
        """Test every comparison is available."""
        assert set(SCENARIOS) == {"tracking", "pooling", "projection", "split", "caching", "filtering"}

    def test_get_scenarios_default(self):
        """Test no names selects everything."""
        assert len(get_scenarios()) == len(SCENARIOS)

    def test_get_scenarios_by_name(self):
        """Test selection keeps the requested order."""
        names = [s.name for s in get_scenarios(["caching", "tracking"])]
        assert names == ["caching", "tracking"]

    def test_get_scenarios_unknown(self):
        """Test unknown names are rejected."""
        with pytest.raises(ValueError, match="nosuch"):
            get_scenarios(["tracking", "nosuch"])

    @pytest.mark.parametrize("name", sorted(SCENARIOS))
    def test_variants_agree(self, bench_ctx, name):
        """Test baseline and optimized variants return the same rows."""
        scenario = SCENARIOS[name]
        if scenario.setup:
            scenario.setup(bench_ctx)
        baseline = scenario.baseline.run(bench_ctx)
        optimized = scenario.optimized.run(bench_ctx)

        if name == "projection":
            assert [(b.name, b.url) for b in baseline] == [tuple(r) for r in optimized]
        else:
            assert baseline == optimized
        assert bench_ctx.pool.in_flight_count == 0


class TestRunner:
    """Tests for the timing loop."""

    def test_time_variant(self, bench_ctx):
        """Test timings and round trips are recorded."""
        timing = time_variant(SCENARIOS["tracking"].optimized, bench_ctx, iterations=3, warmup=1)

        assert timing.name == "untracked"
        assert timing.iterations == 3
        assert 0 < timing.best <= timing.mean
        assert timing.peak_bytes > 0
        assert timing.round_trips_per_op == 1.0

    def test_warmup_runs(self, bench_ctx):
        """Test warmup iterations run but aren't timed."""
        calls = []
        variant = Variant("count", lambda ctx: calls.append(1))
        timing = time_variant(variant, bench_ctx, iterations=2, warmup=3)

        assert len(calls) == 3 + 2 + 1
        assert timing.iterations == 2

    def test_invalid_iterations(self, bench_ctx):
        """Test iterations must be positive."""
        with pytest.raises(ValueError):
            time_variant(SCENARIOS["tracking"].baseline, bench_ctx, iterations=0)

    def test_cached_saves_round_trips(self, bench_ctx):
        """Test the cached variant reaches the store less often."""
        result = run_scenario(SCENARIOS["caching"], bench_ctx, iterations=3, warmup=1)

        assert result.baseline.round_trips_per_op == 1.0
        assert result.optimized.round_trips_per_op == 0.0
        assert result.speedup > 0

    def test_split_round_trips(self, bench_ctx):
        """Test the split variant costs two round trips per run."""
        result = run_scenario(SCENARIOS["split"], bench_ctx, iterations=2, warmup=0)

        assert result.baseline.round_trips_per_op == 1.0
        assert result.optimized.round_trips_per_op == 2.0

    def test_pooling_counts_unpooled_sessions(self, bench_ctx):
        """Test round trips of closed unpooled sessions are counted."""
        result = run_scenario(SCENARIOS["pooling"], bench_ctx, iterations=2, warmup=0)

        assert result.baseline.round_trips_per_op == 1.0
        assert bench_ctx.factory.opened == 3
