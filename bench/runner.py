"""Timed loop over benchmark variants."""

import logging
import time
import tracemalloc
from dataclasses import dataclass
from typing import List

from config import BENCH_ITERATIONS, BENCH_WARMUP
from .scenarios import BenchContext, Scenario, Variant

logger = logging.getLogger(__name__)


@dataclass
class VariantTiming:
    """Timing of one variant."""
    name: str
    iterations: int
    mean: float
    best: float
    peak_bytes: int
    round_trips_per_op: float


@dataclass
class ScenarioResult:
    scenario: Scenario
    baseline: VariantTiming
    optimized: VariantTiming

    @property
    def speedup(self) -> float:
        if self.optimized.mean <= 0:
            return 0.0
        return self.baseline.mean / self.optimized.mean


def time_variant(
    variant: Variant,
    ctx: BenchContext,
    iterations: int = BENCH_ITERATIONS,
    warmup: int = BENCH_WARMUP,
) -> VariantTiming:
    """Run warmup, then timed iterations, then one traced iteration for memory."""
    if iterations <= 0:
        raise ValueError(f"iterations must be positive, got {iterations}")

    for _ in range(warmup):
        variant.run(ctx)

    samples: List[float] = []
    trips_before = ctx.round_trips()
    for _ in range(iterations):
        start = time.perf_counter()
        variant.run(ctx)
        samples.append(time.perf_counter() - start)
    trips = ctx.round_trips() - trips_before

    tracemalloc.start()
    try:
        variant.run(ctx)
        _, peak = tracemalloc.get_traced_memory()
    finally:
        tracemalloc.stop()

    timing = VariantTiming(
        name=variant.name,
        iterations=iterations,
        mean=sum(samples) / len(samples),
        best=min(samples),
        peak_bytes=peak,
        round_trips_per_op=trips / iterations,
    )
    logger.debug(f"{variant.name}: mean={timing.mean:.6f}s best={timing.best:.6f}s peak={peak}B")
    return timing


def run_scenario(
    scenario: Scenario,
    ctx: BenchContext,
    iterations: int = BENCH_ITERATIONS,
    warmup: int = BENCH_WARMUP,
) -> ScenarioResult:
    """Time the baseline and the optimized variant of a scenario."""
    logger.info(f"Running scenario {scenario.name}")
    if scenario.setup is not None:
        scenario.setup(ctx)
    baseline = time_variant(scenario.baseline, ctx, iterations, warmup)
    optimized = time_variant(scenario.optimized, ctx, iterations, warmup)
    return ScenarioResult(scenario=scenario, baseline=baseline, optimized=optimized)
