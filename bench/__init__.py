"""Benchmark scenarios comparing baseline and optimized query variants."""

from .runner import ScenarioResult, VariantTiming, run_scenario, time_variant
from .scenarios import SCENARIOS, BenchContext, Scenario, Variant, get_scenarios

__all__ = [
    "ScenarioResult",
    "VariantTiming",
    "run_scenario",
    "time_variant",
    "SCENARIOS",
    "BenchContext",
    "Scenario",
    "Variant",
    "get_scenarios",
]
