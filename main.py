#!/usr/bin/env python3
"""BlogBench - data-access strategy benchmarks over a seeded blogging database."""

import argparse
import os
import sys
import tempfile

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from rich.console import Console
from rich.table import Table

from bench import BenchContext, get_scenarios, run_scenario, SCENARIOS
from cache.query_cache import QueryCache
from config import (
    BENCH_ITERATIONS,
    BENCH_KEYWORD,
    BENCH_WARMUP,
    POOL_CAPACITY,
    SEED_BLOGS,
    SEED_POSTS_PER_BLOG,
)
from db import BlogBenchError, ConnectionPool, SeedLoader, SessionFactory
from utils.formatting import format_bytes, format_duration, format_ratio
from utils.logger import log_exception, setup_logger


def list_scenarios():
    """List available benchmark scenarios."""
    console = Console()

    table = Table(title="Available Scenarios")
    table.add_column("Scenario", style="cyan")
    table.add_column("Baseline")
    table.add_column("Optimized", style="green")
    table.add_column("Description", style="dim")

    for scenario in SCENARIOS.values():
        table.add_row(
            scenario.name,
            scenario.baseline.name,
            scenario.optimized.name,
            scenario.description,
        )

    console.print(table)


def render_results(results) -> Table:
    """Build the results table."""
    table = Table(title="Benchmark Results")
    table.add_column("Scenario", style="cyan")
    table.add_column("Variant")
    table.add_column("Mean", justify="right")
    table.add_column("Best", justify="right")
    table.add_column("Peak alloc", justify="right")
    table.add_column("Round trips/op", justify="right")
    table.add_column("Speedup", justify="right", style="green")

    for result in results:
        for timing, speedup in (
            (result.baseline, ""),
            (result.optimized, format_ratio(result.baseline.mean, result.optimized.mean)),
        ):
            table.add_row(
                result.scenario.name if timing is result.baseline else "",
                timing.name,
                format_duration(timing.mean),
                format_duration(timing.best),
                format_bytes(timing.peak_bytes),
                f"{timing.round_trips_per_op:.1f}",
                speedup,
            )
        table.add_section()

    return table


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="BlogBench - compare data-access strategies on a seeded database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                         # Run every scenario
  python main.py tracking caching        # Run selected scenarios
  python main.py -n 100 --blogs 5000     # More iterations, larger dataset
  python main.py --list                  # List available scenarios

Scenarios:
  tracking     Tracked vs untracked reads
  pooling      Unpooled vs pooled sessions
  projection   Full entities vs projected fields
  split        Joined vs split fetch of a related collection
  caching      Uncached vs cached repeated query
  filtering    Client-side vs server-side keyword filter
        """,
    )

    parser.add_argument(
        "scenarios",
        nargs="*",
        metavar="SCENARIO",
        help="Scenarios to run (default: all)",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List available scenarios and exit",
    )
    parser.add_argument(
        "--db",
        help="Database file (default: a temporary file)",
    )
    parser.add_argument(
        "--blogs",
        type=int,
        default=SEED_BLOGS,
        help=f"Blogs to seed (default: {SEED_BLOGS})",
    )
    parser.add_argument(
        "--posts",
        type=int,
        default=SEED_POSTS_PER_BLOG,
        help=f"Posts per blog (default: {SEED_POSTS_PER_BLOG})",
    )
    parser.add_argument(
        "-n", "--iterations",
        type=int,
        default=BENCH_ITERATIONS,
        help=f"Timed iterations per variant (default: {BENCH_ITERATIONS})",
    )
    parser.add_argument(
        "--warmup",
        type=int,
        default=BENCH_WARMUP,
        help=f"Untimed iterations per variant (default: {BENCH_WARMUP})",
    )
    parser.add_argument(
        "--pool-size",
        type=int,
        default=POOL_CAPACITY,
        help=f"Pool capacity (default: {POOL_CAPACITY})",
    )
    parser.add_argument(
        "-k", "--keyword",
        default=BENCH_KEYWORD,
        help=f"Keyword for the filtering scenario (default: '{BENCH_KEYWORD}')",
    )

    args = parser.parse_args()

    if args.list:
        list_scenarios()
        return 0

    console = Console()
    setup_logger()

    try:
        scenarios = get_scenarios(args.scenarios)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}", style="red")
        return 1

    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = args.db or os.path.join(tmpdir, "blogging.db")

        try:
            with ConnectionPool(db_path=db_path, capacity=args.pool_size) as pool:
                console.print(f"[cyan]Seeding {args.blogs} blogs with {args.posts} posts each...[/cyan]")
                SeedLoader(pool).seed(args.blogs, posts_per_blog=args.posts)

                ctx = BenchContext(
                    pool=pool,
                    factory=SessionFactory(db_path),
                    cache=QueryCache(),
                    keyword=args.keyword,
                )

                results = []
                for scenario in scenarios:
                    console.print(f"[dim]Running {scenario.name}...[/dim]")
                    results.append(run_scenario(scenario, ctx, args.iterations, args.warmup))

                console.print(render_results(results))
                console.print(f"[dim]Pool: {pool.stats}[/dim]")
                console.print(f"[dim]Cache: {ctx.cache.get_stats()}[/dim]")

        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            return 130
        except (BlogBenchError, ValueError) as e:
            log_exception("Benchmark run failed")
            console.print(f"[bold red]Error:[/bold red] {e}", style="red")
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
