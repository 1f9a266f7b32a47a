"""Benchmark scenarios: a baseline and an optimized variant of one query."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from cache.query_cache import QueryCache
from config import BENCH_KEYWORD
from db.connection import ConnectionPool, SessionFactory
from db.repositories.blog_repo import BlogRepository
from db.scope import SessionScope
from query.descriptor import query
from query.strategies import (
    CachedStrategy,
    DirectStrategy,
    ProjectedStrategy,
    TrackedStrategy,
)


@dataclass
class BenchContext:
    """Shared objects every variant runs against, built once per run."""
    pool: ConnectionPool
    factory: SessionFactory
    cache: QueryCache = field(default_factory=QueryCache)
    keyword: str = BENCH_KEYWORD

    def round_trips(self) -> int:
        return self.pool.round_trips + self.factory.round_trips


@dataclass
class Variant:
    name: str
    run: Callable[[BenchContext], Any]


@dataclass
class Scenario:
    name: str
    description: str
    baseline: Variant
    optimized: Variant
    setup: Optional[Callable[[BenchContext], None]] = None


def _tracked(ctx: BenchContext):
    with SessionScope(ctx.pool) as scope:
        return scope.execute(query("blog"), TrackedStrategy())


def _untracked(ctx: BenchContext):
    with SessionScope(ctx.pool) as scope:
        return scope.execute(query("blog"))


def _unpooled_first(ctx: BenchContext):
    with SessionScope(ctx.factory) as scope:
        return BlogRepository(scope).first()


def _pooled_first(ctx: BenchContext):
    with SessionScope(ctx.pool) as scope:
        return BlogRepository(scope).first()


def _full_entities(ctx: BenchContext):
    with SessionScope(ctx.pool) as scope:
        return scope.execute(query("blog"))


def _projected(ctx: BenchContext):
    with SessionScope(ctx.pool) as scope:
        return scope.execute(query("blog").select("name", "url"), ProjectedStrategy())


def _single_include(ctx: BenchContext):
    with SessionScope(ctx.pool) as scope:
        return scope.execute(query("blog").include_related("posts").as_single())


def _split_include(ctx: BenchContext):
    with SessionScope(ctx.pool) as scope:
        return scope.execute(query("blog").include_related("posts").as_split())


_AUTHOR_QUERY = query("blog").where("author", "contains", "Author")


def _uncached(ctx: BenchContext):
    with SessionScope(ctx.pool, ctx.cache) as scope:
        return scope.execute(_AUTHOR_QUERY, DirectStrategy())


def _cached(ctx: BenchContext):
    with SessionScope(ctx.pool, ctx.cache) as scope:
        return scope.execute(_AUTHOR_QUERY, CachedStrategy(ctx.cache))


def _client_filter(ctx: BenchContext):
    with SessionScope(ctx.pool) as scope:
        return BlogRepository(scope).filter_client_side(ctx.keyword)


def _server_filter(ctx: BenchContext):
    with SessionScope(ctx.pool) as scope:
        return BlogRepository(scope).filter_server_side(ctx.keyword)


SCENARIOS: Dict[str, Scenario] = {
    s.name: s for s in [
        Scenario(
            "tracking",
            "Tracked entities vs untracked reads of every blog",
            Variant("tracked", _tracked),
            Variant("untracked", _untracked),
        ),
        Scenario(
            "pooling",
            "Opening a session per request vs borrowing a pooled one",
            Variant("unpooled", _unpooled_first),
            Variant("pooled", _pooled_first),
        ),
        Scenario(
            "projection",
            "Full entities vs two projected fields",
            Variant("full", _full_entities),
            Variant("projected", _projected),
        ),
        Scenario(
            "split",
            "Blogs with posts in one joined round trip vs a split fetch",
            Variant("single", _single_include),
            Variant("split", _split_include),
        ),
        Scenario(
            "caching",
            "Repeated filtered query with and without the result cache",
            Variant("uncached", _uncached),
            Variant("cached", _cached),
            setup=lambda ctx: ctx.cache.clear(),
        ),
        Scenario(
            "filtering",
            "Keyword filter evaluated in Python vs pushed to the store",
            Variant("client-side", _client_filter),
            Variant("server-side", _server_filter),
        ),
    ]
}


def get_scenarios(names: Optional[List[str]] = None) -> List[Scenario]:
    """Scenarios by name, all of them when names is empty."""
    if not names:
        return list(SCENARIOS.values())
    unknown = [n for n in names if n not in SCENARIOS]
    if unknown:
        raise ValueError(f"Unknown scenarios: {', '.join(unknown)}")
    return [SCENARIOS[n] for n in names]
