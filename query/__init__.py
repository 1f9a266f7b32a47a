"""Query descriptors, SQL compilation and execution strategies.

Usage:
    from query import query, CachedStrategy, ProjectedStrategy, DirectStrategy

    descriptor = query("blog").where("rating", "ge", 5).select("name", "url")
    strategy = CachedStrategy(cache, ProjectedStrategy(DirectStrategy()))
    with SessionScope(pool, cache) as scope:
        result = scope.execute(descriptor, strategy)
"""

from .descriptor import (
    ClientPredicate,
    FetchMode,
    Predicate,
    QueryDescriptor,
    query,
)
from .result import ResultSet
from .strategies import (
    BatchedStrategy,
    CachedStrategy,
    DirectStrategy,
    ProjectedStrategy,
    QueryStrategy,
    TableStats,
    TrackedStrategy,
    projection_type,
)

__all__ = [
    "ClientPredicate",
    "FetchMode",
    "Predicate",
    "QueryDescriptor",
    "query",
    "ResultSet",
    "BatchedStrategy",
    "CachedStrategy",
    "DirectStrategy",
    "ProjectedStrategy",
    "QueryStrategy",
    "TableStats",
    "TrackedStrategy",
    "projection_type",
]
