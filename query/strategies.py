"""Query execution strategies.

A strategy turns a QueryDescriptor into one or more store round trips on
a scope's session. Strategies compose by wrapping: each decorating
strategy is built around the next one and falls back to it, e.g.

    CachedStrategy(cache, ProjectedStrategy(DirectStrategy()))

DirectStrategy is the terminal strategy. Its results are never tracked.
"""

import logging
from abc import ABC, abstractmethod
from collections import namedtuple
from dataclasses import replace
from functools import lru_cache
from typing import TYPE_CHECKING, Callable, Dict, Optional, Tuple

from config import SPLIT_FETCH_THRESHOLD
from db.errors import ReadOnlyResult
from db.models import ENTITY_TYPES, get_entity_type
from .compiler import (
    CHILD_PREFIX,
    PARENT_PREFIX,
    compile_children,
    compile_count,
    compile_joined,
    compile_root,
    split_predicates,
)
from .descriptor import FetchMode, QueryDescriptor
from .result import ResultSet

if TYPE_CHECKING:
    from cache.query_cache import QueryCache
    from db.scope import SessionScope
    from db.session import Session

logger = logging.getLogger(__name__)


class QueryStrategy(ABC):
    """Execution policy applied to a descriptor before it reaches the store."""

    @abstractmethod
    def execute(self, descriptor: QueryDescriptor, scope: "SessionScope") -> ResultSet:
        pass

    def describe(self) -> str:
        return type(self).__name__


class DecoratingStrategy(QueryStrategy):
    """A strategy that wraps another one and falls back to it."""

    def __init__(self, fallback: Optional[QueryStrategy] = None):
        self.fallback = fallback if fallback is not None else DirectStrategy()

    def describe(self) -> str:
        return f"{type(self).__name__}({self.fallback.describe()})"


class DirectStrategy(QueryStrategy):
    """Untracked execution straight against the session."""

    def execute(self, descriptor: QueryDescriptor, scope: "SessionScope") -> ResultSet:
        if descriptor.fields and descriptor.include is not None:
            raise ValueError("Related collections can't be projected")
        session = scope.session
        before = session.round_trips
        _, client = split_predicates(descriptor)
        entity_type = get_entity_type(descriptor.entity)

        if descriptor.include is None:
            sql, params = compile_root(descriptor, columns=descriptor.fields or None)
            rows = session.fetch(sql, params, cancel=scope.cancel)
            if descriptor.fields:
                shape = projection_type(descriptor.entity, descriptor.fields)
                items = [shape(*(row[f] for f in descriptor.fields)) for row in rows]
            else:
                items = [entity_type.from_row(row) for row in rows]
        elif descriptor.fetch_mode == FetchMode.SPLIT:
            items = self._split_fetch(descriptor, session, scope)
        else:
            items = self._joined_fetch(descriptor, session, scope)

        if client:
            items = [item for item in items if all(p(item) for p in client)]
            if descriptor.limit is not None:
                items = items[:descriptor.limit]

        return ResultSet(
            entity=descriptor.entity,
            rows=tuple(items),
            projected=descriptor.is_projection,
            round_trips=session.round_trips - before,
        )

    def _joined_fetch(self, descriptor, session, scope) -> list:
        parent = get_entity_type(descriptor.entity)
        relation = parent.relations[descriptor.include]
        child = get_entity_type(relation.target)

        sql, params = compile_joined(descriptor)
        rows = session.fetch(sql, params, cancel=scope.cancel)

        parents: Dict[object, object] = {}
        for row in rows:
            key = row[PARENT_PREFIX + parent.primary_key]
            entity = parents.get(key)
            if entity is None:
                entity = parent.from_row(row, prefix=PARENT_PREFIX)
                parents[key] = entity
            if row[CHILD_PREFIX + child.primary_key] is not None:
                getattr(entity, descriptor.include).append(child.from_row(row, prefix=CHILD_PREFIX))
        return list(parents.values())

    def _split_fetch(self, descriptor, session, scope) -> list:
        parent = get_entity_type(descriptor.entity)
        relation = parent.relations[descriptor.include]
        child = get_entity_type(relation.target)

        sql, params = compile_root(descriptor)
        parents = [parent.from_row(row) for row in session.fetch(sql, params, cancel=scope.cancel)]
        by_key = {parent.key_of(p): p for p in parents}

        sql, params = compile_children(descriptor)
        for row in session.fetch(sql, params, cancel=scope.cancel):
            owner = by_key.get(row[relation.foreign_key])
            if owner is not None:
                getattr(owner, descriptor.include).append(child.from_row(row))
        return parents


@lru_cache(maxsize=None)
def projection_type(entity: str, fields: Tuple[str, ...]):
    """Immutable row type carrying only the projected fields."""
    name = f"{get_entity_type(entity).cls.__name__}Projection"
    return namedtuple(name, fields)


class TrackedStrategy(DecoratingStrategy):
    """Registers fetched entities with the scope for write-back."""

    def execute(self, descriptor: QueryDescriptor, scope: "SessionScope") -> ResultSet:
        if descriptor.is_projection:
            raise ReadOnlyResult("Projected rows can't be tracked")
        result = self.fallback.execute(descriptor, scope)
        if result.projected:
            raise ReadOnlyResult("Projected rows can't be tracked")

        rows = []
        for fetched in result.rows:
            entity = scope.tracker.attach(fetched)
            if descriptor.include is not None:
                # The tracked instance may predate this fetch; children come from the fresh row
                children = [scope.tracker.attach(child) for child in getattr(fetched, descriptor.include)]
                setattr(entity, descriptor.include, children)
            rows.append(entity)
        return replace(result, rows=tuple(rows), tracked=True)


class ProjectedStrategy(DecoratingStrategy):
    """Fetches only the fields named in the descriptor."""

    def __init__(self, fallback: Optional[QueryStrategy] = None, fields: Tuple[str, ...] = ()):
        super().__init__(fallback)
        self.fields = tuple(fields)

    def execute(self, descriptor: QueryDescriptor, scope: "SessionScope") -> ResultSet:
        if self.fields and not descriptor.fields:
            descriptor = descriptor.select(*self.fields)
        if not descriptor.fields:
            raise ValueError("Projection needs at least one field")
        if descriptor.include is not None:
            raise ValueError("Related collections can't be projected")
        entity_type = get_entity_type(descriptor.entity)
        unknown = [f for f in descriptor.fields if not entity_type.has_column(f)]
        if unknown:
            raise ValueError(f"{descriptor.entity} has no fields {unknown}")
        return self.fallback.execute(descriptor, scope)


class TableStats:
    """Row counts used to estimate join multiplication.

    Counts are only read on refresh(), never while a query is measured.
    """

    def __init__(self, counts: Optional[Dict[str, int]] = None):
        self.counts: Dict[str, int] = dict(counts or {})

    def refresh(self, session: "Session") -> Dict[str, int]:
        for name in ENTITY_TYPES:
            self.counts[name] = session.fetch(compile_count(name))[0][0]
        logger.debug(f"Table stats refreshed: {self.counts}")
        return dict(self.counts)

    def estimate_rows(self, descriptor: QueryDescriptor) -> int:
        """Estimated rows of a joined fetch: parents times average children."""
        parents = self.counts.get(descriptor.entity, 0)
        if descriptor.limit is not None:
            parents = min(parents, descriptor.limit)
        if descriptor.include is None:
            return parents
        target = get_entity_type(descriptor.entity).relations[descriptor.include].target
        total_parents = self.counts.get(descriptor.entity, 0)
        if total_parents == 0:
            return 0
        avg_children = self.counts.get(target, 0) / total_parents
        return int(parents * max(avg_children, 1))


class BatchedStrategy(DecoratingStrategy):
    """Chooses between a joined fetch and a split fetch.

    Descriptors with a related collection and FetchMode.AUTO are split
    into two round trips when the estimated joined row count exceeds the
    threshold; otherwise they run as one joined round trip.
    """

    def __init__(
        self,
        fallback: Optional[QueryStrategy] = None,
        threshold: int = SPLIT_FETCH_THRESHOLD,
        stats: Optional[TableStats] = None,
        estimator: Optional[Callable[[QueryDescriptor], int]] = None,
    ):
        super().__init__(fallback)
        self.threshold = threshold
        self.stats = stats or TableStats()
        self.estimator = estimator or self.stats.estimate_rows

    def execute(self, descriptor: QueryDescriptor, scope: "SessionScope") -> ResultSet:
        if descriptor.include is not None and descriptor.fetch_mode == FetchMode.AUTO:
            estimate = self.estimator(descriptor)
            if estimate > self.threshold:
                descriptor = descriptor.as_split()
            else:
                descriptor = descriptor.as_single()
            logger.debug(
                f"{descriptor.entity}+{descriptor.include}: ~{estimate} joined rows, "
                f"threshold {self.threshold}, mode {descriptor.fetch_mode.value}"
            )
        return self.fallback.execute(descriptor, scope)


class CachedStrategy(DecoratingStrategy):
    """Serves repeated descriptors from the query cache.

    A hit returns a copy of the cached snapshot without touching the
    store. A miss runs the wrapped strategy and stores its result; if it
    raises, nothing is cached. Neither is a result whose entity types were
    invalidated while it was being fetched.

    Descriptors holding unnamed client predicates are never cached: their
    fingerprint can't tell two closures over different values apart.
    """

    def __init__(self, cache: "QueryCache", fallback: Optional[QueryStrategy] = None):
        super().__init__(fallback)
        self.cache = cache

    def execute(self, descriptor: QueryDescriptor, scope: "SessionScope") -> ResultSet:
        if not descriptor.is_cacheable:
            logger.debug(f"Not caching {descriptor.entity} query with unnamed client predicates")
            return self.fallback.execute(descriptor, scope)

        fingerprint = descriptor.fingerprint()
        cached = self.cache.get(fingerprint)
        if cached is not None:
            return replace(cached.snapshot(), from_cache=True)

        entity_types = descriptor.entity_types()
        generation = self.cache.generation(entity_types)
        result = self.fallback.execute(descriptor, scope)
        self.cache.put(fingerprint, result, entity_types, generation=generation)
        return result
