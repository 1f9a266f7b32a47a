"""Scoped unit of work bound to one pooled session."""

import logging
import threading
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from .errors import ReadOnlyResult
from .models import entity_type_of

if TYPE_CHECKING:
    from cache.query_cache import QueryCache
    from query.descriptor import QueryDescriptor
    from query.result import ResultSet
    from query.strategies import QueryStrategy
    from .connection import ConnectionPool
    from .session import Session

logger = logging.getLogger(__name__)


class ChangeTracker:
    """Identity map plus column snapshots for tracked entities."""

    def __init__(self):
        self._entries: Dict[Tuple[str, Any], Tuple[Any, Dict[str, Any]]] = {}
        self._added: List[Any] = []
        self._removed: List[Any] = []

    def attach(self, entity) -> Any:
        """Start tracking an entity, returning the already tracked instance if any."""
        if isinstance(entity, tuple):
            raise ReadOnlyResult("Projected rows can't be tracked")
        entity_type = entity_type_of(entity)
        key = (entity_type.name, entity_type.key_of(entity))
        existing = self._entries.get(key)
        if existing is not None:
            return existing[0]
        self._entries[key] = (entity, entity_type.values(entity))
        return entity

    def add(self, entity) -> None:
        entity_type_of(entity)
        self._added.append(entity)

    def remove(self, entity) -> None:
        entity_type = entity_type_of(entity)
        key = (entity_type.name, entity_type.key_of(entity))
        if key not in self._entries:
            raise ValueError(f"{entity!r} is not tracked by this scope")
        self._removed.append(entity)

    def is_tracked(self, entity) -> bool:
        entity_type = entity_type_of(entity)
        entry = self._entries.get((entity_type.name, entity_type.key_of(entity)))
        return entry is not None and entry[0] is entity

    def changes(self) -> List[Tuple[Any, Dict[str, Any]]]:
        """Tracked entities with the columns that differ from their snapshot."""
        removed = {id(e) for e in self._removed}
        modified = []
        for (name, key), (entity, snapshot) in self._entries.items():
            if id(entity) in removed:
                continue
            entity_type = entity_type_of(entity)
            current = entity_type.values(entity)
            if current[entity_type.primary_key] != key:
                raise ValueError(
                    f"Identifier of tracked {name} changed from {key} to "
                    f"{current[entity_type.primary_key]}"
                )
            diff = {col: val for col, val in current.items() if snapshot[col] != val}
            if diff:
                modified.append((entity, diff))
        return modified

    @property
    def added(self) -> List[Any]:
        return list(self._added)

    @property
    def removed(self) -> List[Any]:
        return list(self._removed)

    def accept_changes(self) -> None:
        """Re-snapshot everything after a successful save."""
        for entity in self._removed:
            entity_type = entity_type_of(entity)
            self._entries.pop((entity_type.name, entity_type.key_of(entity)), None)
        self._removed.clear()
        for entity in self._added:
            self.attach(entity)
        self._added.clear()
        for key, (entity, _) in list(self._entries.items()):
            self._entries[key] = (entity, entity_type_of(entity).values(entity))

    def __len__(self) -> int:
        return len(self._entries)


class SessionScope:
    """A unit of work owning one pooled session for its lifetime.

    The session is acquired on enter and released exactly once on exit,
    whatever way the block is left.

    Usage:
        with SessionScope(pool, cache) as scope:
            blogs = scope.execute(query("blog"), TrackedStrategy())
            blogs[0].rating = 5
            scope.save_changes()
    """

    def __init__(
        self,
        pool: "ConnectionPool",
        cache: Optional["QueryCache"] = None,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ):
        self.pool = pool
        self.cache = cache
        self.timeout = timeout
        self.cancel = cancel
        self.tracker = ChangeTracker()
        self._session: Optional["Session"] = None
        self._entered = False

    def __enter__(self) -> "SessionScope":
        if self._entered:
            raise RuntimeError("SessionScope can't be re-entered")
        self._entered = True
        self._session = self.pool.acquire(timeout=self.timeout, cancel=self.cancel)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        session, self._session = self._session, None
        if session is not None:
            self.pool.release(session)
        return False

    @property
    def session(self) -> "Session":
        if self._session is None:
            raise RuntimeError("SessionScope is not active")
        return self._session

    @property
    def is_active(self) -> bool:
        return self._session is not None

    def execute(
        self,
        descriptor: "QueryDescriptor",
        strategy: Optional["QueryStrategy"] = None,
        cancel: Optional[threading.Event] = None,
    ) -> "ResultSet":
        """Run a descriptor through a strategy (untracked by default)."""
        from query.strategies import DirectStrategy

        if strategy is None:
            strategy = DirectStrategy()
        previous = self.cancel
        if cancel is not None:
            self.cancel = cancel
        try:
            return strategy.execute(descriptor, self)
        finally:
            self.cancel = previous

    def execute_sql(self, sql: str, params: Sequence = ()) -> list:
        """Raw parameterized SQL passthrough. Values must be bound via ``?``."""
        return self.session.fetch(sql, params, cancel=self.cancel)

    def add(self, entity) -> None:
        """Schedule an entity for insertion on save_changes()."""
        self.tracker.add(entity)

    def remove(self, entity) -> None:
        """Schedule a tracked entity for deletion on save_changes()."""
        self.tracker.remove(entity)

    @property
    def tracked_count(self) -> int:
        return len(self.tracker)

    def save_changes(self) -> int:
        """Write inserts, updates and deletes in one transaction.

        Only changed columns are updated. Cached queries touching any
        written entity type are invalidated. Returns affected row count.
        """
        modified = self.tracker.changes()
        added = self.tracker.added
        removed = self.tracker.removed
        if not (modified or added or removed):
            return 0

        session = self.session
        affected = 0
        touched = set()
        generated = []
        try:
            with session.transaction():
                for entity in added:
                    entity_type = entity_type_of(entity)
                    values = {
                        col: val for col, val in entity_type.values(entity).items()
                        if not (col == entity_type.primary_key and val is None)
                    }
                    cols = ", ".join(values)
                    placeholders = ", ".join("?" * len(values))
                    cursor = session.execute(
                        f"INSERT INTO {entity_type.table} ({cols}) VALUES ({placeholders})",
                        list(values.values()),
                    )
                    if getattr(entity, entity_type.primary_key) is None:
                        setattr(entity, entity_type.primary_key, cursor.lastrowid)
                        generated.append(entity)
                    affected += cursor.rowcount
                    touched.add(entity_type.name)

                for entity, diff in modified:
                    entity_type = entity_type_of(entity)
                    assignments = ", ".join(f"{col} = ?" for col in diff)
                    cursor = session.execute(
                        f"UPDATE {entity_type.table} SET {assignments} WHERE {entity_type.primary_key} = ?",
                        list(diff.values()) + [entity_type.key_of(entity)],
                    )
                    affected += cursor.rowcount
                    touched.add(entity_type.name)

                for entity in removed:
                    entity_type = entity_type_of(entity)
                    cursor = session.execute(
                        f"DELETE FROM {entity_type.table} WHERE {entity_type.primary_key} = ?",
                        [entity_type.key_of(entity)],
                    )
                    affected += cursor.rowcount
                    touched.add(entity_type.name)
                    for relation in entity_type.relations.values():
                        # ON DELETE CASCADE removes children too
                        touched.add(relation.target)
        except BaseException:
            # Rolled back, so ids handed out by the store are void
            for entity in generated:
                setattr(entity, entity_type_of(entity).primary_key, None)
            raise

        self.tracker.accept_changes()
        if self.cache is not None:
            for name in sorted(touched):
                self.cache.invalidate(name)
        logger.info(
            f"Saved changes: {len(added)} added, {len(modified)} modified, "
            f"{len(removed)} removed ({affected} rows)"
        )
        return affected
