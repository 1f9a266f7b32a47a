"""Immutable query descriptors and their cache fingerprints."""

import hashlib
import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Optional, Tuple, Union

from db.models import get_entity_type


class FetchMode(Enum):
    """How a related collection is fetched alongside its parents."""
    AUTO = "auto"  # Let the strategy decide
    SINGLE = "single"  # One joined round trip
    SPLIT = "split"  # Parents and children in separate round trips


OPERATORS = frozenset({"eq", "ne", "lt", "le", "gt", "ge", "in", "contains", "like", "isnull"})


@dataclass(frozen=True)
class Predicate:
    """A filter the store can evaluate: ``field <op> value``."""
    field: str
    op: str
    value: Any = None

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Unknown operator: {self.op}")
        if self.op == "in":
            # Tuples keep the descriptor hashable and the fingerprint stable
            object.__setattr__(self, "value", tuple(self.value))

    def canonical(self) -> list:
        return ["sql", self.field, self.op, self.value]


@dataclass(frozen=True)
class ClientPredicate:
    """A Python callable over an entity. Never pushed to the store.

    ``named`` is False when the name was derived from the callable, in
    which case it says nothing about the values the callable closes over.
    """
    name: str
    func: Callable[[Any], bool] = field(compare=False, repr=False)
    named: bool = True

    def __call__(self, entity) -> bool:
        return bool(self.func(entity))

    def canonical(self) -> list:
        return ["client", self.name]


AnyPredicate = Union[Predicate, ClientPredicate]


@dataclass(frozen=True)
class QueryDescriptor:
    """What to fetch: entity, filters, projection shape and fetch mode.

    Descriptors are values. Builder methods return new descriptors and
    two descriptors with the same shape and parameters share a
    fingerprint.
    """
    entity: str
    predicates: Tuple[AnyPredicate, ...] = ()
    fields: Tuple[str, ...] = ()
    include: Optional[str] = None
    fetch_mode: FetchMode = FetchMode.AUTO
    order_by: Tuple[Tuple[str, bool], ...] = ()
    limit: Optional[int] = None
    raw_sql: Optional[str] = None
    raw_params: Tuple[Any, ...] = ()
    allow_client_eval: bool = False

    def __post_init__(self):
        entity_type = get_entity_type(self.entity)
        if self.include is not None and self.include not in entity_type.relations:
            raise ValueError(f"{self.entity} has no relation named {self.include!r}")
        if self.limit is not None and self.limit < 0:
            raise ValueError(f"limit must be non-negative, got {self.limit}")

    def where(self, field_name: str, op: str = "eq", value: Any = None) -> "QueryDescriptor":
        return replace(self, predicates=self.predicates + (Predicate(field_name, op, value),))

    def where_client(self, func: Callable[[Any], bool], name: Optional[str] = None) -> "QueryDescriptor":
        """Add a filter that can only run in Python.

        Pass a ``name`` that encodes every value the callable depends on
        to make the descriptor cacheable.
        """
        if name:
            predicate = ClientPredicate(name, func)
        else:
            predicate = ClientPredicate(getattr(func, "__qualname__", repr(func)), func, named=False)
        return replace(self, predicates=self.predicates + (predicate,))

    def select(self, *field_names: str) -> "QueryDescriptor":
        return replace(self, fields=tuple(field_names))

    def include_related(self, relation: str) -> "QueryDescriptor":
        return replace(self, include=relation)

    def as_split(self) -> "QueryDescriptor":
        return replace(self, fetch_mode=FetchMode.SPLIT)

    def as_single(self) -> "QueryDescriptor":
        return replace(self, fetch_mode=FetchMode.SINGLE)

    def ordered_by(self, field_name: str, descending: bool = False) -> "QueryDescriptor":
        return replace(self, order_by=self.order_by + ((field_name, descending),))

    def take(self, count: int) -> "QueryDescriptor":
        return replace(self, limit=count)

    def from_sql(self, sql: str, *params: Any) -> "QueryDescriptor":
        """Use raw SQL for the root rows. Values must be bound via ``?``."""
        return replace(self, raw_sql=sql, raw_params=tuple(params))

    def with_client_eval(self) -> "QueryDescriptor":
        return replace(self, allow_client_eval=True)

    @property
    def is_projection(self) -> bool:
        return bool(self.fields)

    @property
    def has_client_predicates(self) -> bool:
        return any(isinstance(p, ClientPredicate) for p in self.predicates)

    @property
    def is_cacheable(self) -> bool:
        """False when an unnamed client predicate makes the fingerprint ambiguous."""
        return all(p.named for p in self.predicates if isinstance(p, ClientPredicate))

    def entity_types(self) -> frozenset:
        """Names of every entity type this query reads."""
        names = {self.entity}
        if self.include is not None:
            names.add(get_entity_type(self.entity).relations[self.include].target)
        return frozenset(names)

    def canonical(self) -> dict:
        return {
            "entity": self.entity,
            "predicates": [p.canonical() for p in self.predicates],
            "fields": list(self.fields),
            "include": self.include,
            "fetch_mode": self.fetch_mode.value,
            "order_by": [list(o) for o in self.order_by],
            "limit": self.limit,
            "raw_sql": self.raw_sql,
            "raw_params": list(self.raw_params),
            "allow_client_eval": self.allow_client_eval,
        }

    def fingerprint(self) -> str:
        """Deterministic, value-based cache key for this descriptor."""
        payload = json.dumps(self.canonical(), sort_keys=True, default=repr, separators=(",", ":"))
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def query(entity: str) -> QueryDescriptor:
    """Start a descriptor for an entity type."""
    return QueryDescriptor(entity=entity)
