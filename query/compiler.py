"""Translate query descriptors into parameterized SQL.

Values are always bound as ``?`` parameters. Only table and column names
taken from entity metadata (and checked against it) are interpolated.
"""

from typing import Any, List, Optional, Sequence, Tuple

from db.errors import UntranslatablePredicate
from db.models import EntityType, get_entity_type
from utils.validation import validate_identifier
from .descriptor import ClientPredicate, Predicate, QueryDescriptor

PARENT_PREFIX = "p__"
CHILD_PREFIX = "c__"

_COMPARISONS = {
    "eq": "=",
    "ne": "<>",
    "lt": "<",
    "le": "<=",
    "gt": ">",
    "ge": ">=",
}


def _check_column(entity_type: EntityType, name: str) -> str:
    ok, error = validate_identifier(name)
    if not ok:
        raise ValueError(error)
    if not entity_type.has_column(name):
        raise ValueError(f"{entity_type.name} has no field {name!r}")
    return name


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def predicate_sql(entity_type: EntityType, predicate: Predicate) -> Tuple[str, List[Any]]:
    """SQL condition and parameters for one pushable predicate."""
    col = _check_column(entity_type, predicate.field)
    op, value = predicate.op, predicate.value

    if op in _COMPARISONS:
        if value is None and op == "eq":
            return f"{col} IS NULL", []
        if value is None and op == "ne":
            return f"{col} IS NOT NULL", []
        return f"{col} {_COMPARISONS[op]} ?", [value]
    if op == "in":
        if not value:
            return "0", []
        placeholders = ",".join("?" * len(value))
        return f"{col} IN ({placeholders})", list(value)
    if op == "contains":
        return f"{col} IS NOT NULL AND {col} LIKE ? ESCAPE '\\'", [f"%{escape_like(str(value))}%"]
    if op == "like":
        return f"{col} LIKE ?", [value]
    if op == "isnull":
        return (f"{col} IS NULL" if value else f"{col} IS NOT NULL"), []
    raise ValueError(f"Unknown operator: {op}")


def split_predicates(descriptor: QueryDescriptor) -> Tuple[List[Predicate], List[ClientPredicate]]:
    """Separate pushable predicates from client-only ones.

    Raises UntranslatablePredicate when a client predicate is present and
    client evaluation was not opted in.
    """
    pushable: List[Predicate] = []
    client: List[ClientPredicate] = []
    for predicate in descriptor.predicates:
        if isinstance(predicate, ClientPredicate):
            if not descriptor.allow_client_eval:
                raise UntranslatablePredicate(predicate.name)
            client.append(predicate)
        else:
            pushable.append(predicate)
    return pushable, client


def compile_root(
    descriptor: QueryDescriptor,
    columns: Optional[Sequence[str]] = None,
) -> Tuple[str, List[Any]]:
    """SELECT for the root rows of a descriptor.

    When client predicates are present the LIMIT is left off; the caller
    applies it after filtering in memory.
    """
    entity_type = get_entity_type(descriptor.entity)
    pushable, client = split_predicates(descriptor)

    if columns is None:
        columns = entity_type.columns
    select_list = ", ".join(_check_column(entity_type, c) for c in columns)

    params: List[Any] = []
    if descriptor.raw_sql is not None:
        source = f"({descriptor.raw_sql}) AS raw"
        params.extend(descriptor.raw_params)
    else:
        source = entity_type.table

    sql = f"SELECT {select_list} FROM {source}"

    conditions = []
    for predicate in pushable:
        condition, values = predicate_sql(entity_type, predicate)
        conditions.append(f"({condition})")
        params.extend(values)
    if conditions:
        sql += " WHERE " + " AND ".join(conditions)

    order = [
        f"{_check_column(entity_type, name)} {'DESC' if desc else 'ASC'}"
        for name, desc in descriptor.order_by
    ]
    if not order and descriptor.include is not None:
        # Parents must come back in a stable order to be matched with children
        order = [f"{entity_type.primary_key} ASC"]
    if order:
        sql += " ORDER BY " + ", ".join(order)

    if descriptor.limit is not None and not client:
        sql += " LIMIT ?"
        params.append(descriptor.limit)

    return sql, params


def compile_joined(descriptor: QueryDescriptor) -> Tuple[str, List[Any]]:
    """One round trip: parents LEFT JOIN children, aliased by prefix."""
    parent = get_entity_type(descriptor.entity)
    relation = parent.relations[descriptor.include]
    child = get_entity_type(relation.target)

    root_sql, params = compile_root(descriptor)
    select_list = ", ".join(
        [f"p.{c} AS {PARENT_PREFIX}{c}" for c in parent.columns]
        + [f"c.{c} AS {CHILD_PREFIX}{c}" for c in child.columns]
    )
    order = [
        f"p.{name} {'DESC' if desc else 'ASC'}" for name, desc in descriptor.order_by
    ] or [f"p.{parent.primary_key} ASC"]
    order.append(f"c.{child.primary_key} ASC")

    sql = (
        f"SELECT {select_list} FROM ({root_sql}) AS p "
        f"LEFT JOIN {child.table} AS c ON c.{relation.foreign_key} = p.{parent.primary_key} "
        f"ORDER BY {', '.join(order)}"
    )
    return sql, params


def compile_children(descriptor: QueryDescriptor) -> Tuple[str, List[Any]]:
    """Second round trip of a split fetch.

    Re-selects the parent keys with the same filters, the way a split
    query repeats its root query, so no id list is shipped back.
    """
    parent = get_entity_type(descriptor.entity)
    relation = parent.relations[descriptor.include]
    child = get_entity_type(relation.target)

    keys_sql, params = compile_root(descriptor, columns=[parent.primary_key])
    select_list = ", ".join(child.columns)
    sql = (
        f"SELECT {select_list} FROM {child.table} "
        f"WHERE {relation.foreign_key} IN (SELECT {parent.primary_key} FROM ({keys_sql})) "
        f"ORDER BY {relation.foreign_key} ASC, {child.primary_key} ASC"
    )
    return sql, params


def compile_count(entity: str) -> str:
    return f"SELECT COUNT(*) FROM {get_entity_type(entity).table}"
