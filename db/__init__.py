"""Database module: pooled SQLite sessions and units of work.

This module provides:
- Connection pool handing out validated sessions, with cancellable acquire
- Session scopes that release their session on every exit path
- Change tracking and write-back via save_changes()
- Deterministic seed data for benchmarks and tests

Usage:
    from db import ConnectionPool, SessionScope, SeedLoader
    from db.repositories import BlogRepository

    pool = ConnectionPool("~/.blogbench/blogging.db", capacity=4)
    pool.initialize()
    SeedLoader(pool).seed(100)

    with SessionScope(pool) as scope:
        blog = BlogRepository(scope).first()
"""

from .connection import ConnectionPool, SessionFactory, open_session
from .errors import (
    BlogBenchError,
    Cancelled,
    ConnectionLost,
    ConstraintViolation,
    PoolExhausted,
    QueryError,
    ReadOnlyResult,
    StoreError,
    UntranslatablePredicate,
)
from .models import BLOG, POST, Blog, EntityType, Post, Relation, get_entity_type
from .schema import SCHEMA_VERSION, drop_schema, init_schema
from .scope import ChangeTracker, SessionScope
from .seed import SeedLoader
from .session import Session

__all__ = [
    "ConnectionPool",
    "SessionFactory",
    "open_session",
    "BlogBenchError",
    "Cancelled",
    "ConnectionLost",
    "ConstraintViolation",
    "PoolExhausted",
    "QueryError",
    "ReadOnlyResult",
    "StoreError",
    "UntranslatablePredicate",
    "BLOG",
    "POST",
    "Blog",
    "EntityType",
    "Post",
    "Relation",
    "get_entity_type",
    "SCHEMA_VERSION",
    "drop_schema",
    "init_schema",
    "ChangeTracker",
    "SessionScope",
    "SeedLoader",
    "Session",
]
