"""Shared fixtures for BlogBench tests."""

import os
import sys
import tempfile
import pytest
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def temp_db_path():
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield os.path.join(tmpdir, "test.db")


@pytest.fixture
def connection_pool(temp_db_path):
    """Create a ConnectionPool with a temporary database."""
    from db.connection import ConnectionPool
    pool = ConnectionPool(db_path=temp_db_path, capacity=2, acquire_timeout=2.0)
    pool.initialize()
    yield pool
    pool.close()


@pytest.fixture
def seeded_pool(connection_pool):
    """Pool over a database seeded with 20 blogs of 3 posts each."""
    from db.seed import SeedLoader
    SeedLoader(connection_pool).seed(20, posts_per_blog=3)
    return connection_pool


@pytest.fixture
def scope(seeded_pool, query_cache):
    """An active SessionScope over the seeded pool."""
    from db.scope import SessionScope
    with SessionScope(seeded_pool, query_cache) as active:
        yield active


# ============================================================================
# Cache Fixtures
# ============================================================================

@pytest.fixture
def query_cache():
    """Create a QueryCache without TTL."""
    from cache.query_cache import QueryCache
    return QueryCache()


@pytest.fixture
def sample_result():
    """A small ResultSet of blogs."""
    from db.models import Blog
    from query.result import ResultSet
    return ResultSet(
        entity="blog",
        rows=(
            Blog(id=1, name="Blog Name 0", author="Author 0", rating=3),
            Blog(id=2, name="Blog Name 1", author="Author 1", rating=7),
        ),
        round_trips=1,
    )
