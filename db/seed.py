"""Deterministic sample data for benchmarks and tests."""

import logging
import random
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from config import SEED_EPOCH, SEED_MAX_RATING, SEED_RANDOM_SEED
from .schema import drop_schema, init_schema

if TYPE_CHECKING:
    from .connection import ConnectionPool

logger = logging.getLogger(__name__)


class SeedLoader:
    """Repopulates the blogs and posts tables.

    The same count always produces the same rows, ratings included.
    """

    def __init__(self, pool: "ConnectionPool", random_seed: int = SEED_RANDOM_SEED):
        self.pool = pool
        self.random_seed = random_seed

    def seed(self, count: int, posts_per_blog: int = 0) -> int:
        """Replace all rows with ``count`` blogs and their posts."""
        if count < 0 or posts_per_blog < 0:
            raise ValueError("count and posts_per_blog must be non-negative")

        rng = random.Random(self.random_seed)
        epoch = datetime.fromisoformat(SEED_EPOCH)

        blogs = [
            (
                i + 1,
                f"Blog Name {i}",
                f"Author {i}",
                (epoch - timedelta(days=i)).isoformat(),
                f"This is a description for blog {i}.",
                f"http://www.someblog{i}.com",
                rng.randrange(SEED_MAX_RATING),
            )
            for i in range(count)
        ]
        posts = [
            (i + 1, f"Title {j}", f"This is the content of post {j} for blog {i}.")
            for i in range(count)
            for j in range(posts_per_blog)
        ]

        with self.pool.session() as session:
            drop_schema(session.connection)
            init_schema(session.connection)
            with session.transaction():
                session.execute_many(
                    "INSERT INTO blogs (id, name, author, created_at, description, url, rating) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    blogs,
                )
                if posts:
                    session.execute_many(
                        "INSERT INTO posts (blog_id, title, content) VALUES (?, ?, ?)",
                        posts,
                    )

        logger.info(f"Seeded {count} blogs with {len(posts)} posts")
        return count
