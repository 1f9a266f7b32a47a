"""Database schema definitions."""

import sqlite3

SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at REAL NOT NULL
);

-- Blogs
CREATE TABLE IF NOT EXISTS blogs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT,
    author TEXT,
    created_at TEXT,
    description TEXT,
    url TEXT,
    rating INTEGER NOT NULL DEFAULT 0
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_blogs_url ON blogs(url);
CREATE INDEX IF NOT EXISTS idx_blogs_rating ON blogs(rating);

-- Posts belong to a blog
CREATE TABLE IF NOT EXISTS posts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    blog_id INTEGER NOT NULL,
    title TEXT,
    content TEXT,
    FOREIGN KEY (blog_id) REFERENCES blogs(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_posts_blog ON posts(blog_id);
"""

DROP_SQL = """
DROP TABLE IF EXISTS posts;
DROP TABLE IF EXISTS blogs;
DROP TABLE IF EXISTS schema_version;
"""


def init_schema(conn: sqlite3.Connection) -> None:
    """Create tables and record the schema version."""
    conn.executescript(SCHEMA_SQL)
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row and row[0] is not None else 0
    if current < SCHEMA_VERSION:
        conn.execute(
            "INSERT OR REPLACE INTO schema_version (version, applied_at) VALUES (?, strftime('%s','now'))",
            (SCHEMA_VERSION,)
        )


def drop_schema(conn: sqlite3.Connection) -> None:
    """Drop all tables (used to reset the store before seeding)."""
    conn.executescript(DROP_SQL)
