"""Repository classes for database access."""

from .blog_repo import BlogRepository, contains_keyword

__all__ = [
    "BlogRepository",
    "contains_keyword",
]
