"""Query result caching."""

from .query_cache import CacheEntry, QueryCache

__all__ = ["CacheEntry", "QueryCache"]
