"""Process-wide query result cache keyed by descriptor fingerprint."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Iterable, Optional, Tuple

from config import QUERY_CACHE_LOCK_STRIPES, QUERY_CACHE_TTL

if TYPE_CHECKING:
    from query.result import ResultSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """An immutable result snapshot stored under a fingerprint."""
    fingerprint: str
    result: "ResultSet"
    entity_types: FrozenSet[str]
    created_at: float

    def is_expired(self, ttl: Optional[float], now: Optional[float] = None) -> bool:
        if ttl is None:
            return False
        return (now if now is not None else time.time()) - self.created_at > ttl


class QueryCache:
    """Thread-safe result cache with explicit invalidation.

    Entries are immutable and swapped in whole, so reads take no lock and
    never see a partial write. Writes to one fingerprint are serialized by
    the lock stripe that fingerprint hashes to; there is no lock over the
    whole cache.

    Every invalidation bumps a per-entity-type generation. A result
    fetched across an invalidation of one of its types is not stored.
    """

    def __init__(self, ttl: Optional[float] = QUERY_CACHE_TTL, lock_stripes: int = QUERY_CACHE_LOCK_STRIPES):
        self.ttl = ttl
        self._entries: Dict[str, CacheEntry] = {}
        self._locks = [threading.Lock() for _ in range(lock_stripes)]
        self._generations: Dict[str, int] = {}
        self._generation_lock = threading.Lock()

        # Statistics
        self.hits = 0
        self.misses = 0
        self.invalidations = 0

    def _lock_for(self, fingerprint: str) -> threading.Lock:
        return self._locks[hash(fingerprint) % len(self._locks)]

    def generation(self, entity_types: Iterable[str]) -> Tuple[Tuple[str, int], ...]:
        """Current invalidation generation of each entity type, for put()."""
        return tuple(sorted((name, self._generations.get(name, 0)) for name in set(entity_types)))

    def _is_current(self, generation: Tuple[Tuple[str, int], ...]) -> bool:
        return all(self._generations.get(name, 0) == value for name, value in generation)

    def get(self, fingerprint: str) -> Optional["ResultSet"]:
        """Get a cached result if present and not expired."""
        entry = self._entries.get(fingerprint)
        if entry is None:
            self.misses += 1
            logger.debug(f"Cache miss {fingerprint[:12]}")
            return None

        if entry.is_expired(self.ttl):
            self._remove_if_same(fingerprint, entry)
            self.misses += 1
            logger.debug(f"Cache expired {fingerprint[:12]}")
            return None

        self.hits += 1
        logger.debug(f"Cache hit {fingerprint[:12]}")
        return entry.result

    def put(
        self,
        fingerprint: str,
        result: "ResultSet",
        entity_types: Iterable[str],
        generation: Optional[Tuple[Tuple[str, int], ...]] = None,
    ) -> Optional[CacheEntry]:
        """Store a detached snapshot of a result.

        With ``generation`` (read via generation() before fetching), the
        result is dropped if any of its types was invalidated since, and
        None is returned.
        """
        entry = CacheEntry(
            fingerprint=fingerprint,
            result=result.snapshot(),
            entity_types=frozenset(entity_types),
            created_at=time.time(),
        )
        if generation is not None and not self._is_current(generation):
            logger.debug(f"Cache put skipped {fingerprint[:12]}: invalidated while fetching")
            return None
        with self._lock_for(fingerprint):
            self._entries[fingerprint] = entry
        # An invalidation between the check and the store may have missed this entry
        if generation is not None and not self._is_current(generation):
            self._remove_if_same(fingerprint, entry)
            logger.debug(f"Cache put withdrawn {fingerprint[:12]}: invalidated while storing")
            return None
        return entry

    def delete(self, fingerprint: str) -> bool:
        """Delete one entry."""
        with self._lock_for(fingerprint):
            return self._entries.pop(fingerprint, None) is not None

    def invalidate(self, entity_type: str) -> int:
        """Drop every entry whose query touches the entity type."""
        with self._generation_lock:
            self._generations[entity_type] = self._generations.get(entity_type, 0) + 1
        removed = 0
        for fingerprint, entry in list(self._entries.items()):
            if entity_type in entry.entity_types:
                if self._remove_if_same(fingerprint, entry):
                    removed += 1
        self.invalidations += removed
        if removed:
            logger.info(f"Invalidated {removed} cached queries for {entity_type}")
        return removed

    def _remove_if_same(self, fingerprint: str, entry: CacheEntry) -> bool:
        with self._lock_for(fingerprint):
            if self._entries.get(fingerprint) is entry:
                del self._entries[fingerprint]
                return True
            return False

    def clear(self) -> None:
        """Clear all cached entries."""
        for fingerprint in list(self._entries):
            self.delete(fingerprint)
        self.hits = 0
        self.misses = 0
        self.invalidations = 0

    def cleanup_expired(self) -> int:
        """Remove expired entries and return count removed."""
        if self.ttl is None:
            return 0
        now = time.time()
        removed = 0
        for fingerprint, entry in list(self._entries.items()):
            if entry.is_expired(self.ttl, now) and self._remove_if_same(fingerprint, entry):
                removed += 1
        return removed

    def __contains__(self, fingerprint: str) -> bool:
        entry = self._entries.get(fingerprint)
        return entry is not None and not entry.is_expired(self.ttl)

    @property
    def size(self) -> int:
        """Current cache size."""
        return len(self._entries)

    @property
    def hit_rate(self) -> float:
        """Cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "size": self.size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "invalidations": self.invalidations,
            "ttl": self.ttl,
        }
