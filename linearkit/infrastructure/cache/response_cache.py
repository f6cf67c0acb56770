"""In-memory TTL cache for idempotent GraphQL read results.

Entries are checked lazily on read and never swept in the background.
An expired entry is dropped the moment a lookup touches it.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Pattern, Union

from linearkit.domain.interfaces.cache import CacheService
from linearkit.domain.models.common import CacheKey, CacheStats

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ITEMS = 1000


@dataclass
class CacheEntry:
    """Internal representation of a cache entry with expiry."""
    key: CacheKey
    value: Any
    expires_at: float  # clock() value after which the entry is dead
    created_at: float
    hits: int = 0


class ResponseCache(CacheService):
    """TTL-keyed response store shared by all concurrent readers.

    Writes are last-writer-wins per key. When full, the oldest entry by
    creation time is evicted to make room for a new key.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        max_items: int = DEFAULT_MAX_ITEMS,
        clock: Callable[[], float] = time.time,
    ):
        """Initializes the cache.

        Args:
            ttl: Default time-to-live in seconds.
            max_items: Maximum number of live entries kept.
            clock: Returns the current time in seconds; injectable for tests.
        """
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self.ttl = ttl
        self.max_items = max_items
        self._clock = clock
        self._hits = 0
        self._misses = 0
        logger.info(f"ResponseCache initialized (ttl={ttl}s, max={max_items})")

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._clock() >= entry.expires_at

    def _evict_oldest(self) -> None:
        oldest_key = min(self._entries, key=lambda k: self._entries[k].created_at)
        del self._entries[oldest_key]
        logger.debug(f"Cache evicted (size limit): {oldest_key}")

    # --- CacheService Interface Implementation ---

    async def get(self, key: CacheKey) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        if self._is_expired(entry):
            del self._entries[key]
            self._misses += 1
            logger.debug(f"Cache miss (expired): {key}")
            return None

        entry.hits += 1
        self._hits += 1
        logger.debug(f"Cache hit: {key} (hits: {entry.hits})")
        return entry.value

    async def set(self, key: CacheKey, value: Any, ttl: Optional[float] = None) -> None:
        if key not in self._entries and len(self._entries) >= self.max_items:
            self._evict_oldest()

        now = self._clock()
        effective_ttl = ttl if ttl is not None else self.ttl
        self._entries[key] = CacheEntry(key=key, value=value, expires_at=now + effective_ttl, created_at=now)
        logger.debug(f"Cache set: {key} (expires in {effective_ttl}s)")

    async def delete(self, key: CacheKey) -> bool:
        removed = self._entries.pop(key, None) is not None
        if removed:
            logger.debug(f"Cache deleted: {key}")
        return removed

    async def clear(self) -> None:
        size = len(self._entries)
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        logger.info(f"Cache cleared ({size} entries removed)")

    # --- Monitoring helpers ---

    def has(self, key: CacheKey) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if self._is_expired(entry):
            del self._entries[key]
            return False
        return True

    def invalidate_pattern(self, pattern: Union[str, Pattern[str]]) -> int:
        """Drops every key matching the regex; returns how many were removed."""
        compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
        doomed = [k for k in self._entries if compiled.search(k)]
        for key in doomed:
            del self._entries[key]
        logger.debug(f"Cache invalidated by pattern {compiled.pattern!r}: {len(doomed)} entries removed")
        return len(doomed)

    def get_hot_entries(self, limit: int = 10) -> List[Dict[str, Any]]:
        now = self._clock()
        live = [e for e in self._entries.values() if now < e.expires_at]
        live.sort(key=lambda e: e.hits, reverse=True)
        return [{"key": e.key, "hits": e.hits, "age": now - e.created_at} for e in live[:limit]]

    def get_stats(self) -> CacheStats:
        total = self._hits + self._misses
        return CacheStats(
            size=len(self._entries),
            max_size=self.max_items,
            hits=self._hits,
            misses=self._misses,
            total=total,
            hit_rate=(self._hits / total * 100) if total else 0.0,
        )

    def __len__(self) -> int:
        return len(self._entries)
