"""In-memory TTL cache with a stale-while-error grace window.

Entries are fresh for ``ttl_seconds``. After that they are no longer returned
by ``get`` but stay available through ``get_stale`` for ``grace_seconds`` so a
caller can keep serving the last good value while the upstream is failing.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class CacheItem:
    """Container for cached values with expiration metadata."""

    value: Any
    stored_at: float
    expires_at: float
    discard_at: float


class StaleTTLCache:
    """Thread-safe, in-memory TTL cache with LRU eviction and a grace window.

    Attributes:
        ttl_seconds: Time-to-live applied to all entries.
        grace_seconds: How long past expiry an entry is still served as stale.
        max_entries: Maximum number of cached items (None for unlimited).
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        *,
        grace_seconds: float = 0,
        max_entries: int | None = 128,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._grace = grace_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, CacheItem] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._stale_hits = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"StaleTTLCache(ttl_seconds={self._ttl}, grace_seconds={self._grace}, "
            f"size={len(self._store)}, hits={self._hits}, misses={self._misses})"
        )

    def get(self, key: str) -> Any | None:
        """Return the value for ``key`` only while it is fresh."""

        with self._lock:
            item = self._store.get(key)
            if item is None:
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key, "reason": "not_found"})
                return None

            now = self._clock()
            if now >= item.expires_at:
                if now >= item.discard_at:
                    self._evict_single(key)
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key, "reason": "expired"})
                return None

            self._hits += 1
            self._store.move_to_end(key)
            logger.debug("cache.hit", extra={"cache_key": key})
            return item.value

    def get_stale(self, key: str) -> tuple[Any, float] | None:
        """Return ``(value, age_seconds)`` for an entry still inside the grace window."""

        with self._lock:
            item = self._store.get(key)
            if item is None:
                return None
            now = self._clock()
            if now >= item.discard_at:
                self._evict_single(key)
                return None
            self._stale_hits += 1
            return item.value, now - item.stored_at

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._evict_expired_locked()
            now = self._clock()
            self._store[key] = CacheItem(
                value=value,
                stored_at=now,
                expires_at=now + self._ttl,
                discard_at=now + self._ttl + self._grace,
            )
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()

            logger.debug(
                "cache.set",
                extra={"cache_key": key, "size": len(self._store), "ttl_s": self._ttl},
            )

    def clear(self) -> None:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._stale_hits = 0
            self._evictions = 0

    def stats(self) -> dict[str, int | float | None]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "ttl_seconds": self._ttl,
                "grace_seconds": self._grace,
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "stale_hits": self._stale_hits,
                "evictions": self._evictions,
            }

    def _evict_single(self, key: str) -> None:
        if key in self._store:
            self._store.pop(key, None)
            self._evictions += 1

    def _evict_expired_locked(self) -> None:
        now = self._clock()
        expired_keys = [k for k, item in self._store.items() if item.discard_at <= now]
        for key in expired_keys:
            self._evict_single(key)

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1
