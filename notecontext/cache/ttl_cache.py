"""
TTL cache for notecontext.

Memoizes expensive aggregates (linked references, search results) keyed by
source identity. Every key has its own re-entrant lock, so the TTL check and
the update of one key are serialized while other keys proceed independently.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from ..errors import CacheComputeFailure, ContextWarning, record_warning
from ..models import CacheEntry


class TTLCache:
    """
    In-memory cache with per-entry TTL and a capacity limit.

    Expired entries stay behind as the last good value of their key until
    they are recomputed or evicted over capacity.
    """

    def __init__(self, default_ttl_ms: int = 30000, max_entries: int = 100,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize the cache.

        Args:
            default_ttl_ms: TTL used when set() is called without one
            max_entries: Capacity; the oldest computed entry is evicted first
            clock: Monotonic clock returning seconds
        """
        self.default_ttl_ms = default_ttl_ms
        self.max_entries = max_entries
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._key_locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def key_lock(self, key: str) -> threading.RLock:
        """Return the lock serializing updates of one key."""
        with self._guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.RLock()
            return lock

    def entry(self, key: str) -> Optional[CacheEntry]:
        """Return the raw entry for a key, valid or not."""
        with self._guard:
            return self._entries.get(key)

    def get(self, key: str) -> Optional[Any]:
        """Get a value if it is still within its TTL."""
        entry = self.entry(key)
        if entry is None or not entry.is_valid(self.clock()):
            return None
        logging.debug(f"Cache hit: {key}")
        return entry.value

    def set(self, key: str, value: Any, ttl_ms: Optional[int] = None, checksum: str = "") -> CacheEntry:
        """Store a value with computed_at = now."""
        entry = CacheEntry(
            value=value,
            computed_at=self.clock(),
            ttl_ms=self.default_ttl_ms if ttl_ms is None else ttl_ms,
            checksum=checksum,
        )
        with self.key_lock(key):
            with self._guard:
                self._entries.pop(key, None)
                self._entries[key] = entry
                self._evict_over_capacity()
        return entry

    def invalidate(self, key: str) -> None:
        """Force recomputation on the next access of a key."""
        with self.key_lock(key):
            with self._guard:
                self._entries.pop(key, None)
                self._key_locks.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> None:
        """Invalidate every key starting with prefix."""
        with self._guard:
            keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            self.invalidate(key)

    def cached_or_compute(self, key: str, ttl_ms: Optional[int], compute_fn: Callable[[], Any],
                          warnings: Optional[List[ContextWarning]] = None) -> Any:
        """
        Return the cached value for a key, computing and storing it when missing or stale.

        A failed recompute keeps the last good value: the stale value is
        returned and a CACHE_COMPUTE_FAILURE warning recorded.

        Args:
            key: Cache key
            ttl_ms: TTL for a freshly computed value (None for the default)
            compute_fn: Zero-argument function producing the value
            warnings: Optional list collecting compute failures

        Returns:
            The cached, freshly computed or last good value

        Raises:
            CacheComputeFailure: If compute_fn raises and the key never had a value
        """
        with self.key_lock(key):
            entry = self.entry(key)
            if entry is not None and entry.is_valid(self.clock()):
                return entry.value
            try:
                value = compute_fn()
            except Exception as e:
                failure = CacheComputeFailure(key, e)
                if entry is None:
                    raise failure from e
                record_warning(warnings, ContextWarning.from_error(failure))
                return entry.value
            self.set(key, value, ttl_ms)
            return value

    def clear(self) -> None:
        """Clear all cache entries."""
        with self._guard:
            self._entries.clear()
            self._key_locks.clear()

    def stats(self) -> dict:
        """Get cache statistics."""
        now = self.clock()
        with self._guard:
            valid_count = sum(1 for e in self._entries.values() if e.is_valid(now))
            total = len(self._entries)
        return {
            "total_keys": total,
            "valid_keys": valid_count,
            "expired_keys": total - valid_count,
        }

    def _evict_over_capacity(self) -> None:
        # Caller holds _guard. Expired entries go first, then the oldest ones.
        if len(self._entries) <= self.max_entries:
            return
        now = self.clock()
        for key in [k for k, e in self._entries.items() if not e.is_valid(now)]:
            self._forget(key)
        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            logging.debug(f"Evicting cache key over capacity: {oldest}")
            self._forget(oldest)

    def _forget(self, key: str) -> None:
        # Caller holds _guard.
        del self._entries[key]
        self._key_locks.pop(key, None)
