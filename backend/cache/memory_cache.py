"""In-memory cache backend with TTL eviction.

Thread-safe via threading.Lock. Expiry uses a monotonic clock that can be
swapped out in tests.
"""

import logging
import threading
import time
from typing import Any, Callable, Optional

from cache import CacheBackend

logger = logging.getLogger(__name__)

# Evict expired entries every N accesses
_EVICTION_INTERVAL = 100


class MemoryCacheBackend(CacheBackend):
    """CacheBackend implementation using an in-process dict with TTL.

    Values are stored as (value, expires_at) tuples where expires_at is a
    clock reading (0 means no expiry). Expired entries are dropped when they
    are read, and swept every _EVICTION_INTERVAL accesses to bound memory.

    Args:
        clock: Zero-argument callable returning seconds. Defaults to
               time.monotonic.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        super().__init__()
        self._clock = clock or time.monotonic
        self._store: dict = {}  # key -> (value, expires_at)
        self._lock = threading.Lock()
        self._access_count: int = 0

    def _is_expired(self, expires_at: float, now: float) -> bool:
        return expires_at > 0 and now >= expires_at

    def _maybe_evict(self) -> None:
        """Sweep expired entries every _EVICTION_INTERVAL accesses.

        Caller must NOT hold self._lock.
        """
        with self._lock:
            self._access_count += 1
            due = self._access_count % _EVICTION_INTERVAL == 0
        if due:
            self._evict_expired()

    def _evict_expired(self) -> None:
        """Remove all expired entries from the store.

        Caller must NOT hold self._lock.
        """
        with self._lock:
            now = self._clock()
            expired_keys = [
                k for k, (_, exp) in self._store.items()
                if self._is_expired(exp, now)
            ]
            for k in expired_keys:
                del self._store[k]
        if expired_keys:
            logger.debug("Evicted %d expired cache entries", len(expired_keys))

    def get(self, key: str) -> Optional[Any]:
        """Get cached value by key, returning None if expired or missing."""
        self._maybe_evict()
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            value, expires_at = entry
            if self._is_expired(expires_at, self._clock()):
                del self._store[key]
                self._misses += 1
                return None
            self._hits += 1
            return value

    def set(self, key: str, value: Any, ttl_seconds: float = 0) -> None:
        """Set value with optional TTL (seconds). 0 means no expiry."""
        if value is None:
            raise ValueError("Cannot cache None; it is indistinguishable from a miss")
        with self._lock:
            expires_at = (self._clock() + ttl_seconds) if ttl_seconds > 0 else 0.0
            self._store[key] = (value, expires_at)

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        with self._lock:
            return self._store.pop(key, None) is not None

    def exists(self, key: str) -> bool:
        """Check if key exists and is not expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return False
            _, expires_at = entry
            if self._is_expired(expires_at, self._clock()):
                del self._store[key]
                return False
            return True

    def clear(self, prefix: str = "") -> int:
        """Clear keys matching prefix. Empty prefix clears all."""
        with self._lock:
            if not prefix:
                count = len(self._store)
                self._store.clear()
                return count
            keys_to_delete = [k for k in self._store if k.startswith(prefix)]
            for k in keys_to_delete:
                del self._store[k]
            return len(keys_to_delete)

    def get_stats(self) -> dict:
        """Return cache statistics."""
        with self._lock:
            size = len(self._store)
            hits, misses = self._hits, self._misses
        return {
            "backend": "memory",
            "hits": hits,
            "misses": misses,
            "size": size,
        }
