"""Cache abstraction layer.

Provides a CacheBackend ABC and the in-process MemoryCacheBackend used for
both catalog listings and subtitle search results. Backends are TTL-agnostic:
every caller passes its own lifetime to set().

Values are stored by reference. Callers must only store immutable values
(tuples, frozen dataclasses) so readers never see a half-updated entry.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

logger = logging.getLogger(__name__)


class CacheBackend(ABC):
    """Abstract base class for cache backends.

    Tracks hit/miss statistics as instance attributes for monitoring.
    """

    def __init__(self):
        self._hits: int = 0
        self._misses: int = 0

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Get cached value by key.

        Returns:
            Cached value, or None if not found / expired.
        """

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: float = 0) -> None:
        """Insert or replace a value, restarting its expiry window.

        Args:
            key: Cache key.
            value: Immutable value to cache (must not be None).
            ttl_seconds: Time-to-live in seconds. 0 means no expiry.
        """

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete a key.

        Returns:
            True if the key existed and was deleted.
        """

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if key exists (and is not expired)."""

    @abstractmethod
    def clear(self, prefix: str = "") -> int:
        """Clear all keys, or keys matching prefix.

        Returns:
            Number of keys deleted.
        """

    @abstractmethod
    def get_stats(self) -> dict:
        """Return cache statistics.

        Returns:
            Dict with at least: backend (str), hits (int), misses (int), size (int).
        """


def create_cache_backend() -> CacheBackend:
    """Create the process-local cache backend."""
    from cache.memory_cache import MemoryCacheBackend

    logger.debug("Using in-memory cache backend")
    return MemoryCacheBackend()
