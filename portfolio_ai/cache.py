"""Cache abstraction with TTL support."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class CacheInterface(ABC):
    """Abstract cache interface."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Get cached value if exists and not expired."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store value in cache."""
        pass

    @abstractmethod
    def remove(self, key: str) -> bool:
        """Drop a single key, return True if it was present."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all cache."""
        pass

    @abstractmethod
    def cleanup(self) -> int:
        """Remove expired items, return count of removed items."""
        pass


class InMemoryCache(CacheInterface):
    """
    Simple in-memory cache with TTL support.

    An entry is usable while ``now - inserted_at < ttl``. Expired entries
    are evicted lazily on the next read of their key; ``cleanup`` is an
    optional sweep and is not needed for correctness. Concurrent writers to
    one key simply overwrite each other.
    """

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def _is_fresh(self, inserted_at: float, now: float) -> bool:
        return now - inserted_at < self.ttl_seconds

    def get(self, key: str) -> Optional[Any]:
        """Get cached value if it exists and is not expired."""
        entry = self._cache.get(key)
        if entry is None:
            return None

        value, inserted_at = entry
        if not self._is_fresh(inserted_at, self._clock()):
            # Another writer may have replaced the entry since we read it
            if self._cache.get(key) is entry:
                del self._cache[key]
            logger.debug("Cache miss (expired): %s", key)
            return None

        logger.debug("Cache hit: %s", key)
        return value

    def set(self, key: str, value: Any) -> None:
        """Store value in cache with current timestamp."""
        self._cache[key] = (value, self._clock())
        logger.debug("Cache set: %s", key)

    put = set

    def remove(self, key: str) -> bool:
        removed = self._cache.pop(key, None) is not None
        if removed:
            logger.debug("Cache remove: %s", key)
        return removed

    def clear(self) -> None:
        """Clear all cache."""
        count = len(self._cache)
        self._cache.clear()
        logger.info("Cache cleared: %d items removed", count)

    def cleanup(self) -> int:
        """Remove expired items, return count of removed items."""
        now = self._clock()
        expired_keys = [
            key for key, (_, inserted_at) in self._cache.items()
            if not self._is_fresh(inserted_at, now)
        ]
        for key in expired_keys:
            del self._cache[key]

        if expired_keys:
            logger.info("Cache cleanup: %d items removed", len(expired_keys))

        return len(expired_keys)

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        now = self._clock()
        valid = sum(
            1 for _, inserted_at in self._cache.values()
            if self._is_fresh(inserted_at, now)
        )
        return {
            "size": len(self._cache),
            "valid": valid,
            "expired": len(self._cache) - valid,
            "ttl_seconds": self.ttl_seconds,
        }
