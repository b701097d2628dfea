"""In-memory result cache with lazy TTL expiry."""

import time
from typing import Any, Callable, Dict, Optional

from ..models.schemas import CacheEntry
from .logger import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 300


class Cache:
    """
    Unbounded in-memory cache with TTL support.

    Entries are never evicted proactively. A stale entry is treated as absent
    and pruned when it is next looked up.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize cache.

        Args:
            ttl_seconds: Time-to-live in seconds
            clock: Monotonic time source
        """
        self._entries: Dict[str, CacheEntry] = {}
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def set(self, key: str, value: Any):
        """Store a value stamped with the current time."""
        self._entries[key] = CacheEntry(key=key, timestamp=self._clock(), data=value)
        logger.debug(f"Cache set: {key}", extra={"ttl_seconds": self.ttl_seconds})

    def get(self, key: str) -> Optional[Any]:
        """
        Get a cache value.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found/expired
        """
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() - entry.timestamp >= self.ttl_seconds:
            logger.debug(f"Cache expired: {key}")
            del self._entries[key]
            return None

        logger.debug(f"Cache hit: {key}")
        return entry.data
