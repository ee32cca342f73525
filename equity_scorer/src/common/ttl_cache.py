"""
TTL cache for async operations with size limits.
Entries expire individually; the least recently used entry is evicted when
the cache is full.
"""

import asyncio
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

from equity_scorer.src.common.loguru_logger import logger

T = TypeVar("T")


class AsyncTTLCache(Generic[T]):
    """
    Lock-protected key/value store with per-entry time-to-live.

    Attributes:
        maxsize: Maximum number of entries in the cache (default: 2000)
    """

    def __init__(
        self,
        maxsize: int = 2000,
        default_ttl: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            maxsize: Maximum number of entries to store
            default_ttl: TTL in seconds used when ``set`` is called without one
            clock: Monotonic time source, injectable for tests
        """
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")

        self._maxsize = maxsize
        self._default_ttl = default_ttl
        self._clock = clock
        self._cache: "OrderedDict[str, Tuple[T, float]]" = OrderedDict()
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0
        self._expired = 0

        logger.debug(f"Initialized AsyncTTLCache with maxsize={maxsize}, default_ttl={default_ttl}s")

    async def get(self, key: str) -> Optional[T]:
        """
        Get a live value from the cache.

        Returns:
            Cached value if present and not expired, None otherwise
        """
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._cache[key]
                self._expired += 1
                self._misses += 1
                return None

            self._cache.move_to_end(key)
            self._hits += 1
            return value

    async def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """
        Store a value, evicting the least recently used entry when full.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds (defaults to ``default_ttl``)
        """
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")

        async with self._lock:
            if key in self._cache:
                self._cache.pop(key)
            self._cache[key] = (value, self._clock() + ttl)

            while len(self._cache) > self._maxsize:
                evicted_key, _ = self._cache.popitem(last=False)
                logger.debug(f"Evicted cache entry: {evicted_key}")

    async def delete(self, key: str) -> bool:
        """Remove a key. Returns True if it was present."""
        async with self._lock:
            return self._cache.pop(key, None) is not None

    async def delete_prefix(self, prefix: str) -> int:
        """Remove every key starting with ``prefix``. Returns the number removed."""
        async with self._lock:
            keys = [k for k in self._cache if k.startswith(prefix)]
            for key in keys:
                del self._cache[key]
            return len(keys)

    async def clear(self) -> None:
        """Clear all entries and reset statistics."""
        async with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0
            self._expired = 0

    async def size(self) -> int:
        """Number of stored entries, including ones not yet found expired."""
        async with self._lock:
            return len(self._cache)

    async def stats(self) -> Dict[str, Any]:
        """Cache statistics."""
        async with self._lock:
            total = self._hits + self._misses
            hit_rate = (self._hits / total * 100) if total > 0 else 0.0
            return {
                "size": len(self._cache),
                "maxsize": self._maxsize,
                "hits": self._hits,
                "misses": self._misses,
                "expired": self._expired,
                "hit_rate": f"{hit_rate:.1f}%",
            }

    @property
    def maxsize(self) -> int:
        return self._maxsize
