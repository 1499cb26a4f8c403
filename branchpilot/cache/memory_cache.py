"""In-memory cache implementation."""

import asyncio
import time
from collections.abc import Callable
from typing import Any


class MemoryCache:
    """Coroutine-safe in-memory cache with TTL support.

    An entry written at ``t`` with TTL ``ttl`` is live while
    ``now - t < ttl`` and expired from ``now - t >= ttl`` on.
    """

    def __init__(
        self,
        max_size: int | None = 1000,
        default_ttl: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize memory cache.

        Args:
            max_size: Maximum number of items to store, None for unbounded
            default_ttl: Default TTL in seconds, 0 for no expiry
            clock: Monotonic time source
        """
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._cache: dict[str, tuple[Any, float | None]] = {}
        self._access_times: dict[str, float] = {}
        self._lock = asyncio.Lock()

    def _expires_at(self, ttl: float | None) -> float | None:
        if ttl is not None:
            return self._clock() + ttl
        if self.default_ttl > 0:
            return self._clock() + self.default_ttl
        return None

    def _is_expired(self, expires_at: float | None, now: float) -> bool:
        return expires_at is not None and now >= expires_at

    def _live_value(self, key: str, now: float) -> tuple[bool, Any]:
        """Return (found, value), dropping the entry if it has expired."""
        if key not in self._cache:
            return False, None

        value, expires_at = self._cache[key]
        if self._is_expired(expires_at, now):
            del self._cache[key]
            self._access_times.pop(key, None)
            return False, None

        return True, value

    async def get(self, key: str) -> Any | None:
        """Get value from cache by key."""
        async with self._lock:
            now = self._clock()
            found, value = self._live_value(key, now)
            if found:
                self._access_times[key] = now
            return value

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Set value in cache with optional TTL."""
        async with self._lock:
            self._store(key, value, ttl)

    async def add(self, key: str, value: Any, ttl: float | None = None) -> bool:
        """Store value only if no live entry exists for key.

        Returns:
            True if the value was stored, False if a live entry was kept
        """
        async with self._lock:
            found, _ = self._live_value(key, self._clock())
            if found:
                return False
            self._store(key, value, ttl)
            return True

    def _store(self, key: str, value: Any, ttl: float | None) -> None:
        self._cache[key] = (value, self._expires_at(ttl))
        self._access_times[key] = self._clock()
        self._evict_if_needed()

    async def delete(self, key: str) -> bool:
        """Delete value from cache."""
        async with self._lock:
            if key in self._cache:
                del self._cache[key]
                self._access_times.pop(key, None)
                return True
            return False

    async def exists(self, key: str) -> bool:
        """Check if a live entry exists for key."""
        async with self._lock:
            found, _ = self._live_value(key, self._clock())
            return found

    def _evict_if_needed(self) -> None:
        """Evict least recently used entries if cache is over max size."""
        if self.max_size is None:
            return
        while len(self._cache) > self.max_size:
            oldest_key = min(
                self._access_times.keys(), key=lambda x: self._access_times[x]
            )
            del self._cache[oldest_key]
            del self._access_times[oldest_key]

    async def cleanup_expired(self) -> list[str]:
        """Remove all expired entries.

        Returns:
            Keys of the removed entries
        """
        async with self._lock:
            now = self._clock()
            expired_keys = [
                key
                for key, (_value, expires_at) in self._cache.items()
                if self._is_expired(expires_at, now)
            ]
            for key in expired_keys:
                del self._cache[key]
                self._access_times.pop(key, None)

            return expired_keys

    def __len__(self) -> int:
        """Number of stored entries, expired ones included until swept."""
        return len(self._cache)

