"""Cache interface and a process-local TTL implementation."""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass


@dataclass
class CacheEntry[V]:
    """A cached value and the clock reading after which it's stale."""

    value: V
    expires_at: float


class BaseCache[K, V](ABC):
    """Async key/value cache with per-entry TTL."""

    @abstractmethod
    async def get(self, key: K) -> V | None:
        """Cached value, or None when missing or expired."""

    @abstractmethod
    async def set(self, key: K, value: V, ttl_seconds: int = 3600) -> None:
        """Store ``value`` for ``ttl_seconds`` (overwrites)."""

    @abstractmethod
    async def delete(self, key: K) -> bool:
        """Remove ``key``; True if it was present."""


class InMemoryCache[K, V](BaseCache[K, V]):
    """Dict-backed TTL cache, shared only within one process.

    The sync CLI runs as its own process, so it can't invalidate a web process's cache;
    the TTL is what bounds staleness there.
    """

    # Hey future me, the clock is injectable so tests can jump past a TTL without sleeping.
    # time.monotonic by default: wall-clock jumps (NTP) never expire or revive entries.
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[K, CacheEntry[V]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    # Expired entries are evicted on read, so get() is a miss for both "absent" and "stale"
    async def get(self, key: K) -> V | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() > entry.expires_at:
                del self._entries[key]
                return None
            return entry.value

    async def set(self, key: K, value: V, ttl_seconds: int = 3600) -> None:
        async with self._lock:
            self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl_seconds)

    async def delete(self, key: K) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
