"""Tests for the in-memory TTL cache."""

from checkpointer.application.cache import InMemoryCache


class FakeClock:
    """Manually advanced clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestInMemoryCache:
    """Test InMemoryCache get/set/expiry."""

    async def test_set_and_get(self) -> None:
        cache: InMemoryCache[str, int] = InMemoryCache()
        await cache.set("answer", 42)
        assert await cache.get("answer") == 42

    async def test_missing_key_returns_none(self) -> None:
        cache: InMemoryCache[str, int] = InMemoryCache()
        assert await cache.get("nope") is None

    async def test_entry_expires_after_ttl(self) -> None:
        clock = FakeClock()
        cache: InMemoryCache[str, int] = InMemoryCache(clock=clock)
        await cache.set("k", 1, ttl_seconds=600)

        clock.now += 600
        assert await cache.get("k") == 1

        clock.now += 1
        assert await cache.get("k") is None

    async def test_delete_and_clear(self) -> None:
        cache: InMemoryCache[str, int] = InMemoryCache()
        await cache.set("a", 1)
        await cache.set("b", 2)

        assert await cache.delete("a") is True
        assert await cache.delete("a") is False

        await cache.clear()
        assert await cache.get("b") is None

    async def test_expired_entry_is_evicted_on_read(self) -> None:
        clock = FakeClock()
        cache: InMemoryCache[str, int] = InMemoryCache(clock=clock)
        await cache.set("short", 1, ttl_seconds=10)
        await cache.set("long", 2, ttl_seconds=1000)

        clock.now += 11

        assert await cache.get("short") is None
        assert await cache.delete("short") is False
        assert await cache.get("long") == 2
