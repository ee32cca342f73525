"""
Unit tests for AsyncTTLCache
"""

import pytest

from equity_scorer.src.common.ttl_cache import AsyncTTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_cache_initialization():
    """Invalid sizes and TTLs are rejected"""
    cache = AsyncTTLCache(maxsize=100)
    assert cache.maxsize == 100
    assert await cache.size() == 0

    with pytest.raises(ValueError):
        AsyncTTLCache(maxsize=0)

    with pytest.raises(ValueError):
        AsyncTTLCache(maxsize=10, default_ttl=0)


@pytest.mark.asyncio
async def test_set_and_get():
    cache = AsyncTTLCache(maxsize=10)

    await cache.set("quote:AAPL", "payload")
    assert await cache.get("quote:AAPL") == "payload"
    assert await cache.get("quote:MSFT") is None


@pytest.mark.asyncio
async def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = AsyncTTLCache(maxsize=10, clock=clock)

    await cache.set("quote:AAPL", "fresh", ttl=900)
    clock.now += 899
    assert await cache.get("quote:AAPL") == "fresh"

    clock.now += 1
    assert await cache.get("quote:AAPL") is None
    assert await cache.size() == 0

    stats = await cache.stats()
    assert stats["expired"] == 1


@pytest.mark.asyncio
async def test_each_entry_has_its_own_ttl():
    clock = FakeClock()
    cache = AsyncTTLCache(maxsize=10, clock=clock)

    await cache.set("quote:AAPL", "q", ttl=900)
    await cache.set("fundamentals:AAPL", "f", ttl=86400)
    clock.now += 1000

    assert await cache.get("quote:AAPL") is None
    assert await cache.get("fundamentals:AAPL") == "f"


@pytest.mark.asyncio
async def test_least_recently_used_entry_is_evicted():
    cache = AsyncTTLCache(maxsize=3)

    await cache.set("a", 1)
    await cache.set("b", 2)
    await cache.set("c", 3)
    await cache.get("a")
    await cache.set("d", 4)

    assert await cache.get("b") is None
    assert await cache.get("a") == 1
    assert await cache.size() == 3


@pytest.mark.asyncio
async def test_delete_and_delete_prefix():
    cache = AsyncTTLCache(maxsize=10)
    await cache.set("history:AAPL:1y", "h")
    await cache.set("history:AAPL:6mo", "h")
    await cache.set("quote:AAPL", "q")

    assert await cache.delete("quote:AAPL") is True
    assert await cache.delete("quote:AAPL") is False
    assert await cache.delete_prefix("history:AAPL") == 2
    assert await cache.size() == 0


@pytest.mark.asyncio
async def test_stats_track_hits_and_misses():
    cache = AsyncTTLCache(maxsize=10)
    await cache.set("k", "v")
    await cache.get("k")
    await cache.get("missing")

    stats = await cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == "50.0%"

    await cache.clear()
    stats = await cache.stats()
    assert stats["size"] == 0
    assert stats["hits"] == 0
