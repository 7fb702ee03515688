"""Tests for the access decision stores."""
from __future__ import annotations

import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import FakeClock
from extp.cache import MemoryTTLCache, RedisTTLCache


class FakeRedis:
    """Minimal async Redis stand-in recording key expiries."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.expiry: dict[str, int] = {}

    async def get(self, name):
        return self.data.get(name)

    async def set(self, name, value, ex=None):
        self.data[name] = value
        self.expiry[name] = ex
        return True


class DownRedis:
    """Redis stand-in whose connection is always refused."""

    async def get(self, name):
        raise RedisConnectionError("redis down")

    async def set(self, name, value, ex=None):
        raise RedisConnectionError("redis down")


class TestMemoryTTLCache:
    """In-process store with active TTL and purge window."""

    @pytest.mark.asyncio
    async def test_miss_on_empty(self, clock: FakeClock):
        cache = MemoryTTLCache(clock=clock)
        assert await cache.get("acct-42k1secret") is None

    @pytest.mark.asyncio
    async def test_hit_within_ttl(self, clock: FakeClock):
        cache = MemoryTTLCache(ttl=60, purge_after=600, clock=clock)
        await cache.set("key", False)

        clock.advance(59)
        entry = await cache.get("key")

        assert entry is not None
        assert entry.value is False

    @pytest.mark.asyncio
    async def test_expired_entry_misses_but_stays_stored(self, clock: FakeClock):
        """After the TTL the entry is not authoritative, but is only purged later."""
        cache = MemoryTTLCache(ttl=60, purge_after=600, clock=clock)
        await cache.set("key", True)

        clock.advance(60)

        assert await cache.get("key") is None
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_purged_after_window(self, clock: FakeClock):
        cache = MemoryTTLCache(ttl=60, purge_after=600, clock=clock)
        await cache.set("key", True)

        clock.advance(600)

        assert await cache.get("key") is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_rewrite_refreshes_expiry(self, clock: FakeClock):
        cache = MemoryTTLCache(ttl=60, purge_after=600, clock=clock)
        await cache.set("key", False)
        clock.advance(50)
        await cache.set("key", True)
        clock.advance(50)

        entry = await cache.get("key")
        assert entry is not None
        assert entry.value is True

    @pytest.mark.asyncio
    async def test_sweep_removes_only_purgeable(self, clock: FakeClock):
        cache = MemoryTTLCache(ttl=60, purge_after=600, clock=clock)
        await cache.set("old", True)
        clock.advance(500)
        await cache.set("new", True)
        clock.advance(100)

        removed = cache.sweep()

        assert removed == 1
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_write_triggers_periodic_sweep(self, clock: FakeClock):
        cache = MemoryTTLCache(ttl=60, purge_after=600, clock=clock)
        await cache.set("a", True)
        clock.advance(601)
        await cache.set("b", True)

        assert len(cache) == 1

    def test_purge_shorter_than_ttl_rejected(self):
        with pytest.raises(ValueError):
            MemoryTTLCache(ttl=60, purge_after=30)


class TestRedisTTLCache:
    """Redis store keeps the authoritative expiry next to the value."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, clock: FakeClock):
        redis = FakeRedis()
        cache = RedisTTLCache(redis, ttl=60, purge_after=600, clock=clock)

        await cache.set("acct-1k1secret", True)
        entry = await cache.get("acct-1k1secret")

        assert entry is not None
        assert entry.value is True

    @pytest.mark.asyncio
    async def test_key_expiry_is_purge_window(self, clock: FakeClock):
        redis = FakeRedis()
        cache = RedisTTLCache(redis, ttl=60, purge_after=600, clock=clock)

        await cache.set("acct-1k1secret", False)

        (name,) = redis.data
        assert redis.expiry[name] == 600
        assert json.loads(redis.data[name])["value"] is False

    @pytest.mark.asyncio
    async def test_secret_not_in_key_name(self, clock: FakeClock):
        redis = FakeRedis()
        cache = RedisTTLCache(redis, clock=clock)

        await cache.set("acct-1k1topsecret", True)

        (name,) = redis.data
        assert name.startswith("extp:access:")
        assert "topsecret" not in name

    @pytest.mark.asyncio
    async def test_stale_entry_misses(self, clock: FakeClock):
        redis = FakeRedis()
        cache = RedisTTLCache(redis, ttl=60, purge_after=600, clock=clock)
        await cache.set("key", True)

        clock.advance(61)

        assert await cache.get("key") is None

    @pytest.mark.asyncio
    async def test_corrupt_entry_misses(self, clock: FakeClock):
        redis = FakeRedis()
        cache = RedisTTLCache(redis, clock=clock)
        await cache.set("key", True)
        (name,) = redis.data
        redis.data[name] = "not json"

        assert await cache.get("key") is None

    @pytest.mark.asyncio
    async def test_unavailable_redis_misses(self, clock: FakeClock):
        cache = RedisTTLCache(DownRedis(), clock=clock)

        await cache.set("key", True)

        assert await cache.get("key") is None
