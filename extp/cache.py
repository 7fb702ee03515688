"""
extp - Access Cache Storage

Key/value stores with per-entry expiry used to memoize access key checks.

Each entry has two deadlines:
- expires_at: after this the entry is no longer authoritative and reads miss
- purge_at: after this the entry is removed from storage

Two backends:
- MemoryTTLCache: in-process dict guarded by a lock (single instance)
- RedisTTLCache: shared Redis keys (multiple gateway instances)
"""
from __future__ import annotations

import hashlib
import json
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol

import structlog
from redis.exceptions import RedisError

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 60.0
DEFAULT_PURGE_SECONDS = 600.0


@dataclass
class CacheEntry:
    """A cached value with its active and storage deadlines."""
    value: Any
    expires_at: float
    purge_at: float

    def is_active(self, now: float) -> bool:
        return now < self.expires_at


class TTLCache(Protocol):
    async def get(self, key: str) -> Optional[CacheEntry]:
        ...

    async def set(self, key: str, value: Any) -> None:
        ...


class MemoryTTLCache:
    """
    Thread-safe in-process TTL cache.

    Expired entries are skipped at read time. Storage is swept of entries
    past their purge deadline at most once per purge interval, on write.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        purge_after: float = DEFAULT_PURGE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if purge_after < ttl:
            raise ValueError("purge_after must not be shorter than ttl")
        self.ttl = ttl
        self.purge_after = purge_after
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._next_sweep = clock() + purge_after

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def get(self, key: str) -> Optional[CacheEntry]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if now >= entry.purge_at:
                del self._entries[key]
                return None
        if not entry.is_active(now):
            return None
        return entry

    async def set(self, key: str, value: Any) -> None:
        now = self._clock()
        entry = CacheEntry(
            value=value,
            expires_at=now + self.ttl,
            purge_at=now + self.purge_after,
        )
        with self._lock:
            self._entries[key] = entry
            if now >= self._next_sweep:
                self._sweep_locked(now)
                self._next_sweep = now + self.purge_after

    def sweep(self) -> int:
        """Remove entries past their purge deadline. Returns the number removed."""
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        stale = [k for k, e in self._entries.items() if now >= e.purge_at]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.debug("access_cache_swept", removed=len(stale), remaining=len(self._entries))
        return len(stale)


class RedisTTLCache:
    """
    Redis-backed TTL cache shared between service instances.

    The authoritative expiry is stored with the value; the Redis key itself
    expires after the purge window. Key names are hashed so access key
    secrets never appear in Redis.
    """

    def __init__(
        self,
        redis_client: Redis,
        ttl: float = DEFAULT_TTL_SECONDS,
        purge_after: float = DEFAULT_PURGE_SECONDS,
        prefix: str = "extp:access:",
        clock: Callable[[], float] = time.time,
    ):
        if purge_after < ttl:
            raise ValueError("purge_after must not be shorter than ttl")
        self.redis = redis_client
        self.ttl = ttl
        self.purge_after = purge_after
        self.prefix = prefix
        self._clock = clock

    def _key(self, key: str) -> str:
        return self.prefix + hashlib.sha256(key.encode()).hexdigest()

    async def get(self, key: str) -> Optional[CacheEntry]:
        try:
            raw = await self.redis.get(self._key(key))
        except RedisError as e:
            # Treated as a miss; the caller re-resolves against the provision service
            logger.warning("access_cache_unavailable", op="get", error=str(e))
            return None

        if raw is None:
            return None

        try:
            data = json.loads(raw)
            entry = CacheEntry(
                value=data["value"],
                expires_at=float(data["expires_at"]),
                purge_at=float(data["purge_at"]),
            )
        except (ValueError, KeyError, TypeError):
            logger.warning("access_cache_corrupt_entry", key=self._key(key))
            return None

        if not entry.is_active(self._clock()):
            return None
        return entry

    async def set(self, key: str, value: Any) -> None:
        now = self._clock()
        data = {
            "value": value,
            "expires_at": now + self.ttl,
            "purge_at": now + self.purge_after,
        }
        try:
            await self.redis.set(self._key(key), json.dumps(data), ex=int(self.purge_after))
        except RedisError as e:
            logger.warning("access_cache_unavailable", op="set", error=str(e))
