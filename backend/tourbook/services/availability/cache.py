# backend/tourbook/services/availability/cache.py
"""
Availability cache.

Passed explicitly to the resolver and to every mutation that must
invalidate it. Values are the JSON-able dict of a MonthAvailability.

Key format: availability:month:{tour_id}:{YYYY-MM}:{option_id | "all"}:g{generation}
Generation: availability:gen:{tour_id}

Every mutation of a tour bumps its generation after commit. A reader takes
the generation before loading from the database and writes under that
generation's key, so a result computed from pre-commit data lands on a key
nobody reads any more instead of overwriting the invalidation.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Iterable

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

KEY_PREFIX = "availability:month"
GENERATION_PREFIX = "availability:gen"


def month_cache_key(
    tour_id: int,
    month: str,
    option_id: str | None = None,
    generation: int = 0,
) -> str:
    return f"{KEY_PREFIX}:{tour_id}:{month}:{option_id or 'all'}:g{generation}"


def month_cache_prefix(tour_id: int, month: str | None = None) -> str:
    if month is None:
        return f"{KEY_PREFIX}:{tour_id}:"
    return f"{KEY_PREFIX}:{tour_id}:{month}:"


def generation_key(tour_id: int) -> str:
    return f"{GENERATION_PREFIX}:{tour_id}"


class AvailabilityCache(ABC):
    """get / set / invalidate by key prefix, plus a per-tour generation counter."""

    def __init__(self, ttl_seconds: int = 300):
        self.ttl_seconds = ttl_seconds

    @abstractmethod
    async def get(self, key: str) -> dict | None:
        ...

    @abstractmethod
    async def set(self, key: str, value: dict, ttl: int | None = None) -> None:
        ...

    @abstractmethod
    async def invalidate(self, prefix: str) -> int:
        """Drop every key starting with prefix. Returns number dropped."""

    @abstractmethod
    async def generation(self, tour_id: int) -> int:
        """Current generation of a tour's cached months."""

    @abstractmethod
    async def bump_generation(self, tour_id: int) -> int:
        """Advance the generation. Returns the new value."""


class MemoryAvailabilityCache(AvailabilityCache):
    """
    In-process cache with expiry. Used without Redis and in tests.

    Expired entries are purged on every write; past max_entries the oldest
    entries are evicted.
    """

    def __init__(self, ttl_seconds: int = 300, max_entries: int = 1024):
        super().__init__(ttl_seconds)
        self.max_entries = max_entries
        self._data: OrderedDict[str, tuple[float, str]] = OrderedDict()
        self._generations: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._data)

    async def get(self, key: str) -> dict | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at, raw = entry
        if expires_at <= time.monotonic():
            self._data.pop(key, None)
            return None
        return json.loads(raw)

    async def set(self, key: str, value: dict, ttl: int | None = None) -> None:
        ttl = self.ttl_seconds if ttl is None else ttl
        if ttl <= 0:
            return
        now = time.monotonic()
        self._purge_expired(now)
        self._data.pop(key, None)
        self._data[key] = (now + ttl, json.dumps(value))
        while len(self._data) > self.max_entries:
            self._data.popitem(last=False)

    async def invalidate(self, prefix: str) -> int:
        keys = [k for k in self._data if k.startswith(prefix)]
        for key in keys:
            del self._data[key]
        return len(keys)

    async def generation(self, tour_id: int) -> int:
        return self._generations.get(tour_id, 0)

    async def bump_generation(self, tour_id: int) -> int:
        self._generations[tour_id] = self._generations.get(tour_id, 0) + 1
        return self._generations[tour_id]

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._data.items() if expires_at <= now]
        for key in expired:
            del self._data[key]


class RedisAvailabilityCache(AvailabilityCache):
    """Redis-backed cache: JSON strings with SET EX, generation via INCR."""

    def __init__(self, redis: aioredis.Redis, ttl_seconds: int = 300):
        super().__init__(ttl_seconds)
        self.redis = redis

    async def get(self, key: str) -> dict | None:
        raw = await self.redis.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: dict, ttl: int | None = None) -> None:
        ttl = self.ttl_seconds if ttl is None else ttl
        if ttl <= 0:
            return
        await self.redis.set(key, json.dumps(value), ex=ttl)

    async def invalidate(self, prefix: str) -> int:
        keys = [key async for key in self.redis.scan_iter(match=f"{prefix}*", count=100)]
        if not keys:
            return 0
        return await self.redis.delete(*keys)

    async def generation(self, tour_id: int) -> int:
        raw = await self.redis.get(generation_key(tour_id))
        return int(raw) if raw is not None else 0

    async def bump_generation(self, tour_id: int) -> int:
        return await self.redis.incr(generation_key(tour_id))


async def invalidate_months(
    cache: AvailabilityCache | None,
    tour_id: int,
    months: Iterable[str] | None = None,
) -> None:
    """
    Invalidate cached months of a tour (all months when months is None).

    The generation bump retires every cached month of the tour, including
    results still being computed from data read before the change. Deleting
    the listed months only frees their entries early.

    Cache failures are logged, not raised: the write already committed.
    """
    if cache is None:
        return

    try:
        await cache.bump_generation(tour_id)
    except RedisError:
        logger.exception(f"Failed to bump availability cache generation of tour {tour_id}")

    prefixes = (
        [month_cache_prefix(tour_id)]
        if months is None
        else [month_cache_prefix(tour_id, m) for m in months]
    )
    for prefix in prefixes:
        try:
            await cache.invalidate(prefix)
        except RedisError:
            logger.exception(f"Failed to invalidate availability cache {prefix}")
