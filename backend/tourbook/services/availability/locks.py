# backend/tourbook/services/availability/locks.py
"""
Per-(tour, date) mutual exclusion for ledger mutations.

The conditional UPDATE in ledger.py is what prevents overselling; the lock
serializes ledger-row creation and the check-then-write sequence so that
concurrent requests queue instead of failing on the uniqueness constraint.

Key format: lock:ledger:{tour_id}:{date}
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator

import redis.asyncio as aioredis
from redis.exceptions import LockError

from ...errors import Unavailable

logger = logging.getLogger(__name__)

KEY_PREFIX = "lock:ledger"


def lock_key(tour_id: int, day: date) -> str:
    return f"{KEY_PREFIX}:{tour_id}:{day.isoformat()}"


class LedgerLocks(ABC):

    def __init__(self, timeout_seconds: float = 10.0):
        self.timeout_seconds = timeout_seconds

    @abstractmethod
    def hold(self, tour_id: int, day: date):
        """Async context manager holding the lock for (tour_id, day)."""


class LocalLedgerLocks(LedgerLocks):
    """asyncio.Lock per key. Guards one process only."""

    def __init__(self, timeout_seconds: float = 10.0):
        super().__init__(timeout_seconds)
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, tour_id: int, day: date) -> AsyncIterator[None]:
        key = lock_key(tour_id, day)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(f"Timed out waiting for {key}")
                raise Unavailable("Slot is busy, please retry")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


class RedisLedgerLocks(LedgerLocks):
    """
    Redis lock (SET NX PX under the hood). Guards all workers.

    timeout_seconds bounds the wait; lease_seconds is how long a holder may
    keep the key before Redis expires it (defaults to three waits).
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        timeout_seconds: float = 10.0,
        lease_seconds: float | None = None,
    ):
        super().__init__(timeout_seconds)
        self.redis = redis
        self.lease_seconds = lease_seconds or timeout_seconds * 3

    @asynccontextmanager
    async def hold(self, tour_id: int, day: date) -> AsyncIterator[None]:
        key = lock_key(tour_id, day)
        lock = self.redis.lock(
            key,
            timeout=self.lease_seconds,
            blocking_timeout=self.timeout_seconds,
        )
        acquired = await lock.acquire()
        if not acquired:
            logger.warning(f"Timed out waiting for {key}")
            raise Unavailable("Slot is busy, please retry")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired while held; the DB guard still applied
                logger.warning(f"Lock {key} expired before release")
