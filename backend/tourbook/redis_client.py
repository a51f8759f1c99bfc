# backend/tourbook/redis_client.py
"""
Optional Redis connection.

REDIS_URL unset → None; the app falls back to in-process cache and locks.
"""

import redis.asyncio as aioredis

from .config import settings


def create_redis_client(url: str | None = None) -> aioredis.Redis | None:
    url = url or settings.redis_url
    if not url:
        return None
    return aioredis.from_url(url, decode_responses=True)
