# backend/tourbook/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .database import engine, init_db
from .errors import register_error_handlers
from .redis_client import create_redis_client
from .routers import availability, bookings, ledger, stop_sales, tours
from .services.availability import (
    LocalLedgerLocks,
    MemoryAvailabilityCache,
    RedisAvailabilityCache,
    RedisLedgerLocks,
    get_availability_config,
)

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_availability_config()
    redis = create_redis_client()

    if redis is not None:
        app.state.availability_cache = RedisAvailabilityCache(redis, config.cache_ttl_seconds)
        app.state.ledger_locks = RedisLedgerLocks(redis, config.lock_timeout_seconds)
        logger.info("Availability cache and ledger locks: redis")
    else:
        app.state.availability_cache = MemoryAvailabilityCache(config.cache_ttl_seconds)
        app.state.ledger_locks = LocalLedgerLocks(config.lock_timeout_seconds)
        logger.info("Availability cache and ledger locks: in-process (REDIS_URL not set)")

    if settings.create_tables_on_startup:
        await init_db()

    yield

    if redis is not None:
        await redis.aclose()
    await engine.dispose()


app = FastAPI(title="Tour Booking API", lifespan=lifespan)
register_error_handlers(app)

app.include_router(tours.router)
app.include_router(availability.router)
app.include_router(ledger.router)
app.include_router(bookings.router)
app.include_router(stop_sales.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
