# backend/tourbook/database.py

from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import settings
from .models import Base


def build_engine(url: str) -> AsyncEngine:
    """Create the async engine; SQLite gets foreign keys switched on."""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["timeout"] = 15

    engine = create_async_engine(url, connect_args=connect_args)

    if url.startswith("sqlite"):
        @event.listens_for(engine.sync_engine, "connect")
        def enable_sqlite_fk(dbapi_connection, _):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: response models read attributes after commit
    return async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
    )


engine = build_engine(settings.resolved_database_url)
SessionLocal = build_sessionmaker(engine)


async def init_db(target: AsyncEngine | None = None) -> None:
    """Create all tables (development and tests; production uses alembic)."""
    target = target or engine
    if target.url.get_backend_name() == "sqlite" and target.url.database:
        Path(target.url.database).parent.mkdir(parents=True, exist_ok=True)
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# FastAPI dependency: one session per request
async def get_db():
    async with SessionLocal() as db:
        yield db
