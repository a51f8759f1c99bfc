import json
from datetime import date

import pytest
from httpx import ASGITransport, AsyncClient

from tourbook.database import build_engine, build_sessionmaker, get_db, init_db
from tourbook.main import app
from tourbook.models import Bookings, Tours
from tourbook.services.availability import LocalLedgerLocks, MemoryAvailabilityCache

MONDAY_WEDNESDAY = (1, 3)
NINE_AM = ({"time": "09:00", "capacity": 10},)


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def locks():
    return LocalLedgerLocks(timeout_seconds=5)


@pytest.fixture
def cache():
    return MemoryAvailabilityCache(ttl_seconds=60)


@pytest.fixture
def make_tour(db):
    async def _make(
        available_days=MONDAY_WEDNESDAY,
        slots=NINE_AM,
        title="Old town walk",
        **columns,
    ) -> int:
        for key in ("specific_dates", "blocked_dates"):
            if key in columns:
                columns[key] = json.dumps([d.isoformat() for d in columns[key]])
        tour = Tours(
            title=title,
            available_days=json.dumps(list(available_days)),
            slots=json.dumps(list(slots)),
            **columns,
        )
        db.add(tour)
        await db.commit()
        return tour.id

    return _make


@pytest.fixture
def add_booking(db):
    """Insert a booking row directly, bypassing the ledger."""
    async def _add(tour_id: int, day: date, time: str = "09:00", guests: int = 1, status="Confirmed"):
        booking = Bookings(
            tour_id=tour_id,
            date=day,
            time=time,
            adult_guests=guests,
            guests=guests,
            status=status,
        )
        db.add(booking)
        await db.commit()
        return booking.id

    return _add


@pytest.fixture
async def client(session_factory, locks, cache):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.ledger_locks = locks
    app.state.availability_cache = cache

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
