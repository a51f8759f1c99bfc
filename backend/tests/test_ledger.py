import asyncio
from datetime import date

import pytest
from sqlalchemy import select

from tourbook.errors import CapacityExceeded, Conflict, InvalidInput, NotFound, SalesStopped
from tourbook.models import AvailabilityDays, Bookings, TourOptions, Tours
from tourbook.services.availability import (
    BookingRequest,
    apply_stop_sale,
    cancel_booking,
    create_booking,
    get_month_availability,
)
from tourbook.services.availability.ledger import (
    get_ledger_day,
    set_day_stop_sale,
    update_ledger_slot,
)

MONDAY = date(2025, 9, 1)
WEDNESDAY = date(2025, 9, 3)
TUESDAY = date(2025, 9, 2)


def _request(tour_id, day=MONDAY, time="09:00", **kwargs):
    return BookingRequest(tour_id=tour_id, date=day, time=time, **kwargs)


async def _booked(db, tour_id, day=MONDAY, time="09:00"):
    row = await get_ledger_day(db, tour_id, day)
    return next(slot.booked for slot in row.slots if slot.time == time)


async def test_create_then_cancel_restores_availability(db, make_tour, locks):
    tour_id = await make_tour()
    before = await get_month_availability(db, tour_id, "2025-09")

    booking = await create_booking(
        db, locks, _request(tour_id, adult_guests=2, child_guests=1, infant_guests=1)
    )
    assert booking.guests == 4
    assert booking.status == "Confirmed"
    assert await _booked(db, tour_id) == 4

    cancelled = await cancel_booking(db, locks, booking.id, reason="Changed plans")
    assert cancelled.status == "Cancelled"
    assert cancelled.cancel_reason == "Changed plans"
    assert await _booked(db, tour_id) == 0

    after = await get_month_availability(db, tour_id, "2025-09")
    assert after.to_dict() == before.to_dict()


async def test_capacity_exceeded(db, make_tour, locks):
    tour_id = await make_tour()
    await create_booking(db, locks, _request(tour_id, adult_guests=8))

    with pytest.raises(CapacityExceeded):
        await create_booking(db, locks, _request(tour_id, adult_guests=3))

    assert await _booked(db, tour_id) == 8
    stray = await db.scalar(select(Bookings.id).where(Bookings.guests == 3))
    assert stray is None

    # Exactly the remaining seats still fit
    await create_booking(db, locks, _request(tour_id, adult_guests=2))
    assert await _booked(db, tour_id) == 10


async def test_only_one_of_many_concurrent_full_bookings_succeeds(make_tour, session_factory, locks):
    tour_id = await make_tour()
    attempts = 8

    async def attempt():
        async with session_factory() as session:
            return await create_booking(session, locks, _request(tour_id, adult_guests=10))

    results = await asyncio.gather(*(attempt() for _ in range(attempts)), return_exceptions=True)

    succeeded = [r for r in results if isinstance(r, Bookings)]
    rejected = [r for r in results if isinstance(r, CapacityExceeded)]
    assert len(succeeded) == 1
    assert len(rejected) == attempts - 1

    async with session_factory() as session:
        assert await _booked(session, tour_id) == 10
        availability = await get_month_availability(session, tour_id, "2025-09")
    assert availability.fully_booked_dates == ["2025-09-01"]


async def test_concurrent_small_bookings_never_oversell(make_tour, session_factory, locks):
    tour_id = await make_tour()

    async def attempt():
        async with session_factory() as session:
            return await create_booking(session, locks, _request(tour_id, adult_guests=3))

    results = await asyncio.gather(*(attempt() for _ in range(6)), return_exceptions=True)

    assert sum(isinstance(r, Bookings) for r in results) == 3
    assert sum(isinstance(r, CapacityExceeded) for r in results) == 3
    async with session_factory() as session:
        assert await _booked(session, tour_id) == 9


async def test_cancel_is_idempotent(db, make_tour, locks):
    tour_id = await make_tour()
    await create_booking(db, locks, _request(tour_id, adult_guests=3))
    booking = await create_booking(db, locks, _request(tour_id, adult_guests=2))

    await cancel_booking(db, locks, booking.id)
    again = await cancel_booking(db, locks, booking.id)

    assert again.status == "Cancelled"
    assert await _booked(db, tour_id) == 3


async def test_cancel_unknown_booking(db, locks):
    with pytest.raises(NotFound):
        await cancel_booking(db, locks, 4242)


async def test_ledger_is_seeded_from_existing_bookings(db, make_tour, add_booking, locks):
    tour_id = await make_tour()
    await add_booking(tour_id, MONDAY, guests=6)
    await add_booking(tour_id, MONDAY, guests=5, status="Cancelled")

    with pytest.raises(CapacityExceeded):
        await create_booking(db, locks, _request(tour_id, adult_guests=5))

    await create_booking(db, locks, _request(tour_id, adult_guests=4))
    assert await _booked(db, tour_id) == 10


async def test_cancel_of_booking_made_before_ledger(db, make_tour, add_booking, locks):
    tour_id = await make_tour()
    booking_id = await add_booking(tour_id, MONDAY, guests=6)

    await cancel_booking(db, locks, booking_id)

    assert await _booked(db, tour_id) == 0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"adult_guests": 0},
        {"adult_guests": 2, "child_guests": -1},
        {"status": "Cancelled"},
        {"time": "9am"},
        {"time": "25:00"},
    ],
)
async def test_invalid_requests(db, make_tour, locks, kwargs):
    tour_id = await make_tour()
    with pytest.raises(InvalidInput):
        await create_booking(db, locks, _request(tour_id, **kwargs))


async def test_slot_or_day_not_offered(db, make_tour, locks):
    tour_id = await make_tour()

    with pytest.raises(InvalidInput):
        await create_booking(db, locks, _request(tour_id, time="10:00"))
    with pytest.raises(InvalidInput):
        await create_booking(db, locks, _request(tour_id, day=TUESDAY))

    ledger = await db.scalar(select(AvailabilityDays.id).where(AvailabilityDays.tour_id == tour_id))
    assert ledger is None


async def test_unknown_tour(db, locks):
    with pytest.raises(NotFound):
        await create_booking(db, locks, _request(999))


async def test_option_must_belong_to_tour(db, make_tour, locks):
    tour_id = await make_tour()
    other_id = await make_tour(title="Harbour cruise")
    option = TourOptions(tour_id=other_id, label="Private", price=90)
    db.add(option)
    await db.commit()

    with pytest.raises(InvalidInput):
        await create_booking(db, locks, _request(tour_id, option_id=option.id))


async def test_stop_sale_blocks_booking(db, make_tour, locks):
    tour_id = await make_tour()
    await apply_stop_sale(db, tour_id, date(2025, 9, 1), date(2025, 9, 3))

    with pytest.raises(SalesStopped):
        await create_booking(db, locks, _request(tour_id))
    with pytest.raises(SalesStopped):
        await create_booking(db, locks, _request(tour_id, day=WEDNESDAY))

    await create_booking(db, locks, _request(tour_id, day=date(2025, 9, 8)))


async def test_option_scoped_stop_sale(db, make_tour, locks):
    tour_id = await make_tour()
    private = TourOptions(tour_id=tour_id, label="Private", price=120)
    group = TourOptions(tour_id=tour_id, label="Group", price=40)
    db.add_all([private, group])
    await db.commit()
    await apply_stop_sale(db, tour_id, MONDAY, MONDAY, option_ids=[str(private.id)])

    with pytest.raises(SalesStopped):
        await create_booking(db, locks, _request(tour_id, option_id=private.id))

    booking = await create_booking(db, locks, _request(tour_id, option_id=group.id))
    assert booking.option_id == group.id
    await create_booking(db, locks, _request(tour_id))


async def test_sales_stopped_is_a_capacity_error(db, make_tour, locks):
    tour_id = await make_tour()
    await set_day_stop_sale(db, locks, tour_id, MONDAY, True, reason="Private event")

    with pytest.raises(CapacityExceeded):
        await create_booking(db, locks, _request(tour_id))

    day = await set_day_stop_sale(db, locks, tour_id, MONDAY, False)
    assert day.stop_sale is False
    assert day.stop_sale_reason is None
    await create_booking(db, locks, _request(tour_id))


# ── Admin edits ──────────────────────────────────────────────────────────


async def test_extra_capacity_opens_seats(db, make_tour, locks):
    tour_id = await make_tour()
    await create_booking(db, locks, _request(tour_id, adult_guests=10))

    slot = await update_ledger_slot(db, locks, tour_id, MONDAY, "09:00", extra_capacity=4)
    assert slot.extra_capacity == 4

    await create_booking(db, locks, _request(tour_id, adult_guests=4))
    with pytest.raises(CapacityExceeded):
        await create_booking(db, locks, _request(tour_id, adult_guests=1))

    availability = await get_month_availability(db, tour_id, "2025-09")
    assert availability.fully_booked_dates == ["2025-09-01"]


async def test_capacity_cannot_drop_below_booked(db, make_tour, locks):
    tour_id = await make_tour()
    await create_booking(db, locks, _request(tour_id, adult_guests=6))

    with pytest.raises(Conflict):
        await update_ledger_slot(db, locks, tour_id, MONDAY, "09:00", capacity=5)

    slot = await update_ledger_slot(db, locks, tour_id, MONDAY, "09:00", capacity=6)
    assert slot.capacity == 6
    assert slot.booked == 6


async def test_negative_capacity_rejected(db, make_tour, locks):
    tour_id = await make_tour()
    with pytest.raises(InvalidInput):
        await update_ledger_slot(db, locks, tour_id, MONDAY, "09:00", capacity=-1)


async def test_unknown_slot_time(db, make_tour, locks):
    tour_id = await make_tour()
    with pytest.raises(NotFound):
        await update_ledger_slot(db, locks, tour_id, MONDAY, "18:00", capacity=4)


async def test_blocked_slot_rejects_bookings(db, make_tour, locks):
    tour_id = await make_tour()
    slot = await update_ledger_slot(
        db, locks, tour_id, MONDAY, "09:00", blocked=True, block_reason="Guide sick"
    )
    assert slot.blocked is True
    assert slot.block_reason == "Guide sick"

    with pytest.raises(CapacityExceeded):
        await create_booking(db, locks, _request(tour_id))

    slot = await update_ledger_slot(db, locks, tour_id, MONDAY, "09:00", blocked=False)
    assert slot.block_reason is None
    await create_booking(db, locks, _request(tour_id))


async def test_ledger_not_found_before_first_mutation(db, make_tour):
    tour_id = await make_tour()
    with pytest.raises(NotFound):
        await get_ledger_day(db, tour_id, MONDAY)


async def test_slot_added_to_template_after_ledger_exists(db, make_tour, locks):
    tour_id = await make_tour()
    await create_booking(db, locks, _request(tour_id, adult_guests=2))

    tour = await db.get(Tours, tour_id)
    tour.slots = '[{"time": "09:00", "capacity": 10}, {"time": "15:00", "capacity": 5}]'
    await db.commit()

    await create_booking(db, locks, _request(tour_id, time="15:00", adult_guests=5))

    row = await get_ledger_day(db, tour_id, MONDAY)
    assert [(s.time, s.booked) for s in row.slots] == [("09:00", 2), ("15:00", 5)]
