# backend/tourbook/routers/ledger.py
"""
Admin view and edits of the per-date slot ledger.

GET   /tours/{tour_id}/ledger/{date}
PATCH /tours/{tour_id}/ledger/{date}/slots/{time}
PUT   /tours/{tour_id}/ledger/{date}/stop-sale
"""

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..deps import get_cache, get_locks
from ..schemas.ledger import (
    LedgerDayRead,
    LedgerSlotRead,
    LedgerSlotUpdate,
    LedgerStopSaleUpdate,
)
from ..services.availability import AvailabilityCache, LedgerLocks
from ..services.availability.ledger import (
    get_ledger_day,
    set_day_stop_sale,
    update_ledger_slot,
)

router = APIRouter(prefix="/tours", tags=["ledger"])


@router.get("/{tour_id}/ledger/{day}", response_model=LedgerDayRead)
async def read_ledger_day(tour_id: int, day: date, db: AsyncSession = Depends(get_db)):
    return await get_ledger_day(db, tour_id, day)


@router.patch("/{tour_id}/ledger/{day}/slots/{time}", response_model=LedgerSlotRead)
async def edit_ledger_slot(
    tour_id: int,
    day: date,
    time: str,
    data: LedgerSlotUpdate,
    db: AsyncSession = Depends(get_db),
    locks: LedgerLocks = Depends(get_locks),
    cache: AvailabilityCache | None = Depends(get_cache),
):
    return await update_ledger_slot(
        db,
        locks,
        tour_id,
        day,
        time,
        cache=cache,
        **data.model_dump(exclude_unset=True),
    )


@router.put("/{tour_id}/ledger/{day}/stop-sale", response_model=LedgerDayRead)
async def edit_ledger_stop_sale(
    tour_id: int,
    day: date,
    data: LedgerStopSaleUpdate,
    db: AsyncSession = Depends(get_db),
    locks: LedgerLocks = Depends(get_locks),
    cache: AvailabilityCache | None = Depends(get_cache),
):
    return await set_day_stop_sale(
        db, locks, tour_id, day, data.stop_sale, data.reason, cache=cache
    )
