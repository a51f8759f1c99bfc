# backend/tourbook/routers/bookings.py
# PATCH = 405, DELETE = 405: seats change only via create/cancel

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..deps import get_cache, get_locks
from ..models import Bookings as DBBookings
from ..schemas.bookings import BookingCancel, BookingCreate, BookingRead
from ..services.availability import (
    AvailabilityCache,
    BookingRequest,
    LedgerLocks,
    cancel_booking,
    create_booking,
)

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/{id}", response_model=BookingRead)
async def get_booking(id: int, db: AsyncSession = Depends(get_db)):
    obj = await db.get(DBBookings, id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.post("/", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    data: BookingCreate,
    db: AsyncSession = Depends(get_db),
    locks: LedgerLocks = Depends(get_locks),
    cache: AvailabilityCache | None = Depends(get_cache),
):
    request = BookingRequest(**data.model_dump())
    return await create_booking(db, locks, request, cache=cache)


@router.post("/{id}/cancel", response_model=BookingRead)
async def cancel_booking_endpoint(
    id: int,
    data: BookingCancel | None = None,
    db: AsyncSession = Depends(get_db),
    locks: LedgerLocks = Depends(get_locks),
    cache: AvailabilityCache | None = Depends(get_cache),
):
    reason = data.reason if data else None
    return await cancel_booking(db, locks, id, reason=reason, cache=cache)


@router.patch("/{id}")
async def patch_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )


@router.delete("/{id}")
async def delete_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )
