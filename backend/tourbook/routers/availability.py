# backend/tourbook/routers/availability.py
"""
GET /tours/{tour_id}/availability?month=YYYY-MM[&option_id=]
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..deps import get_cache
from ..schemas.availability import MonthAvailabilityResponse
from ..services.availability import AvailabilityCache, get_month_availability

router = APIRouter(prefix="/tours", tags=["availability"])


@router.get("/{tour_id}/availability", response_model=MonthAvailabilityResponse)
async def get_tour_availability(
    tour_id: int,
    month: Optional[str] = None,
    option_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    cache: Optional[AvailabilityCache] = Depends(get_cache),
):
    """Open slots per date and fully booked dates for one month."""
    availability = await get_month_availability(
        db, tour_id, month, option_id=option_id, cache=cache
    )
    return availability.to_dict()
