# backend/tourbook/routers/tours.py
# Tour templates and options. DELETE = 405: tours are deactivated, not removed

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..deps import get_cache
from ..models import TourOptions as DBTourOptions, Tours as DBTours
from ..schemas.tours import (
    AvailabilityTemplateSchema,
    TourCreate,
    TourOptionCreate,
    TourOptionRead,
    TourRead,
)
from ..services.availability import AvailabilityCache
from ..services.availability.cache import invalidate_months
from ..services.availability.templates import dump_template_fields, get_tour

router = APIRouter(prefix="/tours", tags=["tours"])


def _template_columns(availability: AvailabilityTemplateSchema) -> dict:
    columns = dump_template_fields(
        available_days=availability.available_days,
        slots=[s.model_dump() for s in availability.slots],
        specific_dates=availability.specific_dates,
        blocked_dates=availability.blocked_dates,
    )
    columns.update(
        availability_type=availability.availability_type,
        start_date=availability.start_date,
        end_date=availability.end_date,
    )
    return columns


@router.post("/", response_model=TourRead, status_code=status.HTTP_201_CREATED)
async def create_tour(data: TourCreate, db: AsyncSession = Depends(get_db)):
    obj = DBTours(
        title=data.title,
        is_active=data.is_active,
        **_template_columns(data.availability),
    )
    db.add(obj)
    await db.commit()
    return TourRead.from_row(obj)


@router.get("/{tour_id}", response_model=TourRead)
async def get_tour_endpoint(tour_id: int, db: AsyncSession = Depends(get_db)):
    return TourRead.from_row(await get_tour(db, tour_id))


@router.put("/{tour_id}/availability", response_model=TourRead)
async def replace_availability(
    tour_id: int,
    data: AvailabilityTemplateSchema,
    db: AsyncSession = Depends(get_db),
    cache: AvailabilityCache | None = Depends(get_cache),
):
    """Replace the recurring template. Existing ledger days keep their slots."""
    obj = await get_tour(db, tour_id)
    for key, value in _template_columns(data).items():
        setattr(obj, key, value)
    await db.commit()
    await db.refresh(obj)
    await invalidate_months(cache, tour_id)
    return TourRead.from_row(obj)


@router.get("/{tour_id}/options", response_model=list[TourOptionRead])
async def list_options(tour_id: int, db: AsyncSession = Depends(get_db)):
    await get_tour(db, tour_id)
    result = await db.execute(
        select(DBTourOptions)
        .where(DBTourOptions.tour_id == tour_id)
        .order_by(DBTourOptions.id)
    )
    return result.scalars().all()


@router.post(
    "/{tour_id}/options",
    response_model=TourOptionRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_option(
    tour_id: int,
    data: TourOptionCreate,
    db: AsyncSession = Depends(get_db),
):
    await get_tour(db, tour_id)
    obj = DBTourOptions(tour_id=tour_id, **data.model_dump())
    db.add(obj)
    await db.commit()
    return obj


@router.delete("/{tour_id}")
async def delete_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )
