# backend/tourbook/routers/stop_sales.py
# PATCH = 405, DELETE = ALLOWED (hard, logged)

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..deps import get_cache
from ..schemas.stop_sales import StopSaleCreate, StopSaleLogRead, StopSaleRead
from ..services.availability import AvailabilityCache
from ..services.availability.stop_sales import (
    apply_stop_sale,
    list_stop_sale_logs,
    list_stop_sales,
    remove_stop_sale,
)

router = APIRouter(prefix="/stop_sales", tags=["stop_sales"])


@router.get("/", response_model=list[StopSaleRead])
async def list_rules(
    tour_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    return await list_stop_sales(db, tour_id)


@router.get("/logs", response_model=list[StopSaleLogRead])
async def list_logs(
    tour_id: Optional[int] = None,
    status: Optional[Literal["active", "removed"]] = None,
    limit: int = 50,
    db: AsyncSession = Depends(get_db),
):
    """
    Read-only stop-sale audit log, newest first.

    Filters:
    - tour_id
    - status (active / removed)
    - limit (default 50, max 200)
    """
    return await list_stop_sale_logs(db, tour_id, status, limit)


@router.post("/", response_model=StopSaleRead, status_code=status.HTTP_201_CREATED)
async def create_rule(
    data: StopSaleCreate,
    x_actor: str = Header("admin"),
    db: AsyncSession = Depends(get_db),
    cache: AvailabilityCache | None = Depends(get_cache),
):
    return await apply_stop_sale(
        db,
        data.tour_id,
        data.start_date,
        data.end_date,
        option_ids=data.option_ids,
        reason=data.reason,
        actor=x_actor,
        cache=cache,
    )


@router.patch("/{id}")
async def patch_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(
    id: int,
    x_actor: str = Header("admin"),
    db: AsyncSession = Depends(get_db),
    cache: AvailabilityCache | None = Depends(get_cache),
):
    await remove_stop_sale(db, id, actor=x_actor, cache=cache)
