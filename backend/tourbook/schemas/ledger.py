# backend/tourbook/schemas/ledger.py

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, computed_field


class LedgerSlotRead(BaseModel):
    time: str
    capacity: int
    booked: int
    blocked: bool
    block_reason: Optional[str] = None
    extra_capacity: int = 0
    price: Optional[float] = None

    @computed_field
    @property
    def remaining(self) -> int:
        if self.blocked:
            return 0
        return max(self.capacity + self.extra_capacity - self.booked, 0)

    model_config = {"from_attributes": True}


class LedgerDayRead(BaseModel):
    id: int
    tour_id: int
    date: date
    stop_sale: bool
    stop_sale_reason: Optional[str] = None
    notes: Optional[str] = None
    slots: list[LedgerSlotRead]
    updated_at: datetime

    model_config = {"from_attributes": True}


class LedgerSlotUpdate(BaseModel):
    """PATCH /tours/{tour_id}/ledger/{date}/slots/{time}"""
    capacity: Optional[int] = Field(None, ge=0)
    extra_capacity: Optional[int] = Field(None, ge=0)
    blocked: Optional[bool] = None
    block_reason: Optional[str] = None


class LedgerStopSaleUpdate(BaseModel):
    """PUT /tours/{tour_id}/ledger/{date}/stop-sale"""
    stop_sale: bool
    reason: Optional[str] = None
