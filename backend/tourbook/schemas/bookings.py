# backend/tourbook/schemas/bookings.py

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    tour_id: int
    option_id: Optional[int] = None

    date: date
    time: str = Field(description="Slot time, HH:MM")

    adult_guests: int = Field(1, ge=0)
    child_guests: int = Field(0, ge=0)
    infant_guests: int = Field(0, ge=0)

    status: Literal["Pending", "Confirmed"] = "Confirmed"
    total_price: Optional[float] = Field(None, ge=0)
    customer_email: Optional[str] = None

    model_config = {"from_attributes": True}


class BookingCancel(BaseModel):
    reason: Optional[str] = None


class BookingRead(BaseModel):
    id: int

    tour_id: int
    option_id: Optional[int] = None

    date: date
    time: str

    adult_guests: int
    child_guests: int
    infant_guests: int
    guests: int

    status: str
    total_price: Optional[float] = None
    customer_email: Optional[str] = None
    cancel_reason: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
