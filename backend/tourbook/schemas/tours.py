# backend/tourbook/schemas/tours.py

import json
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..services.availability.config import is_valid_time_str


class SlotTemplateSchema(BaseModel):
    time: str = Field(description="HH:MM")
    capacity: int = Field(..., ge=0)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        if not is_valid_time_str(v):
            raise ValueError("time must be HH:MM")
        return v


class AvailabilityTemplateSchema(BaseModel):
    """Recurring availability of a tour. Weekdays: 0 = Sunday … 6 = Saturday."""
    availability_type: Literal["daily", "date_range", "specific_dates"] = "daily"
    available_days: list[int] = Field(default_factory=lambda: [0, 1, 2, 3, 4, 5, 6])
    slots: list[SlotTemplateSchema] = Field(
        default_factory=lambda: [SlotTemplateSchema(time="10:00", capacity=10)]
    )
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    specific_dates: list[date] = Field(default_factory=list)
    blocked_dates: list[date] = Field(default_factory=list)

    @field_validator("available_days")
    @classmethod
    def validate_days(cls, v: list[int]) -> list[int]:
        for day in v:
            if not 0 <= day <= 6:
                raise ValueError("available_days must be within 0..6")
        return sorted(set(v))

    @model_validator(mode="after")
    def validate_template(self):
        times = [s.time for s in self.slots]
        if len(times) != len(set(times)):
            raise ValueError("slot times must be unique")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self

    model_config = {"from_attributes": True}


class TourCreate(BaseModel):
    title: str = Field(..., min_length=1)
    is_active: bool = True
    availability: AvailabilityTemplateSchema = Field(default_factory=AvailabilityTemplateSchema)


class TourRead(BaseModel):
    id: int
    title: str
    is_active: bool
    availability: AvailabilityTemplateSchema
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, tour) -> "TourRead":
        return cls(
            id=tour.id,
            title=tour.title,
            is_active=bool(tour.is_active),
            availability=AvailabilityTemplateSchema(
                availability_type=tour.availability_type,
                available_days=json.loads(tour.available_days or "[]"),
                slots=json.loads(tour.slots or "[]"),
                start_date=tour.start_date,
                end_date=tour.end_date,
                specific_dates=json.loads(tour.specific_dates or "[]"),
                blocked_dates=json.loads(tour.blocked_dates or "[]"),
            ),
            created_at=tour.created_at,
            updated_at=tour.updated_at,
        )


class TourOptionCreate(BaseModel):
    label: str = Field(..., min_length=1)
    price: float = Field(0.0, ge=0)


class TourOptionRead(BaseModel):
    id: int
    tour_id: int
    label: str
    price: float

    model_config = {"from_attributes": True}
