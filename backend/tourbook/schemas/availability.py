# backend/tourbook/schemas/availability.py
"""
Pydantic schemas for the availability API.

Field names follow the public wire format (camelCase).
"""

from pydantic import BaseModel


class OpenSlot(BaseModel):
    time: str  # "HH:MM"
    remaining: int


class MonthAvailabilityResponse(BaseModel):
    """GET /tours/{tour_id}/availability?month=YYYY-MM"""
    availableSlotsByDate: dict[str, list[OpenSlot]]
    fullyBookedDates: list[str]
