# backend/tourbook/schemas/stop_sales.py

import json
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class StopSaleCreate(BaseModel):
    tour_id: int
    option_ids: list[str] = Field(default_factory=list, description="Empty = all options")
    start_date: date
    end_date: date
    reason: Optional[str] = None

    @model_validator(mode="after")
    def validate_range(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class StopSaleRead(BaseModel):
    id: int
    tour_id: int
    option_ids: list[str]
    start_date: date
    end_date: date
    reason: Optional[str] = None
    created_at: datetime

    @field_validator("option_ids", mode="before")
    @classmethod
    def decode_option_ids(cls, v):
        if isinstance(v, str):
            return json.loads(v or "[]")
        return v

    model_config = {"from_attributes": True}


class StopSaleLogRead(BaseModel):
    id: int
    tour_id: int
    stop_sale_id: Optional[int] = None
    option_id: Optional[str] = None
    date_from: date
    date_to: date
    reason: str
    applied_by: str
    applied_at: datetime
    removed_by: Optional[str] = None
    removed_at: Optional[datetime] = None
    status: Literal["active", "removed"]

    model_config = {"from_attributes": True}
