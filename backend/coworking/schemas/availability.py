"""
Pydantic schemas for availability and price-check requests/responses.
"""

import datetime
from datetime import date
from typing import Optional

from pydantic import BaseModel


class DayAvailabilityResponse(BaseModel):
    date: datetime.date
    status: str
    slots: int
    capacity: int
    is_past: bool


class PricesResponse(BaseModel):
    day: float = 0.0
    week: float = 0.0
    month: float = 0.0


class MonthAvailabilityResponse(BaseModel):
    success: bool = True
    resource_id: int
    month: str
    availability: dict[str, DayAvailabilityResponse]
    prices: PricesResponse


class PriceRequest(BaseModel):
    resource_id: Optional[int] = None
    tier: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class PriceResponse(BaseModel):
    success: bool = True
    price: float
    range: tuple[date, date]
