"""
Pydantic schemas for reservation attempts.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel


class ReservationCreate(BaseModel):
    # Missing values are rejected by the booking pipeline as InvalidInput
    resource_id: Optional[int] = None
    tier: Optional[str] = None
    start: Optional[date] = None
    end: Optional[date] = None


class ReservationResponse(BaseModel):
    success: bool = True
    token: str
    redirect_url: str
    price: float
    range: tuple[date, date]
