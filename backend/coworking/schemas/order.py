"""
Pydantic schemas for order system callbacks: lifecycle events and cart
revalidation.
"""

import datetime as dt
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class CustomerInfo(BaseModel):
    name: str = ""
    email: str = ""


class OrderLine(BaseModel):
    resource_id: int
    token: str = ""
    tier: str = ""
    start: date
    end: date
    quantity: int = Field(default=1, ge=1)


class OrderEvent(BaseModel):
    order_id: str = Field(min_length=1)
    status: str
    consent: bool = False
    consent_at: Optional[datetime] = None
    customer: Optional[CustomerInfo] = None
    lines: list[OrderLine] = []


class OrderEventResponse(BaseModel):
    success: bool = True
    order_id: str
    outcome: str


class CartLineIn(BaseModel):
    resource_id: int
    token: str = Field(min_length=1)
    start: date
    end: date
    quantity: int = Field(default=1, ge=1)


class CartRevalidateRequest(BaseModel):
    lines: list[CartLineIn] = []


class EvictedLineResponse(BaseModel):
    token: str
    date: Optional[dt.date] = None
    message: str


class CartRevalidateResponse(BaseModel):
    success: bool = True
    valid: bool
    evicted: list[EvictedLineResponse] = []
