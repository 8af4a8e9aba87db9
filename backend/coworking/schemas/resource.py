"""
Pydantic schemas for the admin surface: catalogue sync, lock inspection,
manual blocks and maintenance.
"""

import datetime
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class ResourceSync(BaseModel):
    title: str = ""
    capacity: Optional[int] = None
    prices: dict[str, float] = {}


class ResourceResponse(BaseModel):
    id: int
    title: str
    capacity: int
    prices: dict[str, float]
    manual_blocks: list[date] = []


class LockResponse(BaseModel):
    token: Optional[str] = None
    start: date
    end: date
    quantity: int
    lock_type: str
    expires_at: float


class ManualBlockCreate(BaseModel):
    date: datetime.date
    reason: str = Field(default="", max_length=200)


class ManualBlocksReplace(BaseModel):
    lines: list[str]


class ManualBlockResponse(BaseModel):
    date: datetime.date
    reason: str = ""


class RebuildResponse(BaseModel):
    success: bool = True
    resource_id: int
    records: int


class MaintenanceResponse(BaseModel):
    success: bool = True
    locks_purged: int
    drafts_removed: int
    collections_repaired: int
    records_dropped: int
