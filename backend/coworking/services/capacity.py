"""
Capacity model: per-day remaining slots and status classification.
Pure functions of their inputs.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Collection, Iterable

from coworking.models.occupancy import OccupancyRecord
from coworking.services.calendar import MonthKey, enumerate_dates

DEFAULT_LOW_THRESHOLD = 2


class DayStatus(str, Enum):
    AVAILABLE = "available"
    LOW = "low"
    FULL = "full"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class DayAvailability:
    date: date
    status: DayStatus
    slots: int
    capacity: int
    is_past: bool

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "status": self.status.value,
            "slots": self.slots,
            "capacity": self.capacity,
            "is_past": self.is_past,
        }


def reserved_quantity(day: date, records: Iterable[OccupancyRecord]) -> int:
    return sum(r.quantity for r in records if r.covers(day))


def compute_day_availability(
    day: date,
    capacity: int,
    records: Iterable[OccupancyRecord],
    manual_blocks: Collection[date],
    today: date,
    low_threshold: int = DEFAULT_LOW_THRESHOLD,
) -> DayAvailability:
    """
    Status precedence: past or manually blocked, then exhausted, then low.
    """
    slots = max(0, capacity - reserved_quantity(day, records))
    is_past = day <= today

    if is_past or day in manual_blocks:
        status = DayStatus.UNAVAILABLE
    elif slots == 0:
        status = DayStatus.FULL
    elif slots <= low_threshold:
        status = DayStatus.LOW
    else:
        status = DayStatus.AVAILABLE

    return DayAvailability(date=day, status=status, slots=slots, capacity=capacity, is_past=is_past)


def compute_month_availability(
    month: MonthKey,
    capacity: int,
    records: list[OccupancyRecord],
    manual_blocks: Collection[date],
    today: date,
    low_threshold: int = DEFAULT_LOW_THRESHOLD,
) -> dict[date, DayAvailability]:
    # Only records overlapping the month can affect it
    relevant = [r for r in records if r.start <= month.last_day and r.end >= month.first_day]
    return {
        day: compute_day_availability(day, capacity, relevant, manual_blocks, today, low_threshold)
        for day in enumerate_dates(month.first_day, month.last_day)
    }
