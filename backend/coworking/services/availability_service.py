"""
Availability service: month calendars and range bookability.

Both answers fold unexpired locks into the same occupancy accounting as
confirmed reservations, so a date held by another in-progress checkout is
never displayed or admitted as free.
"""

import time
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional, Union

from coworking.core.config import Settings
from coworking.core.logging import get_logger
from coworking.core.metrics import availability_latency
from coworking.models.occupancy import Lock, OccupancyRecord
from coworking.models.resource import Resource
from coworking.services.calendar import MonthKey, enumerate_dates, today, utcnow
from coworking.services.capacity import DayAvailability, compute_month_availability, reserved_quantity
from coworking.services.lock_manager import LockManager
from coworking.services.reservation_store import ReservationStore
from coworking.services.resource_repository import ResourceRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class RangeCheck:
    bookable: bool
    first_failing_date: Optional[date] = None


def evaluate_range(
    resource: Resource,
    start: date,
    end: date,
    records: list[OccupancyRecord],
    quantity: int = 1,
) -> RangeCheck:
    """
    Walk every date of the range against raw records: a date fails when it
    is manually blocked or when the request would exceed capacity.
    """
    for day in enumerate_dates(start, end):
        if day in resource.manual_blocks:
            return RangeCheck(False, day)
        if reserved_quantity(day, records) + quantity > resource.capacity:
            return RangeCheck(False, day)
    return RangeCheck(True)


class AvailabilityService:

    def __init__(
        self,
        resources: ResourceRepository,
        reservations: ReservationStore,
        locks: LockManager,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.resources = resources
        self.reservations = reservations
        self.locks = locks
        self.settings = settings
        self.clock = clock

    def today(self) -> date:
        return today(self.settings.TIMEZONE, self.clock())

    async def get_month(self, resource_id: int, month: Union[str, MonthKey]) -> dict[date, DayAvailability]:
        """Computed fresh on every call from the stored records; nothing derived is persisted."""
        if not isinstance(month, MonthKey):
            month = MonthKey.parse(month)

        started = time.perf_counter()
        resource = await self.resources.get(resource_id)
        confirmed = await self.reservations.confirmed(resource_id)
        active = await self.locks.active_locks(resource_id)

        availability = compute_month_availability(
            month,
            resource.capacity,
            confirmed + active,
            resource.manual_blocks,
            self.today(),
            self.settings.LOW_AVAILABILITY_THRESHOLD,
        )
        availability_latency.observe(time.perf_counter() - started)
        return availability

    async def check_range_bookable(
        self,
        resource_id: int,
        start: date,
        end: date,
        quantity: int = 1,
        locks: Optional[list[Lock]] = None,
    ) -> RangeCheck:
        """
        Exact check on underlying records, never on derived status buckets.
        Pass locks to evaluate against a collection already read inside an
        atomic section.
        """
        resource = await self.resources.get(resource_id)
        confirmed = await self.reservations.confirmed(resource_id)
        if locks is None:
            locks = await self.locks.active_locks(resource_id)

        check = evaluate_range(resource, start, end, confirmed + locks, quantity)
        logger.debug(
            "range_checked",
            resource_id=resource_id,
            start=start.isoformat(),
            end=end.isoformat(),
            capacity=resource.capacity,
            bookable=check.bookable,
            failing_date=check.first_failing_date.isoformat() if check.first_failing_date else None,
        )
        return check
