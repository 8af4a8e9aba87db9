"""
Resource model: a bookable unit of inventory (desk pool, meeting room).

Key design decisions:
- Capacity is resolved from the raw stored value on every load; an unset
  or invalid capacity falls back to the configured default
- Lock policy is derived from capacity, never stored
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from coworking.core.config import Settings
from coworking.models.occupancy import LOCK_FLEXIBLE, LOCK_STRICT

TIERS = ("day", "week", "month")

# Legacy tier names still sent by older calendar widgets
TIER_ALIASES = {"journee": "day", "semaine": "week", "mois": "month"}


def resolve_capacity(raw: Any, default: int) -> int:
    try:
        capacity = int(raw)
    except (TypeError, ValueError):
        return default
    return capacity if capacity >= 1 else default


def _price(raw: Any) -> float:
    try:
        return max(0.0, float(raw))
    except (TypeError, ValueError):
        return 0.0


@dataclass
class Resource:
    id: int
    capacity: int
    title: str = ""
    prices: dict[str, float] = field(default_factory=dict)
    manual_blocks: set[date] = field(default_factory=set)

    @classmethod
    def from_record(
        cls,
        resource_id: int,
        record: dict,
        default_capacity: int,
        manual_blocks: Optional[set[date]] = None,
    ) -> "Resource":
        prices = record.get("prices") or {}
        return cls(
            id=resource_id,
            capacity=resolve_capacity(record.get("capacity"), default_capacity),
            title=record.get("title") or f"Resource {resource_id}",
            prices={tier: _price(prices.get(tier)) for tier in TIERS},
            manual_blocks=manual_blocks or set(),
        )

    def __repr__(self) -> str:
        return f"<Resource(id={self.id}, capacity={self.capacity})>"


@dataclass(frozen=True)
class LockPolicy:
    duration_seconds: int
    lock_type: str

    @classmethod
    def for_capacity(cls, capacity: int, settings: Settings) -> "LockPolicy":
        """
        Exclusive resources (a single meeting room) hold long: only one
        party can ever hold the slot. Shared pools hold short so contested
        inventory frees up quickly.
        """
        if capacity <= settings.EXCLUSIVE_CAPACITY_MAX:
            duration = settings.LOCK_TTL_EXCLUSIVE_SECONDS
        else:
            duration = settings.LOCK_TTL_SHARED_SECONDS
        lock_type = LOCK_STRICT if duration >= settings.LOCK_STRICT_THRESHOLD_SECONDS else LOCK_FLEXIBLE
        return cls(duration_seconds=duration, lock_type=lock_type)
