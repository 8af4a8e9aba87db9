"""
Per-attempt and per-order records owned by the booking pipeline.

- DraftReservation: written when a checkout attempt takes its lock, keyed
  by the lock token; deleted at finalize or by the abandoned-draft sweep
- ReservationRecord: the customer-facing confirmed reservation, only
  written when the customer consented to data storage
- OrderRecord: idempotency flag plus the lines that were finalized
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


class AttemptState(str, Enum):
    REQUESTED = "requested"
    VALIDATED = "validated"
    LOCKED = "locked"
    CONFIRMED = "confirmed"
    RELEASED = "released"
    REJECTED = "rejected"


def _iso(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


@dataclass
class DraftReservation:
    token: str
    resource_id: int
    title: str
    tier: str
    start: date
    end: date
    price: float
    created_at: datetime
    state: AttemptState = AttemptState.LOCKED

    def to_dict(self) -> dict:
        data = {k: _iso(v) for k, v in asdict(self).items()}
        data["state"] = self.state.value
        return data

    @classmethod
    def from_dict(cls, raw: dict) -> "DraftReservation":
        return cls(
            token=raw["token"],
            resource_id=int(raw["resource_id"]),
            title=raw.get("title", ""),
            tier=raw["tier"],
            start=date.fromisoformat(raw["start"]),
            end=date.fromisoformat(raw["end"]),
            price=float(raw.get("price", 0)),
            created_at=datetime.fromisoformat(raw["created_at"]),
            state=AttemptState(raw.get("state", AttemptState.LOCKED.value)),
        )


@dataclass
class ReservationRecord:
    order_id: str
    token: str
    resource_id: int
    title: str
    tier: str
    start: date
    end: date
    price: float
    confirmed_at: datetime
    customer_name: str = ""
    customer_email: str = ""
    consent_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {k: _iso(v) for k, v in asdict(self).items()}


@dataclass
class OrderLineRecord:
    resource_id: int
    token: str
    tier: str
    start: date
    end: date
    quantity: int = 1

    def to_dict(self) -> dict:
        return {k: _iso(v) for k, v in asdict(self).items()}

    @classmethod
    def from_dict(cls, raw: dict) -> "OrderLineRecord":
        return cls(
            resource_id=int(raw["resource_id"]),
            token=raw.get("token", ""),
            tier=raw.get("tier", ""),
            start=date.fromisoformat(raw["start"]),
            end=date.fromisoformat(raw["end"]),
            quantity=int(raw.get("quantity", 1)),
        )


@dataclass
class OrderRecord:
    order_id: str
    processed: bool = False
    processed_at: Optional[datetime] = None
    consent: bool = False
    lines: list[OrderLineRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "processed": self.processed,
            "processed_at": _iso(self.processed_at),
            "consent": self.consent,
            "lines": [line.to_dict() for line in self.lines],
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "OrderRecord":
        processed_at = raw.get("processed_at")
        return cls(
            order_id=str(raw["order_id"]),
            processed=bool(raw.get("processed")),
            processed_at=datetime.fromisoformat(processed_at) if processed_at else None,
            consent=bool(raw.get("consent")),
            lines=[OrderLineRecord.from_dict(line) for line in raw.get("lines", [])],
        )
