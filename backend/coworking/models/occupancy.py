"""
Occupancy records: spans of days consuming capacity on a resource.

Key design decisions:
- Confirmed occupancy and locks share one shape so the capacity model can
  sum them without caring where a record came from
- Stored as JSON arrays, one collection per resource
- Decoding is strict (DataCorruption) at the repair boundary and tolerant
  (parse-or-empty) everywhere else
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Optional

from coworking.core.errors import DataCorruption
from coworking.core.logging import get_logger

logger = get_logger(__name__)

LOCK_STRICT = "strict"
LOCK_FLEXIBLE = "flexible"


@dataclass
class OccupancyRecord:
    start: date
    end: date
    quantity: int = 1
    order: Optional[str] = None
    tier: Optional[str] = None
    token: Optional[str] = None

    def covers(self, day: date) -> bool:
        return self.start <= day <= self.end

    def to_dict(self) -> dict:
        data = asdict(self)
        data["start"] = self.start.isoformat()
        data["end"] = self.end.isoformat()
        return data

    @classmethod
    def from_dict(cls, raw: Any) -> "OccupancyRecord":
        """Strict: raises DataCorruption on a record that cannot be used."""
        if not isinstance(raw, dict):
            raise DataCorruption(f"record is not an object: {raw!r}")
        start, end = _parse_day(raw.get("start")), _parse_day(raw.get("end"))
        if end < start:
            raise DataCorruption(f"record ends before it starts: {raw!r}")
        order = raw.get("order")
        return cls(
            start=start,
            end=end,
            quantity=_parse_quantity(raw.get("quantity", 1)),
            order=str(order) if order not in (None, "", 0) else None,
            tier=raw.get("tier") or raw.get("formule") or None,
            token=raw.get("token") or None,
        )


@dataclass
class Lock(OccupancyRecord):
    expires_at: float = 0.0
    lock_type: str = LOCK_FLEXIBLE

    def is_active(self, now: float) -> bool:
        return self.expires_at > now

    @classmethod
    def from_dict(cls, raw: Any) -> "Lock":
        record = OccupancyRecord.from_dict(raw)
        try:
            expires_at = float(raw["expires_at"])
        except (KeyError, TypeError, ValueError):
            raise DataCorruption(f"lock has no usable expires_at: {raw!r}")
        return cls(
            start=record.start,
            end=record.end,
            quantity=record.quantity,
            order=record.order,
            tier=record.tier,
            token=record.token,
            expires_at=expires_at,
            lock_type=raw.get("lock_type") or LOCK_FLEXIBLE,
        )


@dataclass
class ManualBlock:
    day: date
    reason: str = ""
    line: str = field(default="", compare=False)


def _parse_day(value: Any) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except (TypeError, ValueError):
        raise DataCorruption(f"invalid date: {value!r}")


def _parse_quantity(value: Any) -> int:
    try:
        return max(1, int(value))
    except (TypeError, ValueError):
        return 1


def decode_collection(raw: Optional[str]) -> list:
    """Strict JSON array decoding. Absent data is an empty collection."""
    if raw is None or raw == "":
        return []
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise DataCorruption(f"unreadable collection: {e}")
    if not isinstance(data, list):
        raise DataCorruption(f"collection is not an array: {type(data).__name__}")
    return data


def encode_collection(records: list[OccupancyRecord]) -> str:
    return json.dumps([r.to_dict() for r in records])


def _parse_or_empty(raw: Optional[str], record_cls, source: str) -> list:
    try:
        items = decode_collection(raw)
    except DataCorruption as e:
        logger.warning("data_corruption", source=source, error=str(e))
        return []

    records = []
    for item in items:
        try:
            records.append(record_cls.from_dict(item))
        except DataCorruption as e:
            logger.warning("data_corruption_record_skipped", source=source, error=str(e))
    return records


def parse_occupancy(raw: Optional[str], source: str = "occupancy") -> list[OccupancyRecord]:
    return _parse_or_empty(raw, OccupancyRecord, source)


def parse_locks(raw: Optional[str], source: str = "locks") -> list[Lock]:
    return _parse_or_empty(raw, Lock, source)


def parse_manual_blocks(raw: Optional[str]) -> list[ManualBlock]:
    """
    One block per line: "YYYY-MM-DD" optionally followed by "# reason".
    Lines without a leading date are free text and ignored.
    """
    blocks = []
    for line in (raw or "").splitlines():
        line = line.strip()
        if not line:
            continue
        day_part, _, reason = line.partition("#")
        try:
            day = date.fromisoformat(day_part.strip())
        except ValueError:
            continue
        blocks.append(ManualBlock(day=day, reason=reason.strip(), line=line))
    return blocks
