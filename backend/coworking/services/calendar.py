"""
Calendar math: month enumeration, inclusive day iteration and the
"today" boundary. Pure functions, no storage access.
"""

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, NamedTuple, Optional
from zoneinfo import ZoneInfo

from coworking.core.errors import InvalidMonth, InvalidRange


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def today(tz: str, now: Optional[datetime] = None) -> date:
    """Current date in the configured timezone."""
    now = now or utcnow()
    return now.astimezone(ZoneInfo(tz)).date()


def days_in_month(year: int, month: int) -> int:
    if not 1 <= month <= 12:
        raise InvalidMonth(f"Invalid month: {month}")
    return calendar.monthrange(year, month)[1]


class MonthKey(NamedTuple):
    year: int
    month: int

    @classmethod
    def parse(cls, value: str) -> "MonthKey":
        """Parse a YYYY-MM key. Malformed keys are a hard error."""
        parts = (value or "").strip().split("-")
        if len(parts) != 2 or not all(p.isdigit() for p in parts) or len(parts[0]) != 4:
            raise InvalidMonth(f"Invalid month key: {value!r} (expected YYYY-MM)")
        year, month = int(parts[0]), int(parts[1])
        if not 1 <= month <= 12 or year < 1:
            raise InvalidMonth(f"Invalid month key: {value!r}")
        return cls(year, month)

    @classmethod
    def of(cls, day: date) -> "MonthKey":
        return cls(day.year, day.month)

    @classmethod
    def current(cls, tz: str, now: Optional[datetime] = None) -> "MonthKey":
        return cls.of(today(tz, now))

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, days_in_month(self.year, self.month))

    def next(self) -> "MonthKey":
        if self.month == 12:
            return MonthKey(self.year + 1, 1)
        return MonthKey(self.year, self.month + 1)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


class DateRange:
    """
    Every date from start to end inclusive.

    Iterating twice yields the same dates; nothing is materialized.
    """

    def __init__(self, start: date, end: date):
        if end < start:
            raise InvalidRange(f"End date {end.isoformat()} is before start date {start.isoformat()}")
        self.start = start
        self.end = end

    def __iter__(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def __len__(self) -> int:
        return (self.end - self.start).days + 1

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.start <= day <= self.end

    def __repr__(self) -> str:
        return f"<DateRange({self.start.isoformat()}..{self.end.isoformat()})>"


def enumerate_dates(start: date, end: date) -> DateRange:
    return DateRange(start, end)


def months_spanned(start: date, end: date) -> list[MonthKey]:
    if end < start:
        raise InvalidRange(f"End date {end.isoformat()} is before start date {start.isoformat()}")
    months = []
    current, last = MonthKey.of(start), MonthKey.of(end)
    while current <= last:
        months.append(current)
        current = current.next()
    return months
