"""
Tests for the capacity model and the parse-or-empty boundary.
"""

import json
from datetime import date

import pytest

from coworking.core.errors import DataCorruption
from coworking.models.occupancy import (
    OccupancyRecord,
    decode_collection,
    parse_locks,
    parse_manual_blocks,
    parse_occupancy,
)
from coworking.models.resource import LockPolicy, resolve_capacity
from coworking.core.config import Settings
from coworking.services.calendar import MonthKey
from coworking.services.capacity import DayStatus, compute_day_availability, compute_month_availability

TODAY = date(2025, 6, 1)


def span(start: str, end: str, quantity: int = 1) -> OccupancyRecord:
    return OccupancyRecord(start=date.fromisoformat(start), end=date.fromisoformat(end), quantity=quantity)


def test_capacity_five_with_three_reserved_is_low():
    day = compute_day_availability(date(2025, 6, 10), 5, [span("2025-06-10", "2025-06-10", 3)], set(), TODAY)
    assert day.slots == 2
    assert day.status == DayStatus.LOW


def test_capacity_five_with_one_reserved_is_available():
    day = compute_day_availability(date(2025, 6, 10), 5, [span("2025-06-09", "2025-06-11")], set(), TODAY)
    assert day.slots == 4
    assert day.status == DayStatus.AVAILABLE


def test_exhausted_day_is_full():
    day = compute_day_availability(date(2025, 6, 10), 1, [span("2025-06-10", "2025-06-10")], set(), TODAY)
    assert day.slots == 0
    assert day.status == DayStatus.FULL


def test_over_reserved_day_clamps_slots_to_zero():
    day = compute_day_availability(date(2025, 6, 10), 1, [span("2025-06-10", "2025-06-10", 4)], set(), TODAY)
    assert day.slots == 0


def test_today_and_past_are_unavailable():
    assert compute_day_availability(TODAY, 5, [], set(), TODAY).status == DayStatus.UNAVAILABLE
    past = compute_day_availability(date(2025, 5, 20), 5, [], set(), TODAY)
    assert past.status == DayStatus.UNAVAILABLE
    assert past.is_past


def test_manual_block_wins_over_free_capacity():
    blocked = date(2025, 6, 12)
    day = compute_day_availability(blocked, 5, [], {blocked}, TODAY)
    assert day.status == DayStatus.UNAVAILABLE
    assert day.slots == 5
    assert not day.is_past


def test_month_covers_every_day():
    month = compute_month_availability(MonthKey(2025, 6), 2, [span("2025-06-20", "2025-06-21")], set(), TODAY)
    assert len(month) == 30
    assert month[date(2025, 6, 20)].status == DayStatus.LOW
    assert month[date(2025, 6, 22)].slots == 2


def test_parse_or_empty_tolerates_corrupt_collections():
    assert parse_occupancy("not json") == []
    assert parse_occupancy(json.dumps({"start": "2025-06-01"})) == []
    assert parse_locks(None) == []


def test_parse_or_empty_skips_unusable_records():
    raw = json.dumps([
        {"start": "2025-06-10", "end": "2025-06-11", "order": "42"},
        {"start": "garbage", "end": "2025-06-11"},
        {"end": "2025-06-11"},
    ])
    records = parse_occupancy(raw)
    assert len(records) == 1
    assert records[0].order == "42"


def test_locks_without_expiry_are_skipped():
    raw = json.dumps([{"start": "2025-06-10", "end": "2025-06-10", "token": "abc"}])
    assert parse_locks(raw) == []


def test_strict_decoder_raises():
    with pytest.raises(DataCorruption):
        decode_collection("{}")
    with pytest.raises(DataCorruption):
        decode_collection("[broken")


def test_manual_blocks_ignore_free_text():
    blocks = parse_manual_blocks("2025-06-12 # Private event\nClosed for renovation\n\n2025-06-14")
    assert [b.day for b in blocks] == [date(2025, 6, 12), date(2025, 6, 14)]
    assert blocks[0].reason == "Private event"


@pytest.mark.parametrize("raw, expected", [(None, 1), ("", 1), ("abc", 1), (0, 1), (-3, 1), ("4", 4), (7, 7)])
def test_capacity_falls_back_to_default(raw, expected):
    assert resolve_capacity(raw, 1) == expected


def test_lock_policy_depends_on_capacity():
    settings = Settings()
    exclusive = LockPolicy.for_capacity(1, settings)
    shared = LockPolicy.for_capacity(10, settings)
    assert (exclusive.duration_seconds, exclusive.lock_type) == (1200, "strict")
    assert (shared.duration_seconds, shared.lock_type) == (300, "flexible")
