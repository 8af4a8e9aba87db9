"""
Tests for calendar math: month keys, inclusive ranges, timezone boundary.
"""

from datetime import date, datetime, timezone

import pytest

from coworking.core.errors import InvalidMonth, InvalidRange
from coworking.services.calendar import (
    MonthKey,
    days_in_month,
    enumerate_dates,
    months_spanned,
    today,
)


def test_days_in_month_handles_leap_years():
    assert days_in_month(2024, 2) == 29
    assert days_in_month(2025, 2) == 28
    assert days_in_month(2025, 12) == 31


def test_days_in_month_rejects_invalid_month():
    with pytest.raises(InvalidMonth):
        days_in_month(2025, 13)


@pytest.mark.parametrize("value", ["2025-13", "2025-6-1", "June", "", "25-06", "2025-00"])
def test_month_key_rejects_malformed_keys(value):
    with pytest.raises(InvalidMonth):
        MonthKey.parse(value)


def test_month_key_round_trip_and_bounds():
    key = MonthKey.parse("2025-02")
    assert str(key) == "2025-02"
    assert key.first_day == date(2025, 2, 1)
    assert key.last_day == date(2025, 2, 28)
    assert MonthKey(2025, 12).next() == MonthKey(2026, 1)


def test_enumerate_dates_is_inclusive_and_restartable():
    dates = enumerate_dates(date(2025, 6, 29), date(2025, 7, 2))
    assert list(dates) == [date(2025, 6, 29), date(2025, 6, 30), date(2025, 7, 1), date(2025, 7, 2)]
    # Iterating again yields the same sequence
    assert list(dates) == list(dates)
    assert len(dates) == 4
    assert date(2025, 7, 1) in dates


def test_enumerate_single_day():
    assert list(enumerate_dates(date(2025, 6, 5), date(2025, 6, 5))) == [date(2025, 6, 5)]


def test_enumerate_dates_rejects_reversed_range():
    with pytest.raises(InvalidRange):
        enumerate_dates(date(2025, 6, 5), date(2025, 6, 4))


def test_months_spanned_crosses_year_boundary():
    assert months_spanned(date(2025, 11, 20), date(2026, 1, 3)) == [
        MonthKey(2025, 11),
        MonthKey(2025, 12),
        MonthKey(2026, 1),
    ]


def test_today_uses_configured_timezone():
    # 23:30 UTC is already the next day in Paris (UTC+2 in summer)
    now = datetime(2025, 6, 1, 23, 30, tzinfo=timezone.utc)
    assert today("Europe/Paris", now) == date(2025, 6, 2)
    assert today("UTC", now) == date(2025, 6, 1)
