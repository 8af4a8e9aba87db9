"""
Tests for the booking pipeline including concurrency scenarios.
"""

import asyncio
from datetime import date

import pytest

from conftest import DESK_POOL_ID, MEETING_ROOM_ID, TODAY, TOMORROW
from coworking.core.errors import (
    ExternalDependencyUnavailable,
    InvalidInput,
    LeadTimeViolation,
    Misconfiguration,
    RangeUnavailable,
    ResourceNotFound,
)
from coworking.models.reservation import OrderLineRecord
from coworking.services.booking_service import Customer


async def draft_tokens(services) -> list[str]:
    keys = [key async for key in services.reservations.draft_keys()]
    return [key.rsplit(":", 1)[1] for key in keys]


def line_for(handoff, resource_id, tier="day") -> OrderLineRecord:
    return OrderLineRecord(
        resource_id=resource_id,
        token=handoff.token,
        tier=tier,
        start=handoff.start,
        end=handoff.end,
    )


# Quote

@pytest.mark.asyncio
async def test_quote_prices_by_tier(services, desk_pool):
    assert (await services.booking.quote(DESK_POOL_ID, "day", TOMORROW)).price == 20.0
    assert (await services.booking.quote(DESK_POOL_ID, "week", TOMORROW, date(2025, 6, 8))).price == 90.0
    # No month price: falls back to week x 4
    assert (await services.booking.quote(DESK_POOL_ID, "month", TOMORROW, date(2025, 7, 1))).price == 360.0


@pytest.mark.asyncio
async def test_quote_week_fallback_and_legacy_tier_names(services, meeting_room):
    quote = await services.booking.quote(MEETING_ROOM_ID, "semaine", TOMORROW)
    assert quote.tier == "week"
    assert quote.price == 250.0
    assert (quote.start, quote.end) == (TOMORROW, TOMORROW)


@pytest.mark.asyncio
async def test_quote_rejects_unavailable_range(services, meeting_room):
    await services.locks.add_lock(MEETING_ROOM_ID, date(2025, 6, 4), date(2025, 6, 4), "held")

    with pytest.raises(RangeUnavailable) as exc:
        await services.booking.quote(MEETING_ROOM_ID, "day", date(2025, 6, 3), date(2025, 6, 5))
    assert exc.value.failing_date == date(2025, 6, 4)


# Validation

@pytest.mark.asyncio
async def test_reserve_today_is_a_lead_time_violation(services, desk_pool):
    with pytest.raises(LeadTimeViolation):
        await services.booking.reserve(DESK_POOL_ID, "day", TODAY, TODAY)
    assert await services.locks.active_locks(DESK_POOL_ID) == []


@pytest.mark.asyncio
async def test_reserve_rejects_reversed_range(services, desk_pool):
    with pytest.raises(InvalidInput):
        await services.booking.reserve(DESK_POOL_ID, "day", date(2025, 6, 10), date(2025, 6, 9))


@pytest.mark.asyncio
@pytest.mark.parametrize("tier, start, end", [(None, TOMORROW, TOMORROW), ("day", None, TOMORROW), ("hourly", TOMORROW, TOMORROW)])
async def test_reserve_rejects_missing_or_unknown_parameters(services, desk_pool, tier, start, end):
    with pytest.raises(InvalidInput):
        await services.booking.reserve(DESK_POOL_ID, tier, start, end)


@pytest.mark.asyncio
async def test_reserve_unknown_resource(services):
    with pytest.raises(ResourceNotFound):
        await services.booking.reserve(404, "day", TOMORROW, TOMORROW)


@pytest.mark.asyncio
async def test_reserve_without_price_is_misconfiguration(services, meeting_room):
    # Meeting room has neither month nor week price
    with pytest.raises(Misconfiguration):
        await services.booking.reserve(MEETING_ROOM_ID, "month", TOMORROW, date(2025, 7, 1))
    assert await services.locks.active_locks(MEETING_ROOM_ID) == []


@pytest.mark.asyncio
async def test_reserve_without_product_mapping_is_misconfiguration(services):
    await services.resources.save(3, "Phone booth", 2, {"day": 10.0})

    with pytest.raises(Misconfiguration):
        await services.booking.reserve(3, "day", TOMORROW, TOMORROW)
    assert await services.locks.active_locks(3) == []


# Locking and handoff

@pytest.mark.asyncio
async def test_reserve_locks_and_hands_off(services, gateway, desk_pool):
    handoff = await services.booking.reserve(DESK_POOL_ID, "day", TOMORROW, date(2025, 6, 3))

    assert handoff.redirect_url == "https://shop.test/cart"
    assert handoff.price == 20.0
    assert [lock.token for lock in await services.locks.active_locks(DESK_POOL_ID)] == [handoff.token]

    draft = await services.reservations.get_draft(handoff.token)
    assert draft.resource_id == DESK_POOL_ID
    assert draft.end == date(2025, 6, 3)

    assert gateway.handoffs[0].product_id == "prod-desk"
    assert gateway.handoffs[0].token == handoff.token


@pytest.mark.asyncio
async def test_second_reservation_of_exclusive_room_conflicts(services, meeting_room):
    await services.booking.reserve(MEETING_ROOM_ID, "day", TOMORROW, TOMORROW)

    with pytest.raises(RangeUnavailable) as exc:
        await services.booking.reserve(MEETING_ROOM_ID, "day", TOMORROW, TOMORROW)
    assert exc.value.failing_date == TOMORROW
    assert exc.value.status_code == 409
    assert len(await services.locks.active_locks(MEETING_ROOM_ID)) == 1


@pytest.mark.asyncio
async def test_concurrent_attempts_for_last_slot_exactly_one_wins(services, meeting_room):
    results = await asyncio.gather(
        *(services.booking.reserve(MEETING_ROOM_ID, "day", TOMORROW, TOMORROW) for _ in range(5)),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    assert len(winners) == 1
    assert all(isinstance(r, RangeUnavailable) for r in results if isinstance(r, Exception))
    assert len(await services.locks.active_locks(MEETING_ROOM_ID)) == 1


@pytest.mark.asyncio
async def test_concurrent_attempts_never_exceed_capacity(services, desk_pool):
    results = await asyncio.gather(
        *(services.booking.reserve(DESK_POOL_ID, "day", TOMORROW, date(2025, 6, 4)) for _ in range(8)),
        return_exceptions=True,
    )

    assert len([r for r in results if not isinstance(r, Exception)]) == 3
    check = await services.availability.check_range_bookable(DESK_POOL_ID, TOMORROW, TOMORROW)
    assert check.bookable is False


@pytest.mark.asyncio
async def test_handoff_failure_releases_lock_and_draft(services, gateway, desk_pool):
    gateway.fail = True

    with pytest.raises(ExternalDependencyUnavailable):
        await services.booking.reserve(DESK_POOL_ID, "day", TOMORROW, TOMORROW)

    assert await services.locks.active_locks(DESK_POOL_ID) == []
    assert await draft_tokens(services) == []


# Finalize and cancel

@pytest.mark.asyncio
async def test_finalize_converts_lock_into_occupancy(services, desk_pool):
    handoff = await services.booking.reserve(DESK_POOL_ID, "day", TOMORROW, TOMORROW)

    outcome = await services.booking.handle_order_event(
        "1001",
        "completed",
        [line_for(handoff, DESK_POOL_ID)],
        consent=True,
        customer=Customer(name="Ada", email="ada@example.com"),
    )

    assert outcome == "finalized"
    confirmed = await services.reservations.confirmed(DESK_POOL_ID)
    assert [(r.order, r.start, r.quantity) for r in confirmed] == [("1001", TOMORROW, 1)]
    assert await services.locks.active_locks(DESK_POOL_ID) == []
    assert await services.reservations.get_draft(handoff.token) is None

    record = await services.reservations.get_reservation(handoff.token)
    assert record["customer_email"] == "ada@example.com"
    assert record["price"] == 20.0
    assert (await services.reservations.get_order("1001")).processed is True


@pytest.mark.asyncio
async def test_finalize_twice_records_one_occupancy(services, desk_pool):
    handoff = await services.booking.reserve(DESK_POOL_ID, "day", TOMORROW, TOMORROW)
    lines = [line_for(handoff, DESK_POOL_ID)]

    assert await services.booking.finalize_order("1002", lines, consent=True) == "finalized"
    assert await services.booking.finalize_order("1002", lines, consent=True) == "already_processed"
    assert len(await services.reservations.confirmed(DESK_POOL_ID)) == 1


@pytest.mark.asyncio
async def test_concurrent_duplicate_deliveries_record_one_occupancy(services, desk_pool):
    handoff = await services.booking.reserve(DESK_POOL_ID, "day", TOMORROW, TOMORROW)
    lines = [line_for(handoff, DESK_POOL_ID)]

    await asyncio.gather(
        services.booking.finalize_order("1003", lines, consent=True),
        services.booking.finalize_order("1003", lines, consent=True),
    )
    assert len(await services.reservations.confirmed(DESK_POOL_ID)) == 1


@pytest.mark.asyncio
async def test_finalize_without_consent_records_nothing(services, desk_pool):
    handoff = await services.booking.reserve(DESK_POOL_ID, "day", TOMORROW, TOMORROW)

    outcome = await services.booking.finalize_order("1004", [line_for(handoff, DESK_POOL_ID)], consent=False)

    assert outcome == "finalized"
    assert await services.reservations.get_reservation(handoff.token) is None
    assert await services.locks.active_locks(DESK_POOL_ID) == []
    assert (await services.reservations.get_order("1004")).processed is True
    assert await services.reservations.confirmed(DESK_POOL_ID) == []
    assert await services.reservations.get_draft(handoff.token) is None
    month = await services.availability.get_month(DESK_POOL_ID, "2025-06")
    assert month[TOMORROW].slots == 3


@pytest.mark.asyncio
async def test_failed_finalize_leaves_order_unprocessed(services):
    line = OrderLineRecord(resource_id=404, token="t", tier="day", start=TOMORROW, end=TOMORROW)

    assert await services.booking.finalize_order("1005", [line], consent=True) == "failed"
    assert await services.reservations.get_order("1005") is None


@pytest.mark.asyncio
async def test_cancel_releases_confirmed_occupancy(services, desk_pool):
    handoff = await services.booking.reserve(DESK_POOL_ID, "day", TOMORROW, TOMORROW)
    await services.booking.finalize_order("1006", [line_for(handoff, DESK_POOL_ID)], consent=True)

    assert await services.booking.handle_order_event("1006", "refunded", []) == "cancelled"
    assert await services.reservations.confirmed(DESK_POOL_ID) == []
    assert await services.reservations.get_reservation(handoff.token) is None
    assert (await services.reservations.get_order("1006")).processed is False


@pytest.mark.asyncio
async def test_cancel_of_unprocessed_order_is_noop(services, desk_pool):
    await services.booking.reserve(DESK_POOL_ID, "day", TOMORROW, TOMORROW)

    assert await services.booking.cancel_order("1007") == "not_processed"
    assert len(await services.locks.active_locks(DESK_POOL_ID)) == 1


@pytest.mark.asyncio
async def test_unknown_status_is_ignored(services):
    assert await services.booking.handle_order_event("1008", "on-hold", []) == "ignored"
