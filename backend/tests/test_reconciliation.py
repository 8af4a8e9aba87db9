"""
Tests for maintenance sweeps, data repair, occupancy rebuild and cart
revalidation.
"""

import json
from datetime import date

import pytest

from conftest import DESK_POOL_ID, MEETING_ROOM_ID, TOMORROW
from coworking.core.errors import Misconfiguration
from coworking.models.occupancy import OccupancyRecord
from coworking.models.reservation import OrderLineRecord
from coworking.services.reconciliation_service import CartLine


def cart_line(handoff, resource_id) -> CartLine:
    return CartLine(resource_id=resource_id, token=handoff.token, start=handoff.start, end=handoff.end)


@pytest.mark.asyncio
async def test_sweep_purges_expired_locks(services, desk_pool, clock):
    await services.locks.add_lock(DESK_POOL_ID, TOMORROW, TOMORROW, "old")
    clock.advance(seconds=200)
    await services.locks.add_lock(DESK_POOL_ID, TOMORROW, TOMORROW, "new")
    clock.advance(seconds=150)

    assert await services.reconciliation.sweep_expired_locks() == 1
    assert [lock.token for lock in await services.locks.active_locks(DESK_POOL_ID)] == ["new"]


@pytest.mark.asyncio
async def test_abandoned_drafts_are_swept_after_grace_window(services, store, settings, desk_pool, clock):
    old = await services.booking.reserve(DESK_POOL_ID, "day", TOMORROW, TOMORROW)
    await store.set(f"{settings.KEY_PREFIX}:draft:corrupt", "not json")
    clock.advance(hours=25)
    fresh = await services.booking.reserve(DESK_POOL_ID, "day", date(2025, 6, 5), date(2025, 6, 5))

    assert await services.reconciliation.sweep_abandoned_drafts() == 2
    assert await services.reservations.get_draft(old.token) is None
    assert await services.reservations.get_draft(fresh.token) is not None


@pytest.mark.asyncio
async def test_repair_normalizes_occupancy(services, store, settings, desk_pool):
    prefix = settings.KEY_PREFIX
    await store.set(f"{prefix}:occupancy:10", "{}")
    await store.set(
        f"{prefix}:occupancy:11",
        json.dumps([
            {"start": "2025-06-10", "end": "2025-06-10", "order": "A", "quantity": 0},
            {"start": "2025-06-11", "end": "2025-06-11"},
            {"start": "bad", "end": "2025-06-11", "order": "B"},
        ]),
    )
    await services.reservations.append_confirmed(
        DESK_POOL_ID, OccupancyRecord(start=TOMORROW, end=TOMORROW, order="C", token="c")
    )

    repaired, dropped = await services.reconciliation.repair_reservations()

    assert (repaired, dropped) == (2, 2)
    assert await store.get(f"{prefix}:occupancy:10") == "[]"
    kept = json.loads(await store.get(f"{prefix}:occupancy:11"))
    assert [(r["order"], r["quantity"]) for r in kept] == [("A", 1)]
    assert len(await services.reservations.confirmed(DESK_POOL_ID)) == 1


@pytest.mark.asyncio
async def test_rebuild_restores_occupancy_from_orders(services, store, settings, desk_pool):
    handoff = await services.booking.reserve(DESK_POOL_ID, "day", TOMORROW, date(2025, 6, 3))
    line = OrderLineRecord(
        resource_id=DESK_POOL_ID, token=handoff.token, tier="day", start=handoff.start, end=handoff.end
    )
    await services.booking.finalize_order("2001", [line], consent=True)
    await store.set(f"{settings.KEY_PREFIX}:occupancy:{DESK_POOL_ID}", "[]")

    assert await services.reconciliation.rebuild_occupancy(DESK_POOL_ID) == 1
    confirmed = await services.reservations.confirmed(DESK_POOL_ID)
    assert [(r.order, r.start, r.end) for r in confirmed] == [("2001", TOMORROW, date(2025, 6, 3))]


@pytest.mark.asyncio
async def test_rebuild_ignores_orders_finalized_without_consent(services, desk_pool):
    handoff = await services.booking.reserve(DESK_POOL_ID, "day", TOMORROW, TOMORROW)
    line = OrderLineRecord(
        resource_id=DESK_POOL_ID, token=handoff.token, tier="day", start=handoff.start, end=handoff.end
    )
    await services.booking.finalize_order("2002", [line], consent=False)

    assert await services.reconciliation.rebuild_occupancy(DESK_POOL_ID) == 0
    assert await services.reservations.confirmed(DESK_POOL_ID) == []


@pytest.mark.asyncio
async def test_revalidate_refreshes_own_lock(services, desk_pool, clock):
    handoff = await services.booking.reserve(DESK_POOL_ID, "day", TOMORROW, TOMORROW)
    clock.advance(seconds=250)

    result = await services.reconciliation.revalidate_cart([cart_line(handoff, DESK_POOL_ID)])

    assert result.valid
    assert result.refreshed == [handoff.token]
    clock.advance(seconds=250)
    assert len(await services.locks.active_locks(DESK_POOL_ID)) == 1


@pytest.mark.asyncio
async def test_revalidate_self_heals_lapsed_lock(services, desk_pool, clock):
    handoff = await services.booking.reserve(DESK_POOL_ID, "day", TOMORROW, TOMORROW)
    clock.advance(seconds=301)

    result = await services.reconciliation.revalidate_cart([cart_line(handoff, DESK_POOL_ID)])

    assert result.valid
    assert result.healed == [handoff.token]
    assert [lock.token for lock in await services.locks.active_locks(DESK_POOL_ID)] == [handoff.token]


@pytest.mark.asyncio
async def test_revalidate_evicts_superseded_line(services, gateway, meeting_room, clock):
    first = await services.booking.reserve(MEETING_ROOM_ID, "day", TOMORROW, TOMORROW)
    clock.advance(seconds=1201)
    await services.booking.reserve(MEETING_ROOM_ID, "day", TOMORROW, TOMORROW)

    result = await services.reconciliation.revalidate_cart([cart_line(first, MEETING_ROOM_ID)])

    assert not result.valid
    assert result.evicted[0].token == first.token
    assert result.evicted[0].date == TOMORROW
    assert gateway.removed == [first.token]
    assert await services.reservations.get_draft(first.token) is None


@pytest.mark.asyncio
async def test_revalidate_continues_when_cart_removal_is_misconfigured(
    services, gateway, desk_pool, meeting_room, clock
):
    first = await services.booking.reserve(MEETING_ROOM_ID, "day", TOMORROW, TOMORROW)
    clock.advance(seconds=1201)
    await services.booking.reserve(MEETING_ROOM_ID, "day", TOMORROW, TOMORROW)
    desk = await services.booking.reserve(DESK_POOL_ID, "day", TOMORROW, TOMORROW)

    async def unconfigured(token):
        raise Misconfiguration("Order system URL is not configured")

    gateway.remove_from_cart = unconfigured

    result = await services.reconciliation.revalidate_cart(
        [cart_line(first, MEETING_ROOM_ID), cart_line(desk, DESK_POOL_ID)]
    )

    assert [line.token for line in result.evicted] == [first.token]
    assert result.refreshed == [desk.token]
    assert await services.reservations.get_draft(first.token) is None


@pytest.mark.asyncio
async def test_run_maintenance_reports_every_sweep(services, store, settings, desk_pool):
    await store.set(f"{settings.KEY_PREFIX}:occupancy:{DESK_POOL_ID}", "garbage")

    report = await services.reconciliation.run_maintenance()

    assert report.collections_repaired == 1
    assert report.to_dict() == {
        "locks_purged": 0,
        "drafts_removed": 0,
        "collections_repaired": 1,
        "records_dropped": 0,
    }
