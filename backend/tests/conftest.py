"""
Pytest fixtures: in-memory store, controllable clock, fake order system
and an HTTP client wired to them.

Every test gets a fresh MemoryStore, so no cleanup is needed between
tests. The clock starts at 2025-06-01 10:00 UTC (noon in Paris), which
makes 2025-06-02 the first bookable day.
"""

from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from coworking.api.deps import get_clock, get_order_gateway, get_store
from coworking.core.config import Settings, get_settings
from coworking.core.errors import ExternalDependencyUnavailable
from coworking.infrastructure.memory_store import MemoryStore
from coworking.infrastructure.order_gateway import CartHandoff, OrderGateway
from coworking.main import app
from coworking.services.container import Services, build_services

START = datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc)
TODAY = date(2025, 6, 1)
TOMORROW = date(2025, 6, 2)

DESK_POOL_ID = 1
MEETING_ROOM_ID = 2


class FixedClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeOrderGateway(OrderGateway):

    def __init__(self):
        self.handoffs: list[CartHandoff] = []
        self.removed: list[str] = []
        self.fail = False

    async def add_to_cart(self, handoff: CartHandoff) -> str:
        if self.fail:
            raise ExternalDependencyUnavailable("Could not add the reservation to the cart")
        self.handoffs.append(handoff)
        return "https://shop.test/cart"

    async def remove_from_cart(self, token: str) -> None:
        self.removed.append(token)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        STORAGE_BACKEND="memory",
        PRODUCT_MAPPING={DESK_POOL_ID: "prod-desk", MEETING_ROOM_ID: "prod-room"},
        ADMIN_API_KEY="test-admin-key",
        ORDER_WEBHOOK_SECRET="",
        SCHEDULER_ENABLED=False,
    )


@pytest.fixture
def store(clock: FixedClock) -> MemoryStore:
    return MemoryStore(clock=clock)


@pytest.fixture
def gateway() -> FakeOrderGateway:
    return FakeOrderGateway()


@pytest.fixture
def services(store, gateway, settings, clock) -> Services:
    return build_services(store, gateway, settings, clock)


@pytest_asyncio.fixture
async def desk_pool(services: Services):
    """Shared desk pool: 3 desks, day and week prices."""
    return await services.resources.save(
        DESK_POOL_ID, "Open space", 3, {"day": 20.0, "week": 90.0, "month": 0.0}
    )


@pytest_asyncio.fixture
async def meeting_room(services: Services):
    """Exclusive meeting room: capacity 1, day price only."""
    return await services.resources.save(
        MEETING_ROOM_ID, "Meeting room", 1, {"day": 50.0, "week": 0.0, "month": 0.0}
    )


@pytest_asyncio.fixture
async def client(store, gateway, settings, clock) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with storage, order system, settings and clock overridden."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_order_gateway] = lambda: gateway
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_clock] = lambda: clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(settings: Settings) -> dict:
    return {"X-Admin-Key": settings.ADMIN_API_KEY}
