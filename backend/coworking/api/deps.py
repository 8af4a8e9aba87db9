"""
Route dependencies. Tests override get_store, get_order_gateway and
get_clock through app.dependency_overrides.
"""

from datetime import datetime
from typing import Callable

from fastapi import Depends

from coworking.core.config import Settings, get_settings
from coworking.infrastructure import store_factory
from coworking.infrastructure.order_gateway import OrderGateway
from coworking.infrastructure.store import KeyValueStore
from coworking.services.calendar import utcnow
from coworking.services.container import Services, build_services


def get_store() -> KeyValueStore:
    return store_factory.get_store()


def get_order_gateway() -> OrderGateway:
    return store_factory.get_order_gateway()


def get_clock() -> Callable[[], datetime]:
    return utcnow


def get_services(
    store: KeyValueStore = Depends(get_store),
    gateway: OrderGateway = Depends(get_order_gateway),
    settings: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> Services:
    return build_services(store, gateway, settings, clock)
