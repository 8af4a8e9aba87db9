"""
Wires the services over one store, gateway, settings and clock.

The HTTP layer and the scheduler both build their services here, so a
test can swap any collaborator by passing its own.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from coworking.core.config import Settings
from coworking.infrastructure.keys import StorageKeys
from coworking.infrastructure.order_gateway import OrderGateway
from coworking.infrastructure.store import KeyValueStore
from coworking.services.availability_service import AvailabilityService
from coworking.services.booking_service import BookingService
from coworking.services.calendar import utcnow
from coworking.services.lock_manager import LockManager
from coworking.services.reconciliation_service import ReconciliationService
from coworking.services.reservation_store import ReservationStore
from coworking.services.resource_repository import ResourceRepository


@dataclass
class Services:
    resources: ResourceRepository
    reservations: ReservationStore
    locks: LockManager
    availability: AvailabilityService
    booking: BookingService
    reconciliation: ReconciliationService


def build_services(
    store: KeyValueStore,
    gateway: OrderGateway,
    settings: Settings,
    clock: Callable[[], datetime] = utcnow,
) -> Services:
    keys = StorageKeys(settings.KEY_PREFIX)

    resources = ResourceRepository(store, keys, settings)
    reservations = ReservationStore(store, keys)
    locks = LockManager(store, keys, resources, settings, clock=clock)
    availability = AvailabilityService(resources, reservations, locks, settings, clock=clock)
    booking = BookingService(resources, reservations, locks, availability, gateway, settings, clock=clock)
    reconciliation = ReconciliationService(
        store, keys, reservations, locks, availability, gateway, settings, clock=clock
    )
    return Services(
        resources=resources,
        reservations=reservations,
        locks=locks,
        availability=availability,
        booking=booking,
        reconciliation=reconciliation,
    )
