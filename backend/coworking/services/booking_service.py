"""
Booking pipeline: quote, reserve, finalize and cancel.

CONCURRENCY STRATEGY: Atomic admission inside the lock write
=============================================================

Problem:
  Two customers start checkout for the last free desk at the same moment.
  Both check availability, both see one slot, both take a lock.
  Result: over-booking once both orders complete.

Solution:
  The availability check is repeated inside the lock collection's atomic
  read-modify-write (LockManager.add_lock guard):

  1. Pre-check the range (cheap early rejection with the failing date)
  2. store.update(locks:{id}): read active locks, re-run the range check
     against exactly those locks, append the new lock, write
  3. A concurrent writer touching the same collection makes the write
     retry (Redis WATCH) or wait (memory per-key mutex), so the second
     attempt re-checks with the first attempt's lock included

  The check still reads confirmed occupancy outside the transaction.
  Confirmed occupancy only grows at finalize, from a lock that is already
  counted, so the sum confirmed + locks never goes up between the read
  and the write.

Compensation:
  Once the lock exists every failure path removes it and deletes the
  draft before the error propagates. Finalize is idempotent through the
  order's processed flag plus (order, token) de-duplication of occupancy
  appends, so at-least-once event delivery cannot consume capacity twice.

Attempt states:
  REQUESTED -> VALIDATED -> LOCKED -> CONFIRMED | RELEASED, or REJECTED.
"""

import secrets
import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from coworking.core.config import Settings
from coworking.core.errors import (
    InvalidInput,
    LeadTimeViolation,
    Misconfiguration,
    RangeUnavailable,
)
from coworking.core.logging import get_logger
from coworking.core.metrics import record_order_event, record_reservation_attempt, reservation_latency
from coworking.infrastructure.order_gateway import CartHandoff, OrderGateway
from coworking.models.occupancy import Lock, OccupancyRecord
from coworking.models.reservation import (
    AttemptState,
    DraftReservation,
    OrderLineRecord,
    OrderRecord,
    ReservationRecord,
)
from coworking.models.resource import TIER_ALIASES, TIERS, Resource
from coworking.services.availability_service import AvailabilityService
from coworking.services.calendar import DateRange, utcnow
from coworking.services.lock_manager import LockManager
from coworking.services.pricing import resolve_price
from coworking.services.reservation_store import ReservationStore
from coworking.services.resource_repository import ResourceRepository

logger = get_logger(__name__)

FINALIZE_STATUSES = ("completed", "processing")
CANCEL_STATUSES = ("cancelled", "refunded")


@dataclass(frozen=True)
class Quote:
    resource_id: int
    tier: str
    start: date
    end: date
    price: float


@dataclass(frozen=True)
class ReservationHandoff:
    token: str
    redirect_url: str
    price: float
    start: date
    end: date


@dataclass(frozen=True)
class Customer:
    name: str = ""
    email: str = ""


def _format_day(day: date) -> str:
    return day.strftime("%d/%m/%Y")


class BookingService:

    def __init__(
        self,
        resources: ResourceRepository,
        reservations: ReservationStore,
        locks: LockManager,
        availability: AvailabilityService,
        gateway: OrderGateway,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.resources = resources
        self.reservations = reservations
        self.locks = locks
        self.availability = availability
        self.gateway = gateway
        self.settings = settings
        self.clock = clock

    # Validation

    def _validate_resource(self, resource_id: Optional[int]) -> int:
        if not resource_id:
            raise InvalidInput("Missing parameters")
        return resource_id

    def _validate_dates(self, start: Optional[date], end: Optional[date]) -> DateRange:
        if start is None or end is None:
            raise InvalidInput("Missing parameters")

        earliest = self.availability.today() + timedelta(days=self.settings.MIN_LEAD_DAYS)
        if start < earliest:
            raise LeadTimeViolation(
                f"The start date must be on or after {_format_day(earliest)}",
                failing_date=start,
            )
        if end < start:
            raise InvalidInput("Invalid period: end date is before start date")
        return DateRange(start, end)

    def _validate_tier(self, tier: Optional[str]) -> str:
        if not tier:
            raise InvalidInput("Missing parameters")
        tier = TIER_ALIASES.get(tier, tier)
        if tier not in TIERS:
            raise InvalidInput(f"Unknown tier: {tier}")
        return tier

    def _price_for(self, resource: Resource, tier: str) -> float:
        price = resolve_price(resource.prices, tier, self.settings)
        if price <= 0:
            logger.error("price_not_configured", resource_id=resource.id, tier=tier)
            raise Misconfiguration("Price is not configured for this resource")
        return price

    def _product_for(self, resource_id: int) -> str:
        product_id = self.settings.PRODUCT_MAPPING.get(resource_id)
        if not product_id:
            logger.error("product_mapping_missing", resource_id=resource_id)
            raise Misconfiguration("No order-system product is configured for this resource")
        return str(product_id)

    async def _ensure_bookable(self, resource_id: int, start: date, end: date, locks: Optional[list[Lock]] = None):
        check = await self.availability.check_range_bookable(resource_id, start, end, locks=locks)
        if not check.bookable:
            raise RangeUnavailable(
                f"Date unavailable: {_format_day(check.first_failing_date)}",
                failing_date=check.first_failing_date,
            )

    # Operations

    async def quote(self, resource_id: int, tier: str, start: date, end: Optional[date] = None) -> Quote:
        """Price and eligibility check for a prospective range. No side effects."""
        resource_id = self._validate_resource(resource_id)
        tier = self._validate_tier(tier)
        span = self._validate_dates(start, end or start)
        resource = await self.resources.get(resource_id)

        await self._ensure_bookable(resource_id, span.start, span.end)
        price = resolve_price(resource.prices, tier, self.settings)
        return Quote(resource_id=resource_id, tier=tier, start=span.start, end=span.end, price=price)

    async def reserve(self, resource_id: int, tier: str, start: date, end: date) -> ReservationHandoff:
        """
        Validate, lock and hand a reservation attempt to the order system.

        Raises:
            InvalidInput / LeadTimeViolation / ResourceNotFound before any write
            Misconfiguration when price or product mapping is missing
            RangeUnavailable (409) with the first failing date
            ExternalDependencyUnavailable when the handoff fails (lock released)
        """
        started = time.perf_counter()
        state = AttemptState.REQUESTED
        try:
            resource_id = self._validate_resource(resource_id)
            tier = self._validate_tier(tier)
            span = self._validate_dates(start, end)
            resource = await self.resources.get(resource_id)
            price = self._price_for(resource, tier)
            product_id = self._product_for(resource_id)
            state = AttemptState.VALIDATED

            await self._ensure_bookable(resource_id, span.start, span.end)

            async def admit(active: list[Lock]) -> None:
                await self._ensure_bookable(resource_id, span.start, span.end, locks=active)

            token = secrets.token_urlsafe(12)
            await self.locks.add_lock(resource_id, span.start, span.end, token, guard=admit)
            state = AttemptState.LOCKED
        except RangeUnavailable as e:
            record_reservation_attempt("conflict")
            logger.info(
                "reservation_rejected",
                resource_id=resource_id,
                state=AttemptState.REJECTED.value,
                reached=state.value,
                failing_date=e.failing_date.isoformat() if e.failing_date else None,
            )
            raise
        except Exception:
            record_reservation_attempt("rejected")
            raise

        draft = DraftReservation(
            token=token,
            resource_id=resource_id,
            title=resource.title,
            tier=tier,
            start=span.start,
            end=span.end,
            price=price,
            created_at=self.clock(),
        )
        try:
            await self.reservations.save_draft(draft)
            redirect_url = await self.gateway.add_to_cart(
                CartHandoff(
                    product_id=product_id,
                    resource_id=resource_id,
                    title=resource.title,
                    tier=tier,
                    start=span.start,
                    end=span.end,
                    price=price,
                    token=token,
                )
            )
        except Exception:
            await self._release(resource_id, token)
            record_reservation_attempt("error")
            raise

        reservation_latency.observe(time.perf_counter() - started)
        record_reservation_attempt("locked")
        logger.info(
            "reservation_locked",
            resource_id=resource_id,
            tier=tier,
            start=span.start.isoformat(),
            end=span.end.isoformat(),
            days=len(span),
            price=price,
        )
        return ReservationHandoff(token=token, redirect_url=redirect_url, price=price, start=span.start, end=span.end)

    async def _release(self, resource_id: int, token: str) -> None:
        """Compensation after a failed handoff. Errors here must not mask the original one."""
        try:
            await self.locks.remove_lock_by_token(resource_id, token)
            await self.reservations.delete_draft(token)
        except Exception:
            logger.error("reservation_release_failed", resource_id=resource_id, exc_info=True)
            return
        logger.info("reservation_released", resource_id=resource_id, state=AttemptState.RELEASED.value)

    async def handle_order_event(
        self,
        order_id: str,
        status: str,
        lines: list[OrderLineRecord],
        consent: bool = False,
        customer: Optional[Customer] = None,
        consent_at: Optional[datetime] = None,
    ) -> str:
        """Dispatch an order lifecycle event. Returns the outcome label."""
        if status in FINALIZE_STATUSES:
            outcome = await self.finalize_order(order_id, lines, consent, customer, consent_at)
            event = "finalize"
        elif status in CANCEL_STATUSES:
            outcome = await self.cancel_order(order_id)
            event = "cancel"
        else:
            outcome = "ignored"
            event = status or "unknown"
        record_order_event(event, outcome)
        return outcome

    async def finalize_order(
        self,
        order_id: str,
        lines: list[OrderLineRecord],
        consent: bool = False,
        customer: Optional[Customer] = None,
        consent_at: Optional[datetime] = None,
    ) -> str:
        """
        Convert the order's locks into confirmed occupancy.

        Without consent nothing is recorded for the order: its locks are
        still released and the processed flag is still set, so the dates
        become free again once the locks are gone.

        Returns "already_processed", "finalized" or "failed". On failure the
        processed flag stays unset so a redelivered event retries; appends
        already made are de-duplicated on that retry.
        """
        existing = await self.reservations.get_order(order_id)
        if existing and existing.processed:
            logger.info("order_already_processed", order_id=order_id)
            return "already_processed"

        customer = customer or Customer()
        try:
            for line in lines:
                await self._finalize_line(order_id, line, consent, customer, consent_at)

            await self.reservations.save_order(
                OrderRecord(
                    order_id=order_id,
                    processed=True,
                    processed_at=self.clock(),
                    consent=consent,
                    lines=lines,
                )
            )
        except Exception:
            logger.error("order_finalize_failed", order_id=order_id, exc_info=True)
            return "failed"

        logger.info("order_finalized", order_id=order_id, lines=len(lines), consent=consent)
        return "finalized"

    async def _finalize_line(
        self,
        order_id: str,
        line: OrderLineRecord,
        consent: bool,
        customer: Customer,
        consent_at: Optional[datetime],
    ) -> None:
        if consent:
            await self._record_line(order_id, line, customer, consent_at)
        else:
            logger.info(
                "reservation_not_recorded", order_id=order_id, resource_id=line.resource_id, reason="no_consent"
            )

        if line.token:
            await self.reservations.delete_draft(line.token)
            await self.locks.remove_lock_by_token(line.resource_id, line.token)

        state = AttemptState.CONFIRMED if consent else AttemptState.RELEASED
        logger.info(
            "reservation_finalized",
            order_id=order_id,
            resource_id=line.resource_id,
            start=line.start.isoformat(),
            end=line.end.isoformat(),
            state=state.value,
        )

    async def _record_line(
        self,
        order_id: str,
        line: OrderLineRecord,
        customer: Customer,
        consent_at: Optional[datetime],
    ) -> None:
        appended = await self.reservations.append_confirmed(
            line.resource_id,
            OccupancyRecord(
                start=line.start,
                end=line.end,
                quantity=line.quantity,
                order=order_id,
                tier=line.tier or None,
                token=line.token or None,
            ),
        )
        if not appended:
            logger.info("occupancy_duplicate_skipped", order_id=order_id, resource_id=line.resource_id)

        if line.token:
            draft = await self.reservations.get_draft(line.token)
            resource = await self.resources.get(line.resource_id)
            await self.reservations.save_reservation(
                ReservationRecord(
                    order_id=order_id,
                    token=line.token,
                    resource_id=line.resource_id,
                    title=draft.title if draft else resource.title,
                    tier=line.tier,
                    start=line.start,
                    end=line.end,
                    price=draft.price if draft else resolve_price(resource.prices, line.tier, self.settings),
                    confirmed_at=self.clock(),
                    customer_name=customer.name,
                    customer_email=customer.email,
                    consent_at=consent_at or self.clock(),
                )
            )

    async def cancel_order(self, order_id: str) -> str:
        """
        Release the capacity a processed order consumed.
        Returns "not_processed" (no-op), "cancelled" or "failed".
        """
        order = await self.reservations.get_order(order_id)
        if not order or not order.processed:
            logger.info("order_cancel_skipped", order_id=order_id, reason="not_processed")
            return "not_processed"

        try:
            removed = 0
            for resource_id in sorted({line.resource_id for line in order.lines}):
                removed += await self.reservations.remove_by_order(resource_id, order_id)
            for line in order.lines:
                if line.token:
                    await self.reservations.delete_reservation(line.token)
                    await self.locks.remove_lock_by_token(line.resource_id, line.token)

            order.processed = False
            order.processed_at = None
            await self.reservations.save_order(order)
        except Exception:
            logger.error("order_cancel_failed", order_id=order_id, exc_info=True)
            return "failed"

        logger.info("order_cancelled", order_id=order_id, records_removed=removed)
        return "cancelled"
