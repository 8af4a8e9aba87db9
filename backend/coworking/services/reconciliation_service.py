"""
Reconciliation and cart revalidation.

Background sweeps that keep stored state consistent with the passage of
time, plus the revalidation hook the order system calls before checkout:

- Expiry sweep: physically purge expired locks (reads already ignore them)
- Draft sweep: delete drafts older than DRAFT_GRACE_HOURS, which is longer
  than any lock TTL, so a live checkout never loses its draft
- Data repair: normalize corrupt occupancy collections and drop records
  that cannot be used
- Rebuild: rewrite a resource's occupancy from processed order records
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from coworking.core.config import Settings
from coworking.core.errors import BookingError, DataCorruption, RangeUnavailable, ResourceNotFound
from coworking.core.logging import get_logger
from coworking.core.metrics import record_purge
from coworking.infrastructure.keys import StorageKeys
from coworking.infrastructure.order_gateway import OrderGateway
from coworking.infrastructure.store import KeyValueStore
from coworking.models.occupancy import Lock, OccupancyRecord, decode_collection, encode_collection
from coworking.services.availability_service import AvailabilityService
from coworking.services.calendar import utcnow
from coworking.services.lock_manager import LockManager
from coworking.services.reservation_store import ReservationStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class CartLine:
    resource_id: int
    token: str
    start: date
    end: date
    quantity: int = 1


@dataclass
class EvictedLine:
    token: str
    date: Optional[date]
    message: str

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "date": self.date.isoformat() if self.date else None,
            "message": self.message,
        }


@dataclass
class RevalidationResult:
    refreshed: list[str] = field(default_factory=list)
    healed: list[str] = field(default_factory=list)
    evicted: list[EvictedLine] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.evicted


@dataclass
class MaintenanceReport:
    locks_purged: int = 0
    drafts_removed: int = 0
    collections_repaired: int = 0
    records_dropped: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class ReconciliationService:

    def __init__(
        self,
        store: KeyValueStore,
        keys: StorageKeys,
        reservations: ReservationStore,
        locks: LockManager,
        availability: AvailabilityService,
        gateway: OrderGateway,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.keys = keys
        self.reservations = reservations
        self.locks = locks
        self.availability = availability
        self.gateway = gateway
        self.settings = settings
        self.clock = clock

    def _resource_id(self, key: str) -> Optional[int]:
        try:
            return self.keys.resource_id_from(key)
        except (IndexError, ValueError):
            logger.warning("unexpected_key", key=key)
            return None

    # Sweeps

    async def sweep_expired_locks(self) -> int:
        purged = 0
        async for key in self.store.scan(self.keys.pattern("locks")):
            resource_id = self._resource_id(key)
            if resource_id is not None:
                purged += await self.locks.purge_expired(resource_id)

        record_purge("locks", purged)
        logger.info("lock_sweep_completed", purged=purged)
        return purged

    async def sweep_abandoned_drafts(self) -> int:
        cutoff = self.clock() - timedelta(hours=self.settings.DRAFT_GRACE_HOURS)
        tokens = [self.keys.suffix_from(key, "draft") async for key in self.reservations.draft_keys()]

        removed = 0
        for token in tokens:
            draft = await self.reservations.get_draft(token)
            # Unreadable drafts are dropped with the abandoned ones
            if draft is None or draft.created_at < cutoff:
                await self.reservations.delete_draft(token)
                removed += 1

        record_purge("drafts", removed)
        logger.info("draft_sweep_completed", removed=removed)
        return removed

    async def repair_reservations(self) -> tuple[int, int]:
        """
        Normalize every occupancy collection.
        Returns (collections rewritten, records dropped).
        """
        repaired = dropped = 0
        keys = [key async for key in self.store.scan(self.keys.pattern("occupancy"))]

        for key in keys:
            outcome = {}

            async def normalize(raw: Optional[str]) -> Optional[str]:
                outcome.clear()
                try:
                    items = decode_collection(raw)
                except DataCorruption as e:
                    logger.warning("occupancy_collection_reset", key=key, error=str(e))
                    outcome.update(changed=True, dropped=0)
                    return "[]"

                records = []
                for item in items:
                    try:
                        record = OccupancyRecord.from_dict(item)
                    except DataCorruption as e:
                        logger.warning("occupancy_record_dropped", key=key, error=str(e))
                        continue
                    if not record.order:
                        logger.warning("occupancy_record_dropped", key=key, error="missing order reference")
                        continue
                    records.append(record)

                encoded = encode_collection(records)
                outcome.update(changed=encoded != raw, dropped=len(items) - len(records))
                return encoded

            await self.store.update(key, normalize)
            if outcome.get("changed"):
                repaired += 1
                dropped += outcome["dropped"]

        record_purge("repaired", repaired)
        logger.info("occupancy_repair_completed", repaired=repaired, dropped=dropped)
        return repaired, dropped

    async def rebuild_occupancy(self, resource_id: int) -> int:
        """Rewrite confirmed occupancy of one resource from processed orders given with consent."""
        records = []
        async for order in self.reservations.processed_orders():
            if not order.consent:
                continue
            for line in order.lines:
                if line.resource_id != resource_id:
                    continue
                records.append(
                    OccupancyRecord(
                        start=line.start,
                        end=line.end,
                        quantity=line.quantity,
                        order=order.order_id,
                        tier=line.tier or None,
                        token=line.token or None,
                    )
                )

        records.sort(key=lambda r: (r.start, r.order))
        await self.reservations.replace_confirmed(resource_id, records)
        logger.info("occupancy_rebuilt", resource_id=resource_id, records=len(records))
        return len(records)

    async def run_maintenance(self) -> MaintenanceReport:
        report = MaintenanceReport()
        report.locks_purged = await self.sweep_expired_locks()
        report.drafts_removed = await self.sweep_abandoned_drafts()
        report.collections_repaired, report.records_dropped = await self.repair_reservations()
        logger.info("maintenance_completed", **report.to_dict())
        return report

    # Cart revalidation

    async def revalidate_cart(self, lines: list[CartLine]) -> RevalidationResult:
        """
        For each line: refresh its own lock, re-take a lapsed lock when the
        range is still free, otherwise evict the line from the cart.
        """
        result = RevalidationResult()
        for line in lines:
            if await self.locks.refresh_lock(line.resource_id, line.token):
                result.refreshed.append(line.token)
                continue

            try:
                await self._heal(line)
            except (RangeUnavailable, ResourceNotFound) as e:
                await self._evict(line, e.failing_date, e.message)
                result.evicted.append(EvictedLine(line.token, e.failing_date, e.message))
                continue
            result.healed.append(line.token)

        logger.info(
            "cart_revalidated",
            refreshed=len(result.refreshed),
            healed=len(result.healed),
            evicted=len(result.evicted),
        )
        return result

    async def _heal(self, line: CartLine) -> None:
        async def admit(active: list[Lock]) -> None:
            check = await self.availability.check_range_bookable(
                line.resource_id, line.start, line.end, line.quantity, locks=active
            )
            if not check.bookable:
                raise RangeUnavailable(
                    f"Date no longer available: {check.first_failing_date.strftime('%d/%m/%Y')}",
                    failing_date=check.first_failing_date,
                )

        await self.locks.add_lock(line.resource_id, line.start, line.end, line.token, line.quantity, guard=admit)
        logger.info("lock_self_healed", resource_id=line.resource_id)

    async def _evict(self, line: CartLine, failing_date: Optional[date], message: str) -> None:
        try:
            await self.gateway.remove_from_cart(line.token)
        except BookingError as e:
            # The evicted list in the response still tells the caller to drop the line
            logger.warning("cart_evict_deferred", resource_id=line.resource_id, error=e.code)
        await self.reservations.delete_draft(line.token)
        logger.info(
            "cart_line_evicted",
            resource_id=line.resource_id,
            failing_date=failing_date.isoformat() if failing_date else None,
            reason=message,
        )

