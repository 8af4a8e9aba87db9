"""
Confirmed occupancy, drafts, reservation records and order records.

Confirmed occupancy is written only by finalize and cancel. Appends are
de-duplicated by (order, token), so an order event delivered twice can
never consume capacity twice even if both deliveries race past the
processed flag.
"""

import json
from typing import AsyncIterator, Optional

from coworking.core.logging import get_logger
from coworking.infrastructure.keys import StorageKeys
from coworking.infrastructure.store import KeyValueStore
from coworking.models.occupancy import OccupancyRecord, encode_collection, parse_occupancy
from coworking.models.reservation import DraftReservation, OrderRecord, ReservationRecord

logger = get_logger(__name__)


class ReservationStore:

    def __init__(self, store: KeyValueStore, keys: StorageKeys):
        self.store = store
        self.keys = keys

    # Confirmed occupancy

    async def confirmed(self, resource_id: int) -> list[OccupancyRecord]:
        raw = await self.store.get(self.keys.occupancy(resource_id))
        return parse_occupancy(raw, source=f"occupancy:{resource_id}")

    async def append_confirmed(self, resource_id: int, record: OccupancyRecord) -> bool:
        """Returns False when the same order line was already recorded."""
        appended = []

        async def append(raw: Optional[str]) -> str:
            records = parse_occupancy(raw, source=f"occupancy:{resource_id}")
            duplicate = any(
                r.order == record.order and r.token == record.token
                for r in records
                if record.order
            )
            appended[:] = [not duplicate]
            if duplicate:
                return encode_collection(records)
            return encode_collection(records + [record])

        await self.store.update(self.keys.occupancy(resource_id), append)
        return appended[0]

    async def remove_by_order(self, resource_id: int, order_id: str) -> int:
        removed = []

        async def drop(raw: Optional[str]) -> str:
            records = parse_occupancy(raw, source=f"occupancy:{resource_id}")
            kept = [r for r in records if r.order != order_id]
            removed[:] = [len(records) - len(kept)]
            return encode_collection(kept)

        await self.store.update(self.keys.occupancy(resource_id), drop)
        return removed[0]

    async def replace_confirmed(self, resource_id: int, records: list[OccupancyRecord]) -> None:
        await self.store.set(self.keys.occupancy(resource_id), encode_collection(records))

    # Drafts

    async def save_draft(self, draft: DraftReservation) -> None:
        await self.store.set(self.keys.draft(draft.token), json.dumps(draft.to_dict()))

    async def get_draft(self, token: str) -> Optional[DraftReservation]:
        raw = await self.store.get(self.keys.draft(token))
        if not raw:
            return None
        try:
            return DraftReservation.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("data_corruption", source="draft", error=str(e))
            return None

    async def delete_draft(self, token: str) -> None:
        await self.store.delete(self.keys.draft(token))

    async def draft_keys(self) -> AsyncIterator[str]:
        async for key in self.store.scan(self.keys.pattern("draft")):
            yield key

    # Reservation records

    async def save_reservation(self, record: ReservationRecord) -> None:
        await self.store.set(self.keys.reservation(record.token), json.dumps(record.to_dict()))

    async def get_reservation(self, token: str) -> Optional[dict]:
        raw = await self.store.get(self.keys.reservation(token))
        return json.loads(raw) if raw else None

    async def delete_reservation(self, token: str) -> None:
        await self.store.delete(self.keys.reservation(token))

    # Orders

    async def get_order(self, order_id: str) -> Optional[OrderRecord]:
        raw = await self.store.get(self.keys.order(order_id))
        if not raw:
            return None
        try:
            return OrderRecord.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("data_corruption", source="order", order_id=order_id, error=str(e))
            return None

    async def save_order(self, order: OrderRecord) -> None:
        await self.store.set(self.keys.order(order.order_id), json.dumps(order.to_dict()))

    async def processed_orders(self) -> AsyncIterator[OrderRecord]:
        async for key in self.store.scan(self.keys.pattern("order")):
            order = await self.get_order(self.keys.suffix_from(key, "order"))
            if order and order.processed:
                yield order
