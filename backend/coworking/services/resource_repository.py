"""
Resource records and manual blocks.

Resources are owned by external resource management and pushed in through
the catalogue-sync route; the core only reads them. Manual blocks are kept
under their own key as free-text lines so operators can edit them without
touching the catalogue record.
"""

import json
from datetime import date
from typing import Optional

from coworking.core.config import Settings
from coworking.core.errors import ResourceNotFound
from coworking.core.logging import get_logger
from coworking.infrastructure.keys import StorageKeys
from coworking.infrastructure.store import KeyValueStore
from coworking.models.occupancy import ManualBlock, parse_manual_blocks
from coworking.models.resource import Resource, resolve_capacity

logger = get_logger(__name__)


class ResourceRepository:

    def __init__(self, store: KeyValueStore, keys: StorageKeys, settings: Settings):
        self.store = store
        self.keys = keys
        self.settings = settings

    async def _record(self, resource_id: int) -> Optional[dict]:
        raw = await self.store.get(self.keys.resource(resource_id))
        if not raw:
            return None
        try:
            record = json.loads(raw)
        except ValueError:
            logger.warning("data_corruption", source="resource", resource_id=resource_id)
            return None
        return record if isinstance(record, dict) else None

    async def get(self, resource_id: int) -> Resource:
        """Load a resource with capacity resolved fresh. Raises ResourceNotFound."""
        record = await self._record(resource_id)
        if record is None:
            raise ResourceNotFound(f"Resource {resource_id} not found")
        blocks = await self.manual_blocks(resource_id)
        return Resource.from_record(
            resource_id,
            record,
            self.settings.DEFAULT_CAPACITY,
            manual_blocks={b.day for b in blocks},
        )

    async def capacity_of(self, resource_id: int) -> int:
        """Capacity for lock policy purposes; unknown resources get the default."""
        record = await self._record(resource_id) or {}
        return resolve_capacity(record.get("capacity"), self.settings.DEFAULT_CAPACITY)

    async def save(self, resource_id: int, title: str, capacity: Optional[int], prices: dict) -> Resource:
        record = {"title": title, "capacity": capacity, "prices": prices}
        await self.store.set(self.keys.resource(resource_id), json.dumps(record))
        logger.info("resource_synced", resource_id=resource_id, capacity=capacity)
        return await self.get(resource_id)

    async def manual_blocks(self, resource_id: int) -> list[ManualBlock]:
        return parse_manual_blocks(await self.store.get(self.keys.blocks(resource_id)))

    async def replace_blocks(self, resource_id: int, lines: list[str]) -> list[ManualBlock]:
        text = "\n".join(line.strip() for line in lines if line.strip())
        await self.store.set(self.keys.blocks(resource_id), text)
        return parse_manual_blocks(text)

    async def add_block(self, resource_id: int, day: date, reason: str = "") -> list[ManualBlock]:
        line = day.isoformat() + (f" # {reason.strip()}" if reason.strip() else "")

        async def append(current: Optional[str]) -> str:
            return "\n".join(filter(None, [(current or "").strip(), line]))

        text = await self.store.update(self.keys.blocks(resource_id), append)
        logger.info("manual_block_added", resource_id=resource_id, date=day.isoformat())
        return parse_manual_blocks(text)

    async def remove_block(self, resource_id: int, day: date) -> list[ManualBlock]:
        """Removes every line blocking the date; free-text lines are kept."""

        async def drop(current: Optional[str]) -> str:
            kept = []
            for line in (current or "").splitlines():
                blocked = parse_manual_blocks(line)
                if blocked and blocked[0].day == day:
                    continue
                kept.append(line)
            return "\n".join(kept)

        text = await self.store.update(self.keys.blocks(resource_id), drop)
        logger.info("manual_block_removed", resource_id=resource_id, date=day.isoformat())
        return parse_manual_blocks(text)
