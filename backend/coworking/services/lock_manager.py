"""
Lock manager: short-lived, resource-scoped holds for in-progress checkouts.

CONCURRENCY STRATEGY
====================

Every mutation of a resource's lock collection is a single
store.update() call: prune expired, apply the change, persist. The store
guarantees the read-modify-write is atomic per key (WATCH/MULTI on Redis,
a per-key mutex in memory), so two concurrent add_lock calls can never
lose an update.

Admission control runs inside that same atomic section: add_lock accepts
a guard that sees the freshly read active locks and may raise to abort.
Checking availability and appending the hold are therefore one step.

Expiry:
  Locks are never explicitly deleted when they time out. Every read path
  filters on expires_at > now. The storage TTL only exists so abandoned
  collections eventually vanish, and it always covers the latest
  expires_at in the collection: a policy change (capacity resynced from 1
  to 3) must never let the store evict a hold that is still active.
"""

import math
from datetime import date, datetime
from typing import Awaitable, Callable, Optional

from coworking.core.config import Settings
from coworking.core.errors import DataCorruption
from coworking.core.logging import get_logger
from coworking.core.metrics import record_lock_operation
from coworking.infrastructure.keys import StorageKeys
from coworking.infrastructure.store import KeyValueStore
from coworking.models.occupancy import Lock, decode_collection, encode_collection, parse_locks
from coworking.models.resource import LockPolicy
from coworking.services.calendar import utcnow
from coworking.services.resource_repository import ResourceRepository

logger = get_logger(__name__)

LockGuard = Callable[[list[Lock]], Awaitable[None]]


class LockManager:

    def __init__(
        self,
        store: KeyValueStore,
        keys: StorageKeys,
        resources: ResourceRepository,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.keys = keys
        self.resources = resources
        self.settings = settings
        self.clock = clock

    def _now(self) -> float:
        return self.clock().timestamp()

    async def policy(self, resource_id: int) -> LockPolicy:
        """Recomputed on every operation from the authoritative capacity."""
        capacity = await self.resources.capacity_of(resource_id)
        return LockPolicy.for_capacity(capacity, self.settings)

    def _active(self, raw: Optional[str], resource_id: int, now: float) -> list[Lock]:
        locks = parse_locks(raw, source=f"locks:{resource_id}")
        return [lock for lock in locks if lock.is_active(now)]

    def _ttl(self, policy: LockPolicy) -> Callable[[str], int]:
        """Storage TTL for a written collection: never shorter than its longest-lived lock."""

        def ttl(value: str) -> int:
            locks = parse_locks(value, source="locks")
            if not locks:
                return policy.duration_seconds
            latest = max(lock.expires_at for lock in locks)
            return max(policy.duration_seconds, math.ceil(latest - self._now()))

        return ttl

    async def active_locks(self, resource_id: int) -> list[Lock]:
        """All unexpired locks. Read-only: nothing is pruned from storage."""
        raw = await self.store.get(self.keys.locks(resource_id))
        return self._active(raw, resource_id, self._now())

    async def add_lock(
        self,
        resource_id: int,
        start: date,
        end: date,
        token: str,
        quantity: int = 1,
        guard: Optional[LockGuard] = None,
    ) -> Lock:
        """
        Prune expired locks and append a new hold.

        If guard is given it is awaited with the active locks inside the
        atomic section; an exception from it aborts without writing.
        """
        policy = await self.policy(resource_id)
        created: list[Lock] = []

        async def append(raw: Optional[str]) -> str:
            now = self._now()
            locks = self._active(raw, resource_id, now)
            if guard is not None:
                await guard(locks)
            lock = Lock(
                start=start,
                end=end,
                quantity=quantity,
                token=token,
                expires_at=now + policy.duration_seconds,
                lock_type=policy.lock_type,
            )
            created[:] = [lock]
            return encode_collection(locks + [lock])

        await self.store.update(self.keys.locks(resource_id), append, ttl=self._ttl(policy))
        record_lock_operation("add")

        lock = created[0]
        logger.info(
            "lock_added",
            resource_id=resource_id,
            start=lock.start.isoformat(),
            end=lock.end.isoformat(),
            lock_type=lock.lock_type,
            ttl_seconds=policy.duration_seconds,
        )
        return lock

    async def remove_lock_by_token(self, resource_id: int, token: str) -> bool:
        """Idempotent: removing an unknown token is a no-op. Returns whether a lock was removed."""
        policy = await self.policy(resource_id)
        removed = []

        async def drop(raw: Optional[str]) -> str:
            locks = self._active(raw, resource_id, self._now())
            kept = [lock for lock in locks if lock.token != token]
            removed[:] = [len(kept) != len(locks)]
            return encode_collection(kept)

        await self.store.update(self.keys.locks(resource_id), drop, ttl=self._ttl(policy))
        record_lock_operation("remove")

        logger.info("lock_removed", resource_id=resource_id, found=removed[0])
        return removed[0]

    async def refresh_lock(self, resource_id: int, token: str) -> Optional[Lock]:
        """Extend an active lock to now + policy. Returns None if the lock is gone."""
        policy = await self.policy(resource_id)
        refreshed: list[Lock] = []

        async def extend(raw: Optional[str]) -> str:
            now = self._now()
            locks = self._active(raw, resource_id, now)
            refreshed.clear()
            for lock in locks:
                if lock.token == token:
                    lock.expires_at = now + policy.duration_seconds
                    lock.lock_type = policy.lock_type
                    refreshed.append(lock)
            return encode_collection(locks)

        await self.store.update(self.keys.locks(resource_id), extend, ttl=self._ttl(policy))
        if refreshed:
            record_lock_operation("refresh")
            logger.info("lock_refreshed", resource_id=resource_id, ttl_seconds=policy.duration_seconds)
        return refreshed[0] if refreshed else None

    async def purge_expired(self, resource_id: int) -> int:
        """
        Physically drop expired locks; delete the collection once empty.
        Returns the number of locks purged.
        """
        policy = await self.policy(resource_id)
        purged = []

        async def prune(raw: Optional[str]) -> Optional[str]:
            stored = parse_locks(raw, source=f"locks:{resource_id}")
            try:
                total = len(decode_collection(raw))
            except DataCorruption:
                total = 1
            locks = [lock for lock in stored if lock.is_active(self._now())]
            purged[:] = [max(total, len(stored)) - len(locks)]
            return encode_collection(locks) if locks else None

        await self.store.update(self.keys.locks(resource_id), prune, ttl=self._ttl(policy))
        if purged[0]:
            record_lock_operation("purge")
            logger.info("locks_purged", resource_id=resource_id, count=purged[0])
        return purged[0]
