"""
In-process key-value store - no external dependency.
Serializes read-modify-write per key with asyncio locks.

Use when:
- Local development without Redis
- Tests
- A single worker process (state is not shared between processes)
"""

import asyncio
import fnmatch
from collections import defaultdict
from datetime import datetime, timedelta
from typing import AsyncIterator, Callable, Optional

from coworking.infrastructure.store import TTL, KeyValueStore, Mutator, resolve_ttl
from coworking.services.calendar import utcnow


class MemoryStore(KeyValueStore):

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock
        self._data: dict[str, tuple[str, Optional[datetime]]] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _live(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self.clock():
            del self._data[key]
            return None
        return value

    def _write(self, key: str, value: Optional[str], ttl: Optional[int]) -> None:
        if value is None:
            self._data.pop(key, None)
            return
        expires_at = self.clock() + timedelta(seconds=ttl) if ttl else None
        self._data[key] = (value, expires_at)

    async def get(self, key: str) -> Optional[str]:
        return self._live(key)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        self._write(key, value, ttl)

    async def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            if self._live(key) is not None:
                deleted += 1
            self._data.pop(key, None)
        return deleted

    async def update(self, key: str, mutate: Mutator, ttl: TTL = None) -> Optional[str]:
        async with self._locks[key]:
            new_value = await mutate(self._live(key))
            expiry = resolve_ttl(ttl, new_value) if new_value is not None else None
            self._write(key, new_value, expiry)
            return new_value

    async def scan(self, pattern: str) -> AsyncIterator[str]:
        for key in list(self._data):
            if fnmatch.fnmatchcase(key, pattern) and self._live(key) is not None:
                yield key

    async def ping(self) -> bool:
        return True

    async def stats(self) -> dict:
        return {"backend": "memory", "status": "connected", "keys": len(self._data)}
