"""
Redis-backed key-value store.

CONCURRENCY STRATEGY: Optimistic Transactions with Retry
========================================================

Problem:
  Two checkouts add a lock to the same desk at the same moment.
  Both read the lock collection [A], both append, both write.
  Result: [A, B] or [A, C], one hold is lost and the desk can be overbooked.

Solution:
  update() runs every read-modify-write as a WATCH/MULTI/EXEC transaction.

  1. WATCH the key
  2. GET the current collection and compute the new one
  3. MULTI; SET key new_value [EX ttl]; EXEC
  4. If EXEC raises WatchError, someone else wrote the key -> retry

  Contention is partitioned per resource (one key per resource), so most
  updates commit on the first attempt.
"""

from typing import AsyncIterator, Optional

import redis.asyncio as redis
from redis.exceptions import WatchError

from coworking.core.errors import StorageConflict
from coworking.core.logging import get_logger
from coworking.core.metrics import storage_retries
from coworking.infrastructure.store import TTL, KeyValueStore, Mutator, resolve_ttl

logger = get_logger(__name__)


class RedisStore(KeyValueStore):

    def __init__(self, client: redis.Redis, max_retries: int = 5):
        self.client = client
        self.max_retries = max_retries

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        if ttl:
            await self.client.set(key, value, ex=ttl)
        else:
            await self.client.set(key, value)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self.client.delete(*keys)

    async def update(self, key: str, mutate: Mutator, ttl: TTL = None) -> Optional[str]:
        async with self.client.pipeline(transaction=True) as pipe:
            for attempt in range(1, self.max_retries + 1):
                try:
                    await pipe.watch(key)
                    current = await pipe.get(key)
                    new_value = await mutate(current)

                    pipe.multi()
                    if new_value is None:
                        pipe.delete(key)
                    else:
                        expiry = resolve_ttl(ttl, new_value)
                        if expiry:
                            pipe.set(key, new_value, ex=expiry)
                        else:
                            pipe.set(key, new_value)
                    await pipe.execute()
                    return new_value
                except WatchError:
                    storage_retries.inc()
                    logger.info("storage_retry", key=key, attempt=attempt, reason="watch_conflict")
                    continue
                finally:
                    await pipe.reset()

        logger.warning("storage_conflict", key=key, attempts=self.max_retries)
        raise StorageConflict("Reservation failed due to high demand. Please try again.")

    async def scan(self, pattern: str) -> AsyncIterator[str]:
        async for key in self.client.scan_iter(match=pattern, count=100):
            yield key

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except redis.RedisError as e:
            logger.error("redis_ping_failed", error=str(e))
            return False

    async def stats(self) -> dict:
        try:
            info = await self.client.info("stats")
            hits = info.get("keyspace_hits", 0)
            misses = info.get("keyspace_misses", 0)
            return {
                "backend": "redis",
                "status": "connected",
                "hits": hits,
                "misses": misses,
                "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
            }
        except redis.RedisError as e:
            return {"backend": "redis", "status": "error", "error": str(e)}
