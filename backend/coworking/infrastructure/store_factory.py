"""
Storage backend factory.
Configures which key-value store the services run on.
"""

from typing import Optional

from coworking.core.config import get_settings
from coworking.infrastructure.memory_store import MemoryStore
from coworking.infrastructure.order_gateway import HttpOrderGateway, OrderGateway
from coworking.infrastructure.redis_client import close_redis, get_redis
from coworking.infrastructure.redis_store import RedisStore
from coworking.infrastructure.store import KeyValueStore


def create_store() -> KeyValueStore:
    """
    Backend selection via STORAGE_BACKEND:
    - redis: shared state across workers (production)
    - memory: single process only (development)
    """
    settings = get_settings()

    if settings.STORAGE_BACKEND == "memory":
        return MemoryStore()
    return RedisStore(get_redis(), max_retries=settings.STORAGE_MAX_RETRIES)


# Singleton instances
_store: Optional[KeyValueStore] = None
_gateway: Optional[OrderGateway] = None


def get_store() -> KeyValueStore:
    """Get storage singleton."""
    global _store
    if _store is None:
        _store = create_store()
    return _store


def get_order_gateway() -> OrderGateway:
    """Get order system client singleton."""
    global _gateway
    if _gateway is None:
        _gateway = HttpOrderGateway(get_settings())
    return _gateway


async def close_infrastructure() -> None:
    global _store, _gateway
    if _gateway is not None:
        await _gateway.close()
        _gateway = None
    if isinstance(_store, RedisStore):
        await close_redis()
    _store = None
