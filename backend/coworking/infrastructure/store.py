"""
Key-value storage interface.
Allows swapping persistence technology without changing business logic.

The core only needs point reads/writes, TTL-bounded keys, pattern scans and
one atomic primitive: update(), a read-modify-write on a single key that
never loses a concurrent update.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Awaitable, Callable, Optional, Union

# Receives the current raw value (None when absent) and returns the new
# raw value, or None to delete the key.
Mutator = Callable[[Optional[str]], Awaitable[Optional[str]]]

# Seconds, or a function of the value being written for keys whose expiry
# depends on their content.
TTL = Union[int, Callable[[str], int], None]


def resolve_ttl(ttl: TTL, value: str) -> Optional[int]:
    return ttl(value) if callable(ttl) else ttl


class KeyValueStore(ABC):
    """
    Interface for storage backends.

    Implementations:
    - RedisStore: WATCH/MULTI optimistic transactions (production)
    - MemoryStore: per-key asyncio locks (development, tests)
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Store value; ttl in seconds, None for no expiry."""
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        pass

    @abstractmethod
    async def update(self, key: str, mutate: Mutator, ttl: TTL = None) -> Optional[str]:
        """
        Atomically replace the value under key with mutate(current).

        Exceptions raised by mutate abort the update and propagate
        unchanged. Returns the value written.
        """
        pass

    @abstractmethod
    def scan(self, pattern: str) -> AsyncIterator[str]:
        """Iterate keys matching a glob pattern."""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        pass

    @abstractmethod
    async def stats(self) -> dict:
        pass

    async def close(self) -> None:
        pass
