"""In-memory key/value stores."""

import asyncio
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from tagkv.types import EntryMetadata


@dataclass(slots=True)
class _Item:
    value: bytes
    expires_at: float | None
    version: int


class _Table:
    """Unlocked storage shared by the sync and async stores."""

    def __init__(self, clock: Callable[[], float]) -> None:
        self._items: dict[str, _Item] = {}
        self._clock = clock
        self._version = 0

    def _expiry(self, ttl: int) -> float | None:
        return self._clock() + ttl if ttl > 0 else None

    def lookup(self, key: str) -> _Item | None:
        item = self._items.get(key)
        if item is None:
            return None
        if item.expires_at is not None and item.expires_at <= self._clock():
            del self._items[key]  # Lazy expiry
            return None
        return item

    def store(self, key: str, value: bytes, ttl: int) -> None:
        self._version += 1
        self._items[key] = _Item(bytes(value), self._expiry(ttl), self._version)

    def delete(self, key: str) -> bool:
        if self.lookup(key) is None:
            return False
        del self._items[key]
        return True

    def touch(self, key: str, extra_ttl: int) -> bool:
        item = self.lookup(key)
        if item is None:
            return False
        if item.expires_at is not None:
            item.expires_at += extra_ttl
        return True

    def metadata(self, key: str) -> EntryMetadata | None:
        item = self.lookup(key)
        if item is None:
            return None
        return EntryMetadata(size=len(item.value), expires_at=item.expires_at)

    def cas(self, key: str, value: bytes, ttl: int, token: int) -> bool:
        item = self.lookup(key)
        if item is None or item.version != token:
            return False
        self.store(key, value, ttl)
        return True

    def add(self, key: str, value: bytes, ttl: int) -> bool:
        if self.lookup(key) is not None:
            return False
        self.store(key, value, ttl)
        return True

    def clear(self) -> None:
        self._items.clear()


class MemoryStore:
    """Thread-safe in-memory store with TTLs and compare-and-swap."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._table = _Table(clock)
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        """Get the raw value stored under key."""
        with self._lock:
            item = self._table.lookup(key)
            return item.value if item else None

    def set(self, key: str, value: bytes, ttl: int) -> bool:
        """Store a value with a TTL (0 = never expires)."""
        with self._lock:
            self._table.store(key, value, ttl)
            return True

    def delete(self, key: str) -> bool:
        """Delete a key."""
        with self._lock:
            return self._table.delete(key)

    def touch(self, key: str, extra_ttl: int) -> bool:
        """Extend the remaining TTL of a key."""
        with self._lock:
            return self._table.touch(key, extra_ttl)

    def metadata(self, key: str) -> EntryMetadata | None:
        """Get size and expiry of a key."""
        with self._lock:
            return self._table.metadata(key)

    def gets(self, key: str) -> tuple[bytes, int] | None:
        """Get a value and its version token."""
        with self._lock:
            item = self._table.lookup(key)
            return (item.value, item.version) if item else None

    def cas(self, key: str, value: bytes, ttl: int, token: int) -> bool:
        """Write if the key is still at the version returned by ``gets``."""
        with self._lock:
            return self._table.cas(key, value, ttl, token)

    def add(self, key: str, value: bytes, ttl: int) -> bool:
        """Write if the key does not exist."""
        with self._lock:
            return self._table.add(key, value, ttl)

    def flush(self) -> bool:
        """Remove every key."""
        with self._lock:
            self._table.clear()
            return True

    def close(self) -> None:
        """Close the store (no-op for memory)."""
        pass


class AsyncMemoryStore:
    """Async in-memory store with TTLs and compare-and-swap."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._table = _Table(clock)
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> bytes | None:
        """Get the raw value stored under key."""
        async with self._lock:
            item = self._table.lookup(key)
            return item.value if item else None

    async def set(self, key: str, value: bytes, ttl: int) -> bool:
        """Store a value with a TTL (0 = never expires)."""
        async with self._lock:
            self._table.store(key, value, ttl)
            return True

    async def delete(self, key: str) -> bool:
        """Delete a key."""
        async with self._lock:
            return self._table.delete(key)

    async def touch(self, key: str, extra_ttl: int) -> bool:
        """Extend the remaining TTL of a key."""
        async with self._lock:
            return self._table.touch(key, extra_ttl)

    async def metadata(self, key: str) -> EntryMetadata | None:
        """Get size and expiry of a key."""
        async with self._lock:
            return self._table.metadata(key)

    async def gets(self, key: str) -> tuple[bytes, int] | None:
        """Get a value and its version token."""
        async with self._lock:
            item = self._table.lookup(key)
            return (item.value, item.version) if item else None

    async def cas(self, key: str, value: bytes, ttl: int, token: int) -> bool:
        """Write if the key is still at the version returned by ``gets``."""
        async with self._lock:
            return self._table.cas(key, value, ttl, token)

    async def add(self, key: str, value: bytes, ttl: int) -> bool:
        """Write if the key does not exist."""
        async with self._lock:
            return self._table.add(key, value, ttl)

    async def flush(self) -> bool:
        """Remove every key."""
        async with self._lock:
            self._table.clear()
            return True

    async def close(self) -> None:
        """Close the store (no-op for memory)."""
        pass
