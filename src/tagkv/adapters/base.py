"""Base protocols for the flat key/value stores tagkv runs on."""

from typing import Any, Protocol, runtime_checkable

from tagkv.types import EntryMetadata


@runtime_checkable
class KeyValueStore(Protocol):
    """Sync key/value store interface.

    TTLs are in seconds; a TTL of 0 means the key never expires.
    """

    def get(self, key: str) -> bytes | None:
        """Get the raw value stored under key."""
        ...

    def set(self, key: str, value: bytes, ttl: int) -> bool:
        """Store a value with a TTL."""
        ...

    def delete(self, key: str) -> bool:
        """Delete a key. Returns False if nothing was deleted."""
        ...

    def touch(self, key: str, extra_ttl: int) -> bool:
        """Extend the remaining TTL of a key."""
        ...

    def metadata(self, key: str) -> EntryMetadata | None:
        """Get size and expiry of a key without loading it."""
        ...

    def flush(self) -> bool:
        """Remove every key owned by this store."""
        ...

    def close(self) -> None:
        """Release the connection to the backend."""
        ...


@runtime_checkable
class AsyncKeyValueStore(Protocol):
    """Async key/value store interface."""

    async def get(self, key: str) -> bytes | None:
        """Get the raw value stored under key."""
        ...

    async def set(self, key: str, value: bytes, ttl: int) -> bool:
        """Store a value with a TTL."""
        ...

    async def delete(self, key: str) -> bool:
        """Delete a key. Returns False if nothing was deleted."""
        ...

    async def touch(self, key: str, extra_ttl: int) -> bool:
        """Extend the remaining TTL of a key."""
        ...

    async def metadata(self, key: str) -> EntryMetadata | None:
        """Get size and expiry of a key without loading it."""
        ...

    async def flush(self) -> bool:
        """Remove every key owned by this store."""
        ...

    async def close(self) -> None:
        """Release the connection to the backend."""
        ...


@runtime_checkable
class CompareAndSwapStore(Protocol):
    """Optional mixin for sync stores with conditional writes.

    Tag sets on stores implementing this are updated with an optimistic
    compare-and-swap loop instead of a plain read-modify-write.
    """

    def gets(self, key: str) -> tuple[bytes, Any] | None:
        """Get a value together with an opaque CAS token."""
        ...

    def cas(self, key: str, value: bytes, ttl: int, token: Any) -> bool:
        """Write only if the key still matches the token from ``gets``."""
        ...

    def add(self, key: str, value: bytes, ttl: int) -> bool:
        """Write only if the key does not exist."""
        ...


@runtime_checkable
class AsyncCompareAndSwapStore(Protocol):
    """Optional mixin for async stores with conditional writes."""

    async def gets(self, key: str) -> tuple[bytes, Any] | None:
        """Get a value together with an opaque CAS token."""
        ...

    async def cas(self, key: str, value: bytes, ttl: int, token: Any) -> bool:
        """Write only if the key still matches the token from ``gets``."""
        ...

    async def add(self, key: str, value: bytes, ttl: int) -> bool:
        """Write only if the key does not exist."""
        ...
