"""Redis key/value stores."""

from __future__ import annotations

import re
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import redis.exceptions

from tagkv.errors import StoreUnavailableError
from tagkv.types import EntryMetadata

# Swap the value only if it still equals the one read by gets().
_CAS_SCRIPT = """
if redis.call('GET', KEYS[1]) ~= ARGV[1] then
  return 0
end
if tonumber(ARGV[3]) > 0 then
  redis.call('SET', KEYS[1], ARGV[2], 'EX', ARGV[3])
else
  redis.call('SET', KEYS[1], ARGV[2])
end
return 1
"""

_GLOB_SPECIALS = re.compile(r"([*?\[\]\\])")


def _escape_glob(text: str) -> str:
    """Escape characters SCAN MATCH would treat as wildcards."""
    return _GLOB_SPECIALS.sub(r"\\\1", text)


@contextmanager
def _unavailable_on_connection_errors() -> Iterator[None]:
    """Re-raise connection failures as StoreUnavailableError."""
    try:
        yield
    except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError) as e:
        raise StoreUnavailableError(str(e)) from e


def _metadata(size: int, remaining: int) -> EntryMetadata | None:
    """Build metadata from STRLEN and TTL replies."""
    if remaining == -2:  # Missing key
        return None
    expires_at = time.time() + remaining if remaining >= 0 else None
    return EntryMetadata(size=size, expires_at=expires_at)


class RedisStore:
    """Sync Redis store with compare-and-swap support."""

    def __init__(
        self,
        client: Any,  # redis.Redis, decode_responses=False
        *,
        namespace: str = "tagkv",
    ) -> None:
        self._client = client
        self._namespace = namespace
        self._cas_script = client.register_script(_CAS_SCRIPT)

    def _key(self, key: str) -> str:
        """Generate full Redis key."""
        return f"{self._namespace}:{key}"

    def get(self, key: str) -> bytes | None:
        """Get the raw value stored under key."""
        with _unavailable_on_connection_errors():
            data: bytes | None = self._client.get(self._key(key))
        return data

    def set(self, key: str, value: bytes, ttl: int) -> bool:
        """Store a value with a TTL (0 = never expires)."""
        with _unavailable_on_connection_errors():
            return bool(self._client.set(self._key(key), value, ex=ttl or None))

    def delete(self, key: str) -> bool:
        """Delete a key."""
        with _unavailable_on_connection_errors():
            return self._client.delete(self._key(key)) > 0

    def touch(self, key: str, extra_ttl: int) -> bool:
        """Extend the remaining TTL of a key."""
        full_key = self._key(key)
        with _unavailable_on_connection_errors():
            remaining = self._client.ttl(full_key)
            if remaining == -2:
                return False
            if remaining == -1:  # Persistent keys stay persistent
                return True
            return bool(self._client.expire(full_key, remaining + extra_ttl))

    def metadata(self, key: str) -> EntryMetadata | None:
        """Get size and expiry of a key."""
        full_key = self._key(key)
        with _unavailable_on_connection_errors():
            pipe = self._client.pipeline(transaction=False)
            pipe.strlen(full_key)
            pipe.ttl(full_key)
            size, remaining = pipe.execute()
        return _metadata(size, remaining)

    def gets(self, key: str) -> tuple[bytes, bytes] | None:
        """Get a value; the value itself is the CAS token."""
        data = self.get(key)
        if data is None:
            return None
        return data, data

    def cas(self, key: str, value: bytes, ttl: int, token: bytes) -> bool:
        """Write if the key still holds ``token``."""
        with _unavailable_on_connection_errors():
            result = self._cas_script(keys=[self._key(key)], args=[token, value, ttl])
        return bool(result)

    def add(self, key: str, value: bytes, ttl: int) -> bool:
        """Write if the key does not exist."""
        with _unavailable_on_connection_errors():
            return bool(
                self._client.set(self._key(key), value, ex=ttl or None, nx=True)
            )

    def flush(self) -> bool:
        """Delete every key under this store's namespace."""
        # Use SCAN to find and delete all namespaced keys
        cursor = 0
        pattern = f"{_escape_glob(self._namespace)}:*"
        with _unavailable_on_connection_errors():
            while True:
                cursor, keys = self._client.scan(cursor, match=pattern, count=100)
                if keys:
                    self._client.delete(*keys)
                if cursor == 0:
                    break
        return True

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()


class AsyncRedisStore:
    """Async Redis store with compare-and-swap support."""

    def __init__(
        self,
        client: Any,  # redis.asyncio.Redis, decode_responses=False
        *,
        namespace: str = "tagkv",
    ) -> None:
        self._client = client
        self._namespace = namespace
        self._cas_script = client.register_script(_CAS_SCRIPT)

    def _key(self, key: str) -> str:
        """Generate full Redis key."""
        return f"{self._namespace}:{key}"

    async def get(self, key: str) -> bytes | None:
        """Get the raw value stored under key."""
        with _unavailable_on_connection_errors():
            data: bytes | None = await self._client.get(self._key(key))
        return data

    async def set(self, key: str, value: bytes, ttl: int) -> bool:
        """Store a value with a TTL (0 = never expires)."""
        with _unavailable_on_connection_errors():
            return bool(await self._client.set(self._key(key), value, ex=ttl or None))

    async def delete(self, key: str) -> bool:
        """Delete a key."""
        with _unavailable_on_connection_errors():
            return await self._client.delete(self._key(key)) > 0

    async def touch(self, key: str, extra_ttl: int) -> bool:
        """Extend the remaining TTL of a key."""
        full_key = self._key(key)
        with _unavailable_on_connection_errors():
            remaining = await self._client.ttl(full_key)
            if remaining == -2:
                return False
            if remaining == -1:  # Persistent keys stay persistent
                return True
            return bool(await self._client.expire(full_key, remaining + extra_ttl))

    async def metadata(self, key: str) -> EntryMetadata | None:
        """Get size and expiry of a key."""
        full_key = self._key(key)
        with _unavailable_on_connection_errors():
            async with self._client.pipeline(transaction=False) as pipe:
                pipe.strlen(full_key)
                pipe.ttl(full_key)
                size, remaining = await pipe.execute()
        return _metadata(size, remaining)

    async def gets(self, key: str) -> tuple[bytes, bytes] | None:
        """Get a value; the value itself is the CAS token."""
        data = await self.get(key)
        if data is None:
            return None
        return data, data

    async def cas(self, key: str, value: bytes, ttl: int, token: bytes) -> bool:
        """Write if the key still holds ``token``."""
        with _unavailable_on_connection_errors():
            result = await self._cas_script(
                keys=[self._key(key)], args=[token, value, ttl]
            )
        return bool(result)

    async def add(self, key: str, value: bytes, ttl: int) -> bool:
        """Write if the key does not exist."""
        with _unavailable_on_connection_errors():
            return bool(
                await self._client.set(self._key(key), value, ex=ttl or None, nx=True)
            )

    async def flush(self) -> bool:
        """Delete every key under this store's namespace."""
        # Use SCAN to find and delete all namespaced keys
        cursor: int = 0
        pattern = f"{_escape_glob(self._namespace)}:*"
        with _unavailable_on_connection_errors():
            while True:
                result = await self._client.scan(cursor, match=pattern, count=100)
                cursor = result[0]
                keys = result[1]
                if keys:
                    await self._client.delete(*keys)
                if cursor == 0:
                    break
        return True

    async def close(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()
