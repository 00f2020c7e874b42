"""Key/value stores for tagkv."""

from tagkv.adapters.base import (
    AsyncCompareAndSwapStore,
    AsyncKeyValueStore,
    CompareAndSwapStore,
    KeyValueStore,
)
from tagkv.adapters.memory import AsyncMemoryStore, MemoryStore
from tagkv.adapters.redis import AsyncRedisStore, RedisStore

__all__ = [
    "AsyncCompareAndSwapStore",
    "AsyncKeyValueStore",
    "AsyncMemoryStore",
    "AsyncRedisStore",
    "CompareAndSwapStore",
    "KeyValueStore",
    "MemoryStore",
    "RedisStore",
]
