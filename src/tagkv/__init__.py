"""tagkv - Tag-based invalidation for flat key/value caches."""

# Stores
from tagkv.adapters import (
    AsyncCompareAndSwapStore,
    AsyncKeyValueStore,
    AsyncMemoryStore,
    AsyncRedisStore,
    CompareAndSwapStore,
    KeyValueStore,
    MemoryStore,
    RedisStore,
)

# Clients
from tagkv.async_client import AsyncTaggedCache
from tagkv.client import TaggedCache

# Duration parsing
from tagkv.duration import parse_duration

# Errors
from tagkv.errors import StoreUnavailableError, TagKVError, TagSetDecodeError

# Building blocks
from tagkv.keys import KeyNormalizer
from tagkv.tag_store import AsyncTagStore, TagStore

# Core types
from tagkv.types import (
    CacheConfig,
    CleaningMode,
    Duration,
    EntryMetadata,
    MatchMode,
)

__version__ = "0.1.0"

__all__ = [
    "AsyncCompareAndSwapStore",
    "AsyncKeyValueStore",
    "AsyncMemoryStore",
    "AsyncRedisStore",
    "AsyncTagStore",
    "AsyncTaggedCache",
    "CacheConfig",
    "CleaningMode",
    "CompareAndSwapStore",
    "Duration",
    "EntryMetadata",
    "KeyNormalizer",
    "KeyValueStore",
    "MatchMode",
    "MemoryStore",
    "RedisStore",
    "StoreUnavailableError",
    "TagKVError",
    "TagSetDecodeError",
    "TagStore",
    "TaggedCache",
    "parse_duration",
]
