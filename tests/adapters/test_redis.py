"""Integration tests for Redis stores using testcontainers."""

import pytest

# Skip all tests if redis or testcontainers are not installed
pytest.importorskip("redis")
pytest.importorskip("testcontainers")

import redis
import redis.asyncio
from testcontainers.redis import RedisContainer

from tagkv import (
    AsyncRedisStore,
    AsyncTaggedCache,
    CacheConfig,
    MatchMode,
    RedisStore,
    StoreUnavailableError,
    TaggedCache,
)
from tagkv.adapters.redis import _escape_glob


@pytest.fixture(scope="module")
def redis_container():
    """Start a Redis container for the test module."""
    with RedisContainer() as container:
        yield container


@pytest.fixture
def redis_client(redis_container):
    """Create a sync Redis client."""
    client = redis.Redis(
        host=redis_container.get_container_host_ip(),
        port=redis_container.get_exposed_port(6379),
        decode_responses=False,
    )
    yield client
    client.flushdb()
    client.close()


@pytest.fixture
async def async_redis_client(redis_container):
    """Create an async Redis client."""
    client = redis.asyncio.Redis(
        host=redis_container.get_container_host_ip(),
        port=redis_container.get_exposed_port(6379),
        decode_responses=False,
    )
    yield client
    await client.flushdb()
    await client.aclose()


@pytest.fixture
def redis_store(redis_client) -> RedisStore:
    """Create a RedisStore with a test namespace."""
    return RedisStore(redis_client, namespace="test")


@pytest.fixture
def async_redis_store(async_redis_client) -> AsyncRedisStore:
    """Create an AsyncRedisStore with a test namespace."""
    return AsyncRedisStore(async_redis_client, namespace="test")


class TestRedisStore:
    """Integration tests for sync RedisStore."""

    def test_get_nonexistent_returns_none(self, redis_store: RedisStore) -> None:
        """Test that getting a nonexistent key returns None."""
        assert redis_store.get("nonexistent") is None
        assert redis_store.metadata("nonexistent") is None

    def test_set_get_delete(self, redis_store: RedisStore, redis_client) -> None:
        """Test the basic key lifecycle under the namespace."""
        assert redis_store.set("key1", b"value", 60) is True
        assert redis_store.get("key1") == b"value"
        assert redis_client.get("test:key1") == b"value"
        assert redis_store.delete("key1") is True
        assert redis_store.delete("key1") is False

    def test_metadata_and_touch(self, redis_store: RedisStore, redis_client) -> None:
        """Test size reporting and TTL extension."""
        redis_store.set("key1", b"12345", 60)
        metadata = redis_store.metadata("key1")
        assert metadata is not None
        assert metadata.size == 5
        assert metadata.expires_at is not None

        assert redis_store.touch("key1", 100) is True
        assert redis_client.ttl("test:key1") > 60
        assert redis_store.touch("nonexistent", 100) is False

    def test_persistent_key(self, redis_store: RedisStore) -> None:
        """Test that a zero TTL stores without expiry."""
        redis_store.set("key1", b"value", 0)
        assert redis_store.metadata("key1").expires_at is None
        assert redis_store.touch("key1", 10) is True
        assert redis_store.metadata("key1").expires_at is None

    def test_compare_and_swap(self, redis_store: RedisStore) -> None:
        """Test conditional writes through the Lua script."""
        assert redis_store.add("key1", b"v1", 60) is True
        assert redis_store.add("key1", b"v1", 60) is False

        _, token = redis_store.gets("key1")
        assert redis_store.cas("key1", b"v2", 60, token) is True
        assert redis_store.cas("key1", b"v3", 60, token) is False
        assert redis_store.get("key1") == b"v2"

    def test_flush_only_touches_namespace(
        self, redis_store: RedisStore, redis_client
    ) -> None:
        """Test that flush leaves foreign keys alone."""
        redis_store.set("key1", b"value", 60)
        redis_client.set("other:key", b"value")
        redis_store.flush()
        assert redis_store.get("key1") is None
        assert redis_client.get("other:key") == b"value"

    def test_flush_escapes_glob_namespace(self, redis_client) -> None:
        """Test that wildcard characters in the namespace match literally."""
        store = RedisStore(redis_client, namespace="t*")
        store.set("key1", b"value", 60)
        redis_client.set("tx:key", b"value")
        redis_client.set("t?:key", b"value")

        store.flush()
        assert store.get("key1") is None
        assert redis_client.get("tx:key") == b"value"
        assert redis_client.get("t?:key") == b"value"

    def test_tagged_cache_round_trip(self, redis_store: RedisStore) -> None:
        """Test tagging and invalidation on a real Redis."""
        cache = TaggedCache(redis_store, CacheConfig(prefix="app_"))
        cache.save(b"one", "i1", tags=["a"])
        cache.save(b"two", "i2", tags=["b"])
        cache.save(b"three", "i3", tags=["a", "b"])

        assert cache.ids_matching_all_tags(["a", "b"]) == {"i3"}
        assert cache.invalidate(MatchMode.ALL, ["a", "b"]) == 1
        assert cache.load("i3") is None
        assert cache.ids_matching_any_tags(["a", "b"]) == {"i1", "i2"}

    def test_unreachable_server(self) -> None:
        """Test that connection failures surface as StoreUnavailableError."""
        client = redis.Redis(host="127.0.0.1", port=1, socket_connect_timeout=0.1)
        store = RedisStore(client)
        with pytest.raises(StoreUnavailableError):
            store.get("key1")


class TestEscapeGlob:
    """Tests for SCAN pattern escaping."""

    def test_special_characters_escaped(self) -> None:
        """Test that glob metacharacters get a backslash."""
        assert _escape_glob("a*b?c[d]e\\f") == "a\\*b\\?c\\[d\\]e\\\\f"

    def test_plain_namespace_unchanged(self) -> None:
        """Test that ordinary namespaces pass through."""
        assert _escape_glob("tagkv") == "tagkv"


class TestAsyncRedisStore:
    """Integration tests for AsyncRedisStore."""

    async def test_set_get_delete(self, async_redis_store: AsyncRedisStore) -> None:
        """Test the basic key lifecycle."""
        assert await async_redis_store.get("key1") is None
        assert await async_redis_store.set("key1", b"value", 60) is True
        assert await async_redis_store.get("key1") == b"value"
        assert await async_redis_store.delete("key1") is True

    async def test_metadata(self, async_redis_store: AsyncRedisStore) -> None:
        """Test size and expiry reporting through a pipeline."""
        await async_redis_store.set("key1", b"12345", 60)
        metadata = await async_redis_store.metadata("key1")
        assert metadata is not None
        assert metadata.size == 5
        assert await async_redis_store.touch("key1", 60) is True

    async def test_compare_and_swap(self, async_redis_store: AsyncRedisStore) -> None:
        """Test conditional writes through the Lua script."""
        assert await async_redis_store.add("key1", b"v1", 60) is True
        _, token = await async_redis_store.gets("key1")
        await async_redis_store.set("key1", b"racer", 60)
        assert await async_redis_store.cas("key1", b"v2", 60, token) is False
        assert await async_redis_store.get("key1") == b"racer"

    async def test_tagged_cache_round_trip(
        self, async_redis_store: AsyncRedisStore
    ) -> None:
        """Test tagging and invalidation on a real Redis."""
        cache = AsyncTaggedCache(async_redis_store)
        await cache.save(b"one", "i1", tags=["a"])
        await cache.save(b"three", "i3", tags=["a", "b"])
        assert await cache.invalidate(MatchMode.ANY, ["b"]) == 1
        assert await cache.ids_matching_any_tags(["a"]) == {"i1"}
        await cache.clean()
        assert await cache.load("i1") is None
