"""Shared pytest fixtures."""

import pytest

from tagkv import (
    AsyncMemoryStore,
    AsyncTaggedCache,
    CacheConfig,
    EntryMetadata,
    MemoryStore,
    TaggedCache,
)


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingStore:
    """Plain key/value store (no compare-and-swap) that records writes."""

    def __init__(self, inner: MemoryStore | None = None) -> None:
        self.inner = inner or MemoryStore()
        self.writes: list[tuple[str, bytes, int]] = []
        self.failing_deletes: set[str] = set()
        self.failing_sets: set[str] = set()

    def get(self, key: str) -> bytes | None:
        return self.inner.get(key)

    def set(self, key: str, value: bytes, ttl: int) -> bool:
        self.writes.append((key, value, ttl))
        if key in self.failing_sets:
            return False
        return self.inner.set(key, value, ttl)

    def delete(self, key: str) -> bool:
        if key in self.failing_deletes:
            return False
        return self.inner.delete(key)

    def touch(self, key: str, extra_ttl: int) -> bool:
        return self.inner.touch(key, extra_ttl)

    def metadata(self, key: str) -> EntryMetadata | None:
        return self.inner.metadata(key)

    def flush(self) -> bool:
        return self.inner.flush()

    def close(self) -> None:
        self.inner.close()


class AsyncRecordingStore:
    """Async plain key/value store that records writes."""

    def __init__(self) -> None:
        self.inner = AsyncMemoryStore()
        self.writes: list[tuple[str, bytes, int]] = []
        self.failing_deletes: set[str] = set()
        self.failing_sets: set[str] = set()

    async def get(self, key: str) -> bytes | None:
        return await self.inner.get(key)

    async def set(self, key: str, value: bytes, ttl: int) -> bool:
        self.writes.append((key, value, ttl))
        if key in self.failing_sets:
            return False
        return await self.inner.set(key, value, ttl)

    async def delete(self, key: str) -> bool:
        if key in self.failing_deletes:
            return False
        return await self.inner.delete(key)

    async def touch(self, key: str, extra_ttl: int) -> bool:
        return await self.inner.touch(key, extra_ttl)

    async def metadata(self, key: str) -> EntryMetadata | None:
        return await self.inner.metadata(key)

    async def flush(self) -> bool:
        return await self.inner.flush()

    async def close(self) -> None:
        await self.inner.close()


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock starting at a fixed time."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryStore:
    """Create a fresh MemoryStore for each test."""
    return MemoryStore(clock=clock)


@pytest.fixture
def async_store(clock: FakeClock) -> AsyncMemoryStore:
    """Create a fresh AsyncMemoryStore for each test."""
    return AsyncMemoryStore(clock=clock)


@pytest.fixture
def recording_store() -> RecordingStore:
    """Create a write-recording store without compare-and-swap."""
    return RecordingStore()


@pytest.fixture
def async_recording_store() -> AsyncRecordingStore:
    """Create an async write-recording store without compare-and-swap."""
    return AsyncRecordingStore()


@pytest.fixture
def cache(store: MemoryStore) -> TaggedCache:
    """Create a TaggedCache over a memory store."""
    return TaggedCache(store, CacheConfig(prefix="app_"))


@pytest.fixture
def async_cache(async_store: AsyncMemoryStore) -> AsyncTaggedCache:
    """Create an AsyncTaggedCache over a memory store."""
    return AsyncTaggedCache(async_store, CacheConfig(prefix="app_"))
