"""Async tagged cache client."""

import logging
from collections.abc import Iterable

from tagkv.adapters.base import AsyncKeyValueStore
from tagkv.client import CAPABILITIES
from tagkv.duration import parse_duration
from tagkv.invalidation import CLEANING_MATCH_MODES, compute_matches, unique_tags
from tagkv.keys import KeyNormalizer
from tagkv.tag_store import AsyncTagStore
from tagkv.types import CacheConfig, CleaningMode, Duration, EntryMetadata, MatchMode

logger = logging.getLogger(__name__)


class AsyncTaggedCache:
    """Async cache client adding tag-based invalidation to a flat store."""

    def __init__(
        self,
        store: AsyncKeyValueStore,
        config: CacheConfig | None = None,
    ) -> None:
        self._config = config or CacheConfig()
        self._store = store
        self._keys = KeyNormalizer(self._config.prefix)
        self._default_ttl = parse_duration(self._config.default_ttl)
        self._tags = AsyncTagStore(
            store,
            self._keys,
            lifetime=parse_duration(self._config.tag_lifetime),
            max_cas_attempts=self._config.max_cas_attempts,
        )

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def tag_store(self) -> AsyncTagStore:
        return self._tags

    async def load(
        self, entry_id: str, skip_validity_check: bool = False
    ) -> bytes | None:
        """Load an entry's payload, or None if it is missing or expired."""
        _ = skip_validity_check  # Expiry is enforced by the store
        return await self._store.get(self._keys.normalize(entry_id))

    async def exists(self, entry_id: str) -> EntryMetadata | None:
        """Probe an entry without loading its payload."""
        return await self._store.metadata(self._keys.normalize(entry_id))

    async def metadata(self, entry_id: str) -> EntryMetadata | None:
        """Get size and expiry of an entry."""
        return await self.exists(entry_id)

    async def save(
        self,
        payload: bytes,
        entry_id: str,
        tags: Iterable[str] = (),
        ttl: Duration | None = None,
    ) -> bool:
        """Store a payload and register it under each tag."""
        key = self._keys.normalize(entry_id)
        ttl_seconds = parse_duration(ttl) if ttl is not None else self._default_ttl
        for tag in unique_tags(tags):
            await self._tags.add_id(tag, entry_id)
        return await self._store.set(key, payload, ttl_seconds)

    async def remove(self, entry_id: str) -> bool:
        """Delete an entry. Tag sets keep pointing at it until invalidated."""
        return await self._store.delete(self._keys.normalize(entry_id))

    async def touch(self, entry_id: str, extra_ttl: Duration) -> bool:
        """Extend an entry's lifetime."""
        return await self._store.touch(
            self._keys.normalize(entry_id), parse_duration(extra_ttl)
        )

    def capabilities(self) -> dict[str, bool]:
        """Report supported backend features."""
        return dict(CAPABILITIES)

    async def ids_matching_all_tags(self, tags: Iterable[str]) -> set[str]:
        """Get ids tagged with every one of ``tags``."""
        return await self._matching(MatchMode.ALL, unique_tags(tags))

    async def ids_matching_any_tags(self, tags: Iterable[str]) -> set[str]:
        """Get ids tagged with at least one of ``tags``."""
        return await self._matching(MatchMode.ANY, unique_tags(tags))

    def list_known_tags(self) -> list[str]:
        """Tag listing is unsupported; always empty."""
        logger.warning("Listing tags is not supported by this backend")
        return []

    async def invalidate(self, mode: MatchMode, tags: Iterable[str]) -> int:
        """Remove every entry matching ``tags`` under ``mode``.

        Returns how many entries were actually deleted.
        """
        requested = unique_tags(tags)
        removed = 0
        for entry_id in await self._matching(mode, requested):
            if await self.remove(entry_id):
                removed += 1
            else:
                logger.debug(
                    "Entry %r was already gone or could not be removed", entry_id
                )
            for tag in requested:
                await self._tags.remove_id(tag, entry_id)
        return removed

    async def clean(
        self,
        mode: CleaningMode = CleaningMode.ALL,
        tags: Iterable[str] = (),
    ) -> int:
        """Bulk-clean the cache."""
        if mode in CLEANING_MATCH_MODES:
            return await self.invalidate(CLEANING_MATCH_MODES[mode], tags)
        if mode is CleaningMode.ALL:
            await self._store.flush()
            return 0
        if mode is CleaningMode.OLD:
            logger.debug("Expired entries are removed by the store; nothing to clean")
            return 0
        raise ValueError(f"Unsupported cleaning mode: {mode!r}")

    async def prune_tag(self, tag: str) -> int:
        """Drop ids of entries that no longer exist from a tag set."""
        return len(await self._tags.prune(tag))

    async def close(self) -> None:
        """Close the underlying store."""
        await self._store.close()

    async def _matching(self, mode: MatchMode, tags: list[str]) -> set[str]:
        id_lists = [await self._tags.ids_for_tag(tag) for tag in tags]
        return compute_matches(mode, id_lists)
