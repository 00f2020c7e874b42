"""Sync tagged cache client."""

import logging
from collections.abc import Iterable

from tagkv.adapters.base import KeyValueStore
from tagkv.duration import parse_duration
from tagkv.invalidation import CLEANING_MATCH_MODES, compute_matches, unique_tags
from tagkv.keys import KeyNormalizer
from tagkv.tag_store import TagStore
from tagkv.types import CacheConfig, CleaningMode, Duration, EntryMetadata, MatchMode

logger = logging.getLogger(__name__)

CAPABILITIES: dict[str, bool] = {
    "automatic_cleaning": False,
    "tags": True,
    "expired_read": False,
    "priority": False,
    "infinite_lifetime": True,
    "get_list": False,
}


class TaggedCache:
    """Sync cache client adding tag-based invalidation to a flat store."""

    def __init__(
        self,
        store: KeyValueStore,
        config: CacheConfig | None = None,
    ) -> None:
        self._config = config or CacheConfig()
        self._store = store
        self._keys = KeyNormalizer(self._config.prefix)
        self._default_ttl = parse_duration(self._config.default_ttl)
        self._tags = TagStore(
            store,
            self._keys,
            lifetime=parse_duration(self._config.tag_lifetime),
            max_cas_attempts=self._config.max_cas_attempts,
        )

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def tag_store(self) -> TagStore:
        return self._tags

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    def load(self, entry_id: str, skip_validity_check: bool = False) -> bytes | None:
        """Load an entry's payload, or None if it is missing or expired.

        Expiry is enforced by the store, so ``skip_validity_check`` has no
        extra effect here.
        """
        _ = skip_validity_check
        return self._store.get(self._keys.normalize(entry_id))

    def exists(self, entry_id: str) -> EntryMetadata | None:
        """Probe an entry without loading its payload."""
        return self._store.metadata(self._keys.normalize(entry_id))

    def metadata(self, entry_id: str) -> EntryMetadata | None:
        """Get size and expiry of an entry."""
        return self.exists(entry_id)

    def save(
        self,
        payload: bytes,
        entry_id: str,
        tags: Iterable[str] = (),
        ttl: Duration | None = None,
    ) -> bool:
        """Store a payload and register it under each tag.

        Tag sets are updated before the payload is written. Tags the entry
        held from an earlier save are left in place.
        """
        key = self._keys.normalize(entry_id)
        ttl_seconds = parse_duration(ttl) if ttl is not None else self._default_ttl
        for tag in unique_tags(tags):
            self._tags.add_id(tag, entry_id)
        return self._store.set(key, payload, ttl_seconds)

    def remove(self, entry_id: str) -> bool:
        """Delete an entry. Tag sets keep pointing at it until invalidated."""
        return self._store.delete(self._keys.normalize(entry_id))

    def touch(self, entry_id: str, extra_ttl: Duration) -> bool:
        """Extend an entry's lifetime."""
        return self._store.touch(
            self._keys.normalize(entry_id), parse_duration(extra_ttl)
        )

    def capabilities(self) -> dict[str, bool]:
        """Report supported backend features."""
        return dict(CAPABILITIES)

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    def ids_matching_all_tags(self, tags: Iterable[str]) -> set[str]:
        """Get ids tagged with every one of ``tags``."""
        return self._matching(MatchMode.ALL, unique_tags(tags))

    def ids_matching_any_tags(self, tags: Iterable[str]) -> set[str]:
        """Get ids tagged with at least one of ``tags``."""
        return self._matching(MatchMode.ANY, unique_tags(tags))

    def list_known_tags(self) -> list[str]:
        """Tag listing is unsupported; always empty."""
        logger.warning("Listing tags is not supported by this backend")
        return []

    def invalidate(self, mode: MatchMode, tags: Iterable[str]) -> int:
        """Remove every entry matching ``tags`` under ``mode``.

        Each matched id is also dropped from all requested tag sets.
        Returns how many entries were actually deleted.
        """
        requested = unique_tags(tags)
        removed = 0
        for entry_id in self._matching(mode, requested):
            if self.remove(entry_id):
                removed += 1
            else:
                logger.debug(
                    "Entry %r was already gone or could not be removed", entry_id
                )
            for tag in requested:
                self._tags.remove_id(tag, entry_id)
        return removed

    def clean(
        self,
        mode: CleaningMode = CleaningMode.ALL,
        tags: Iterable[str] = (),
    ) -> int:
        """Bulk-clean the cache.

        Tag modes remove matching entries and return their count. ``ALL``
        flushes the store and returns 0; ``OLD`` does nothing because the
        store expires keys itself.
        """
        if mode in CLEANING_MATCH_MODES:
            return self.invalidate(CLEANING_MATCH_MODES[mode], tags)
        if mode is CleaningMode.ALL:
            self._store.flush()
            return 0
        if mode is CleaningMode.OLD:
            logger.debug("Expired entries are removed by the store; nothing to clean")
            return 0
        raise ValueError(f"Unsupported cleaning mode: {mode!r}")

    def prune_tag(self, tag: str) -> int:
        """Drop ids of entries that no longer exist from a tag set."""
        return len(self._tags.prune(tag))

    def close(self) -> None:
        """Close the underlying store."""
        self._store.close()

    def _matching(self, mode: MatchMode, tags: list[str]) -> set[str]:
        return compute_matches(mode, [self._tags.ids_for_tag(tag) for tag in tags])
