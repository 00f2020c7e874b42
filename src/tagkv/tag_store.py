"""Tag sets persisted inside the flat key/value store.

Each tag owns one key holding a JSON list of entry ids. Every mutation
loads the whole list, changes it in memory and writes it back. On stores
that implement the compare-and-swap mixin the write is conditional and
retried; on plain stores concurrent writers can lose each other's updates.
"""

import json
import logging
from collections.abc import Callable, Collection, Sequence
from typing import Any, cast

from tagkv.adapters.base import (
    AsyncCompareAndSwapStore,
    AsyncKeyValueStore,
    CompareAndSwapStore,
    KeyValueStore,
)
from tagkv.errors import TagSetDecodeError
from tagkv.keys import KeyNormalizer

logger = logging.getLogger(__name__)

# Returns the new list, or None when nothing needs writing
Mutation = Callable[[list[str]], list[str] | None]


def encode_ids(ids: Sequence[str]) -> bytes:
    """Serialize a tag set."""
    return json.dumps(list(ids)).encode("utf-8")


def decode_ids(key: str, data: bytes) -> list[str]:
    """Deserialize a tag set, raising TagSetDecodeError on bad data."""
    try:
        obj = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise TagSetDecodeError(key, str(e)) from e
    if not isinstance(obj, list) or not all(isinstance(i, str) for i in obj):
        raise TagSetDecodeError(key, "expected a list of strings")
    return obj


def _decode_or_empty(key: str, data: bytes | None) -> list[str]:
    """Decode a tag set, treating missing or corrupt data as empty."""
    if not data:
        return []
    try:
        return decode_ids(key, data)
    except TagSetDecodeError as e:
        logger.warning("Treating tag set as empty: %s", e)
        return []


def _with_id(entry_id: str) -> Mutation:
    def mutate(ids: list[str]) -> list[str] | None:
        if entry_id in ids:
            return None
        return [*ids, entry_id]

    return mutate


def _without_ids(entry_ids: Collection[str]) -> Mutation:
    def mutate(ids: list[str]) -> list[str] | None:
        updated = list(ids)
        for entry_id in entry_ids:
            if entry_id in updated:
                updated.remove(entry_id)  # First occurrence only
        if len(updated) == len(ids):
            return None
        return updated

    return mutate


class TagStore:
    """Sync tag-set access on top of a KeyValueStore."""

    def __init__(
        self,
        store: KeyValueStore,
        keys: KeyNormalizer,
        *,
        lifetime: int,
        max_cas_attempts: int = 5,
    ) -> None:
        if max_cas_attempts < 1:
            raise ValueError("max_cas_attempts must be at least 1")
        self._store = store
        self._keys = keys
        self._lifetime = lifetime
        self._max_cas_attempts = max_cas_attempts

    def ids_for_tag(self, tag: str) -> list[str]:
        """Get the entry ids currently tagged with ``tag``."""
        key = self._keys.tag_key(tag)
        return _decode_or_empty(key, self._store.get(key))

    def add_id(self, tag: str, entry_id: str) -> bool:
        """Append ``entry_id`` to the tag set. Returns True if a write happened."""
        return self._update(tag, _with_id(entry_id))

    def remove_id(self, tag: str, entry_id: str) -> bool:
        """Remove ``entry_id`` from the tag set. Returns True if a write happened."""
        return self._update(tag, _without_ids([entry_id]))

    def prune(self, tag: str) -> list[str]:
        """Drop ids whose entries no longer exist. Returns the dropped ids."""
        dangling = [
            entry_id
            for entry_id in self.ids_for_tag(tag)
            if self._store.metadata(self._keys.normalize(entry_id)) is None
        ]
        if dangling:
            self._update(tag, _without_ids(dangling))
        return dangling

    def _update(self, tag: str, mutate: Mutation) -> bool:
        key = self._keys.tag_key(tag)
        if isinstance(self._store, CompareAndSwapStore):
            return self._update_cas(key, mutate)

        updated = mutate(_decode_or_empty(key, self._store.get(key)))
        if updated is None:
            return False
        logger.debug("Writing tag set %s (%d ids)", key, len(updated))
        return self._store.set(key, encode_ids(updated), self._lifetime)

    def _update_cas(self, key: str, mutate: Mutation) -> bool:
        store = cast(CompareAndSwapStore, self._store)
        for _ in range(self._max_cas_attempts):
            found = store.gets(key)
            token: Any = None
            if found is None:
                updated = mutate([])
            else:
                data, token = found
                updated = mutate(_decode_or_empty(key, data))
            if updated is None:
                return False

            value = encode_ids(updated)
            if found is None:
                written = store.add(key, value, self._lifetime)
            else:
                written = store.cas(key, value, self._lifetime, token)
            if written:
                logger.debug("Wrote tag set %s (%d ids)", key, len(updated))
                return True

        logger.warning(
            "Giving up on tag set %s after %d conflicting writes",
            key,
            self._max_cas_attempts,
        )
        return False


class AsyncTagStore:
    """Async tag-set access on top of an AsyncKeyValueStore."""

    def __init__(
        self,
        store: AsyncKeyValueStore,
        keys: KeyNormalizer,
        *,
        lifetime: int,
        max_cas_attempts: int = 5,
    ) -> None:
        if max_cas_attempts < 1:
            raise ValueError("max_cas_attempts must be at least 1")
        self._store = store
        self._keys = keys
        self._lifetime = lifetime
        self._max_cas_attempts = max_cas_attempts

    async def ids_for_tag(self, tag: str) -> list[str]:
        """Get the entry ids currently tagged with ``tag``."""
        key = self._keys.tag_key(tag)
        return _decode_or_empty(key, await self._store.get(key))

    async def add_id(self, tag: str, entry_id: str) -> bool:
        """Append ``entry_id`` to the tag set. Returns True if a write happened."""
        return await self._update(tag, _with_id(entry_id))

    async def remove_id(self, tag: str, entry_id: str) -> bool:
        """Remove ``entry_id`` from the tag set. Returns True if a write happened."""
        return await self._update(tag, _without_ids([entry_id]))

    async def prune(self, tag: str) -> list[str]:
        """Drop ids whose entries no longer exist. Returns the dropped ids."""
        dangling = []
        for entry_id in await self.ids_for_tag(tag):
            if await self._store.metadata(self._keys.normalize(entry_id)) is None:
                dangling.append(entry_id)
        if dangling:
            await self._update(tag, _without_ids(dangling))
        return dangling

    async def _update(self, tag: str, mutate: Mutation) -> bool:
        key = self._keys.tag_key(tag)
        if isinstance(self._store, AsyncCompareAndSwapStore):
            return await self._update_cas(key, mutate)

        updated = mutate(_decode_or_empty(key, await self._store.get(key)))
        if updated is None:
            return False
        logger.debug("Writing tag set %s (%d ids)", key, len(updated))
        return await self._store.set(key, encode_ids(updated), self._lifetime)

    async def _update_cas(self, key: str, mutate: Mutation) -> bool:
        store = cast(AsyncCompareAndSwapStore, self._store)
        for _ in range(self._max_cas_attempts):
            found = await store.gets(key)
            token: Any = None
            if found is None:
                updated = mutate([])
            else:
                data, token = found
                updated = mutate(_decode_or_empty(key, data))
            if updated is None:
                return False

            value = encode_ids(updated)
            if found is None:
                written = await store.add(key, value, self._lifetime)
            else:
                written = await store.cas(key, value, self._lifetime, token)
            if written:
                logger.debug("Wrote tag set %s (%d ids)", key, len(updated))
                return True

        logger.warning(
            "Giving up on tag set %s after %d conflicting writes",
            key,
            self._max_cas_attempts,
        )
        return False
