"""Match-set computation for tag-based invalidation.

Both functions take one id list per requested tag, already loaded from
the tag store, and decide which entries an invalidation should remove:

- match_all(): entries present in every tag's list (intersection)
- match_any(): entries present in at least one list (union)
"""

from collections.abc import Iterable, Sequence

from tagkv.types import CleaningMode, MatchMode

CLEANING_MATCH_MODES: dict[CleaningMode, MatchMode] = {
    CleaningMode.MATCHING_TAG: MatchMode.ALL,
    CleaningMode.MATCHING_ANY_TAG: MatchMode.ANY,
}


def unique_tags(tags: Iterable[str]) -> list[str]:
    """Drop repeated tags, keeping first-seen order."""
    if isinstance(tags, str):
        raise TypeError(f"tags must be a collection of strings, not {tags!r}")
    return list(dict.fromkeys(tags))


def match_all(id_lists: Sequence[Sequence[str]]) -> set[str]:
    """Return ids that appear in every list.

    An empty request matches nothing rather than everything.
    """
    if not id_lists:
        return set()

    counts: dict[str, int] = {}
    for ids in id_lists:
        # A duplicated id inside one list still counts once for that tag
        for entry_id in dict.fromkeys(ids):
            counts[entry_id] = counts.get(entry_id, 0) + 1

    return {entry_id for entry_id, count in counts.items() if count == len(id_lists)}


def match_any(id_lists: Sequence[Sequence[str]]) -> set[str]:
    """Return ids that appear in at least one list."""
    matched: set[str] = set()
    for ids in id_lists:
        matched.update(ids)
    return matched


def compute_matches(mode: MatchMode, id_lists: Sequence[Sequence[str]]) -> set[str]:
    """Dispatch to the match function for ``mode``."""
    if mode is MatchMode.ALL:
        return match_all(id_lists)
    if mode is MatchMode.ANY:
        return match_any(id_lists)
    raise ValueError(f"Unsupported match mode: {mode!r}")
