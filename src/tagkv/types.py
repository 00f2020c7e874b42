"""Core types for tagkv."""

from dataclasses import dataclass
from enum import Enum

# Duration type alias
Duration = str | int  # "30s", "5m", "2h", "1d" or seconds


class MatchMode(Enum):
    """How a set of tags selects entries for invalidation."""

    ALL = "all"  # intersection
    ANY = "any"  # union


class CleaningMode(Enum):
    """Bulk cleaning modes accepted by ``clean()``."""

    ALL = "all"
    OLD = "old"
    MATCHING_TAG = "matching_tag"
    MATCHING_ANY_TAG = "matching_any_tag"


@dataclass(frozen=True, slots=True)
class CacheConfig:
    """Configuration for a tagged cache."""

    prefix: str = ""
    default_ttl: Duration = "1h"
    tag_lifetime: Duration = "1d"
    max_cas_attempts: int = 5


@dataclass(frozen=True, slots=True)
class EntryMetadata:
    """What the store knows about a key without loading its value."""

    size: int
    expires_at: float | None  # Unix timestamp, None = never
