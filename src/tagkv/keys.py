"""Physical key layout for entries and tag sets."""

TAG_KEY_MARKER = "tag___"


class KeyNormalizer:
    """Maps logical entry ids and tag names onto store keys.

    Entries live at ``prefix + id`` and tag sets at
    ``prefix + "tag___" + tag``. Both share one namespace, so entry ids may
    not start with the tag marker.
    """

    def __init__(self, prefix: str = "") -> None:
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        return self._prefix

    def normalize(self, entry_id: str) -> str:
        """Return the store key for an entry id."""
        if entry_id.startswith(TAG_KEY_MARKER):
            raise ValueError(
                f"Entry id {entry_id!r} uses the reserved prefix {TAG_KEY_MARKER!r}"
            )
        return self._prefix + entry_id

    def tag_key(self, tag: str) -> str:
        """Return the store key holding the tag set for ``tag``."""
        return f"{self._prefix}{TAG_KEY_MARKER}{tag}"
