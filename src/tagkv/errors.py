"""Exceptions raised by tagkv."""


class TagKVError(Exception):
    """Base class for tagkv errors."""


class StoreUnavailableError(TagKVError):
    """The underlying key/value store could not be reached."""


class TagSetDecodeError(TagKVError):
    """A stored tag set is not a JSON list of entry ids."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Corrupt tag set at {key!r}: {reason}")
        self.key = key
        self.reason = reason
