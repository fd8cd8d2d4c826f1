"""Error taxonomy for the memory and affect core."""

from __future__ import annotations


class RapportError(Exception):
    """Base class for all core errors."""


class ConfigurationError(RapportError):
    """Configuration or engine settings are malformed."""


class NotFoundError(RapportError):
    """Unknown record key or entity id."""

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class CorruptStateError(RapportError):
    """Persisted document could not be decoded."""


class StoreWriteError(RapportError):
    """Persisting the document failed; in-memory changes were discarded."""


class StaleDocumentError(StoreWriteError):
    """Another writer committed a newer document version first."""
