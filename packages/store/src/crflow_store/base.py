"""Abstract persistence backend for the preference document.

The PreferenceStore depends on BaseStore, not on a concrete backend, so the
JSON file can be swapped for an in-memory or disabled backend without
touching the preference logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class StoreReadError(Exception):
    """The stored document exists but could not be read or decoded."""


class BaseStore(ABC):
    """Whole-document persistence for the preference cache.

    Every call reads or writes the entire document; there are no partial
    updates. A missing document reads as None; one that exists but cannot be
    read or decoded raises StoreReadError so callers can tell the operator.
    Writes never raise: a failed write returns False after logging a warning.
    """

    @abstractmethod
    def read(self) -> dict | None:
        """Return the stored document, or None if absent. Raises StoreReadError if unreadable."""

    @abstractmethod
    def write(self, document: dict) -> bool:
        """Replace the stored document. Returns False if it could not be persisted."""

    @abstractmethod
    def delete(self) -> bool:
        """Remove the stored document. Returns True if something was removed."""

    def describe(self) -> str:
        """Human-readable location of the document, for diagnostics."""
        return self.__class__.__name__

    def close(self) -> None:
        """Release any resources held by the store.

        Optional; the default is a no-op so callers can always call close().
        """
