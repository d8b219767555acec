"""No-op store, used when the preference cache is disabled (``cache: none``).

Every load yields a fresh default record and every write is discarded, so
the workflow behaves like a first run each time. Using a NoOpStore rather
than None lets PreferenceStore always call its backend without conditionals.
"""

from __future__ import annotations

from crflow_store.base import BaseStore


class NoOpStore(BaseStore):
    """Silently discards the preference document."""

    def read(self) -> dict | None:
        return None

    def write(self, document: dict) -> bool:
        return True  # intentional no-op

    def delete(self) -> bool:
        return False

    def describe(self) -> str:
        return "disabled"
