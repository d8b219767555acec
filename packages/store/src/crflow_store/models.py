"""Preference cache data models.

Decoupled from crflow_core so the store layer can be used independently;
the assignment engine imports these types, never the other way round.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ListType(str, Enum):
    """Which recency list a ranked choice list is built from."""

    PARTICIPANTS = "participants"
    CHECK_USERS = "checkUsers"


@dataclass(frozen=True)
class UserInfo:
    """A person from the tracker's user directory."""

    id: int
    display_name: str


@dataclass(frozen=True)
class RankedChoice:
    """One selectable user in a ranked choice list.

    ``tag`` is "most recent" for the first recently used user, "frequent" for
    the remaining recent users and None for everybody else.
    """

    user: UserInfo
    tag: str | None = None

    @property
    def id(self) -> int:
        return self.user.id

    @property
    def name(self) -> str:
        return self.user.display_name

    @property
    def label(self) -> str:
        base = f"{self.user.display_name} (ID: {self.user.id})"
        if self.tag:
            return f"★ {base} [{self.tag}]"
        return base


@dataclass(frozen=True)
class Separator:
    """Visual divider between recent and other users in a choice list."""

    line: str = "─" * 35


SEPARATOR = Separator()


@dataclass
class PreferenceRecord:
    """The persisted preference document.

    ``file_type_weights`` maps a lower-cased extension (".tsx") to a
    reviewer-id → usage-count map; insertion order of the inner map is the
    first-seen order used to break ties. ``extra`` carries keys written by
    other versions of the tool so they survive a read-modify-write.
    """

    recent_participants: list[int] = field(default_factory=list)
    recent_check_users: list[int] = field(default_factory=list)
    file_type_weights: dict[str, dict[int, int]] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    extra: dict = field(default_factory=dict)


@dataclass(frozen=True)
class StoreStats:
    """Read-only summary of the preference cache for diagnostics."""

    participant_count: int
    check_user_count: int
    has_file_type_preferences: bool
    last_updated: datetime
