"""PreferenceStore: recency lists and per-extension reviewer weights.

Every mutating call performs a full read-modify-write of the whole document
through the configured backend. A document older than the expiry window is
treated as absent (a fresh default is returned; the stale file is left in
place until the next save overwrites it).

I/O and parse failures never reach the caller: they are logged, reported
through the optional ``notify`` callback, and the store behaves as if it
were empty.
"""

from __future__ import annotations

import logging
import posixpath
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Sequence

from crflow_store.base import BaseStore, StoreReadError
from crflow_store.models import (
    SEPARATOR,
    ListType,
    PreferenceRecord,
    RankedChoice,
    Separator,
    StoreStats,
    UserInfo,
)

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_DAYS = 30
DEFAULT_RECENT_LIMIT = 20

_UNPARSEABLE = "Preference cache could not be parsed; starting with an empty cache."

_KNOWN_KEYS = {"recentParticipants", "recentCheckUsers", "fileTypeWeights", "fileReviewerPreferences", "lastUpdated"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def file_extension(file_path: str) -> str:
    """Return the lower-cased extension of ``file_path`` including the dot, or ""."""
    base = posixpath.basename((file_path or "").replace("\\", "/"))
    return posixpath.splitext(base)[1].lower()


def _unique(ids: Iterable[int]) -> list[int]:
    merged: list[int] = []
    for user_id in ids:
        user_id = int(user_id)
        if user_id not in merged:
            merged.append(user_id)
    return merged


def _move_to_front(new_ids: Iterable[int], existing: Sequence[int], limit: int) -> list[int]:
    return _unique([*new_ids, *existing])[:limit]


class PreferenceStore:
    """Owns the preference document for one user.

    Args:
        backend: where the JSON document lives.
        expiry_days: documents older than this are loaded as a fresh default.
        recent_limit: maximum length of each recency list.
        clock: returns the current UTC time; injectable for tests.
        notify: receives one-line status messages for degraded paths.
    """

    def __init__(
        self,
        backend: BaseStore,
        expiry_days: int = DEFAULT_EXPIRY_DAYS,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
        clock: Callable[[], datetime] | None = None,
        notify: Callable[[str], None] | None = None,
    ):
        self._backend = backend
        self._expiry = timedelta(days=expiry_days)
        self._recent_limit = recent_limit
        self._clock = clock or _utcnow
        self._notify = notify

    @property
    def backend(self) -> BaseStore:
        return self._backend

    # ------------------------------------------------------------------ #
    # Load / save                                                          #
    # ------------------------------------------------------------------ #

    def load(self) -> PreferenceRecord:
        """Return the persisted record, or a fresh default if absent, corrupt or expired."""
        try:
            data = self._backend.read()
        except StoreReadError as e:
            logger.warning("Could not read preference cache: %s", e)
            self._status(_UNPARSEABLE)
            return PreferenceRecord(last_updated=self._clock())
        if data is None:
            return PreferenceRecord(last_updated=self._clock())

        try:
            record = self._from_dict(data)
        except (AttributeError, TypeError, ValueError, OverflowError, OSError) as e:
            logger.warning("Preference cache is malformed (%s): %s", type(e).__name__, e)
            self._status(_UNPARSEABLE)
            return PreferenceRecord(last_updated=self._clock())

        if self._clock() - record.last_updated > self._expiry:
            logger.info(
                "Preference cache last updated %s is older than %s; resetting", record.last_updated, self._expiry
            )
            self._status("Preference cache expired; starting fresh.")
            return PreferenceRecord(last_updated=self._clock())

        return record

    def save(self, record: PreferenceRecord) -> bool:
        """Persist ``record`` wholesale, stamping ``last_updated``. Never raises."""
        record.last_updated = self._clock()
        ok = self._backend.write(self._to_dict(record))
        if not ok:
            self._status("Could not save the preference cache; this run's choices will not be remembered.")
        return ok

    def clear(self) -> bool:
        """Delete the persisted document entirely."""
        removed = self._backend.delete()
        if removed:
            logger.info("Preference cache %s removed", self._backend.describe())
        return removed

    # ------------------------------------------------------------------ #
    # Usage recording                                                      #
    # ------------------------------------------------------------------ #

    def record_participant_usage(self, user_ids: Iterable[int]) -> None:
        record = self.load()
        record.recent_participants = _move_to_front(user_ids, record.recent_participants, self._recent_limit)
        self.save(record)

    def record_check_user_usage(self, user_ids: Iterable[int]) -> None:
        record = self.load()
        record.recent_check_users = _move_to_front(user_ids, record.recent_check_users, self._recent_limit)
        self.save(record)

    def record_file_type_preference(self, file_path: str, reviewer_id: int) -> None:
        """Count one more review of ``file_path``'s extension by ``reviewer_id``.

        No-op for paths without an extension.
        """
        extension = file_extension(file_path)
        if not extension:
            return
        record = self.load()
        weights = record.file_type_weights.setdefault(extension, {})
        reviewer_id = int(reviewer_id)
        weights[reviewer_id] = weights.get(reviewer_id, 0) + 1
        self.save(record)

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    def recommend_reviewer_for_extension(self, extension: str, available_reviewer_ids: Iterable[int]) -> int | None:
        """Return the most-weighted available reviewer for ``extension``, or None.

        Ties go to whichever reviewer was recorded first for the extension.
        """
        extension = (extension or "").lower()
        if extension and not extension.startswith("."):
            extension = "." + extension
        available = {int(i) for i in available_reviewer_ids}
        if not extension or not available:
            return None

        weights = self.load().file_type_weights.get(extension) or {}
        best: int | None = None
        best_count = 0
        for reviewer_id, count in weights.items():
            if reviewer_id in available and (best is None or count > best_count):
                best, best_count = reviewer_id, count
        return best

    def ranked_choices(
        self,
        users: Iterable[UserInfo],
        list_type: ListType = ListType.PARTICIPANTS,
    ) -> list[RankedChoice | Separator]:
        """Order ``users`` for a picker: recently used first, then everyone else by name."""
        record = self.load()
        recent_ids = record.recent_check_users if list_type == ListType.CHECK_USERS else record.recent_participants
        position = {user_id: i for i, user_id in enumerate(recent_ids)}

        recent: list[UserInfo] = []
        others: list[UserInfo] = []
        for user in users:
            (recent if user.id in position else others).append(user)

        recent.sort(key=lambda u: position[u.id])
        others.sort(key=lambda u: u.display_name)

        choices: list[RankedChoice | Separator] = [
            RankedChoice(user=u, tag="most recent" if i == 0 else "frequent") for i, u in enumerate(recent)
        ]
        if recent and others:
            choices.append(SEPARATOR)
        choices.extend(RankedChoice(user=u) for u in others)
        return choices

    def last_selected(self, list_type: ListType = ListType.PARTICIPANTS, limit: int = 3) -> list[int]:
        """Return the ids most recently used for ``list_type``, for pre-selection."""
        record = self.load()
        recent_ids = record.recent_check_users if list_type == ListType.CHECK_USERS else record.recent_participants
        return list(recent_ids[:limit])

    def stats(self) -> StoreStats:
        record = self.load()
        return StoreStats(
            participant_count=len(record.recent_participants),
            check_user_count=len(record.recent_check_users),
            has_file_type_preferences=bool(record.file_type_weights),
            last_updated=record.last_updated,
        )

    # ------------------------------------------------------------------ #
    # Serialisation                                                        #
    # ------------------------------------------------------------------ #

    def _status(self, message: str) -> None:
        if self._notify is not None:
            self._notify(message)

    @staticmethod
    def _to_dict(record: PreferenceRecord) -> dict:
        document = dict(record.extra)
        document.update(
            {
                "recentParticipants": list(record.recent_participants),
                "recentCheckUsers": list(record.recent_check_users),
                "fileTypeWeights": {
                    ext: {str(reviewer_id): count for reviewer_id, count in weights.items()}
                    for ext, weights in record.file_type_weights.items()
                },
                "lastUpdated": int(record.last_updated.timestamp() * 1000),
            }
        )
        return document

    @staticmethod
    def _from_dict(d: dict) -> PreferenceRecord:
        raw_weights = d.get("fileTypeWeights")
        if raw_weights is None:
            # Written by older versions of the tool.
            raw_weights = d.get("fileReviewerPreferences") or {}

        weights: dict[str, dict[int, int]] = {}
        for ext, per_reviewer in raw_weights.items():
            weights[str(ext).lower()] = {int(reviewer_id): int(count) for reviewer_id, count in per_reviewer.items()}

        last_updated_ms = d.get("lastUpdated") or 0
        return PreferenceRecord(
            recent_participants=_unique(d.get("recentParticipants") or []),
            recent_check_users=_unique(d.get("recentCheckUsers") or []),
            file_type_weights=weights,
            last_updated=datetime.fromtimestamp(float(last_updated_ms) / 1000, tz=timezone.utc),
            extra={k: v for k, v in d.items() if k not in _KNOWN_KEYS},
        )
