"""CreatorStore: the request creator chosen on this machine.

The creator is picked once and reused on later runs until it is cleared.
It lives in its own small document beside the preference cache, so it is
not subject to the preference expiry window.
"""

from __future__ import annotations

import logging

from crflow_store.base import BaseStore, StoreReadError
from crflow_store.models import UserInfo

logger = logging.getLogger(__name__)

CREATOR_FILENAME = "current-user.json"


class CreatorStore:
    def __init__(self, backend: BaseStore):
        self._backend = backend

    @property
    def backend(self) -> BaseStore:
        return self._backend

    def get(self) -> UserInfo | None:
        """Return the saved creator, or None if nothing usable is saved."""
        try:
            data = self._backend.read()
        except StoreReadError as e:
            logger.warning("Could not read saved creator: %s", e)
            return None
        if not data:
            return None
        try:
            user_id = int(data["id"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring saved creator without a valid id: %r", data)
            return None
        name = data.get("name")
        if not user_id or not name:
            return None
        return UserInfo(id=user_id, display_name=str(name))

    def save(self, user: UserInfo) -> bool:
        return self._backend.write({"id": user.id, "name": user.display_name})

    def clear(self) -> bool:
        """Forget the saved creator. Returns True if one was removed."""
        return self._backend.delete()
