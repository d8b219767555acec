"""JsonFileStore: the preference document as a single JSON file.

The file lives in the user's home directory (``~/.crflow/preferences.json``
by default) and is owned by the local process. Writes go to a temporary file
in the same directory and are moved into place with ``os.replace`` so a
crash mid-write never leaves a truncated document. There is no locking:
two concurrent processes are last-writer-wins.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from crflow_store.base import BaseStore, StoreReadError

logger = logging.getLogger(__name__)

DEFAULT_PATH = Path.home() / ".crflow" / "preferences.json"


class JsonFileStore(BaseStore):
    """Reads and writes the preference document at ``path``."""

    def __init__(self, path: str | os.PathLike | None = None):
        self._path = Path(path).expanduser() if path else DEFAULT_PATH

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> dict | None:
        if not self._path.exists():
            return None
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StoreReadError(f"{self._path}: {type(e).__name__}: {e}") from e
        if not isinstance(data, dict):
            raise StoreReadError(f"{self._path}: top-level value is not an object")
        return data

    def write(self, document: dict) -> bool:
        tmp_path = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_path = tmp.name
                json.dump(document, tmp, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self._path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Could not save preference cache %s (%s): %s", self._path, type(e).__name__, e)
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
            return False

    def delete(self) -> bool:
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Could not remove preference cache %s: %s", self._path, e)
            return False
        return True

    def describe(self) -> str:
        return str(self._path)
