from __future__ import annotations

import fnmatch
import posixpath
from typing import Iterable

from crflow_core.models import DiffFile


def _normalise(path: str) -> str:
    path = path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path


def is_excluded(path: str, patterns: Iterable[str]) -> bool:
    """Return True if the repo-relative ``path`` matches any exclude pattern.

    A pattern matches when it globs the whole path ("src/generated/*.ts"),
    globs the file name ("*.lock"), or names a directory anywhere in the
    path ("mocks/", "src/legacy"). Backslashes count as separators in both
    paths and patterns.
    """
    path = _normalise(path)
    name = posixpath.basename(path)
    for pattern in patterns:
        pattern = _normalise(pattern)
        if fnmatch.fnmatchcase(path, pattern) or fnmatch.fnmatchcase(name, pattern):
            return True
        directory = pattern.strip("/")
        if directory and f"/{directory}/" in f"/{path}":
            return True
    return False


def filter_excluded(files: Iterable[DiffFile], patterns: list[str]) -> list[DiffFile]:
    """Drop changed files matching any configured exclude pattern."""
    if not patterns:
        return list(files)
    return [f for f in files if not is_excluded(f.path, patterns)]
