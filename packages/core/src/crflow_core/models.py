"""Data models shared by the classifier and the assignment engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class FileStatus(str, Enum):
    ADDED = "Added"
    MODIFIED = "Modified"
    DELETED = "Deleted"
    RENAMED = "Renamed"
    COPIED = "Copied"

    @classmethod
    def from_git(cls, letter: str) -> FileStatus:
        """Map a ``git diff --name-status`` letter (A, M, D, R100, C75, ...) to a status."""
        return _GIT_STATUS.get((letter or "M")[:1].upper(), cls.MODIFIED)


_GIT_STATUS = {
    "A": FileStatus.ADDED,
    "M": FileStatus.MODIFIED,
    "D": FileStatus.DELETED,
    "R": FileStatus.RENAMED,
    "C": FileStatus.COPIED,
    "T": FileStatus.MODIFIED,
}


class Category(str, Enum):
    """Function-suggestion categories. Values sort lexically, which is the display order."""

    PAGES = "pages"
    API = "api"
    UTILS = "utils"
    STORE = "store"
    FEATURES = "features"
    OTHER = "other"


@dataclass(frozen=True)
class DiffFile:
    """One changed file between two refs, as produced by the git collaborator."""

    path: str
    status: FileStatus = FileStatus.MODIFIED
    insertions: int = 0
    deletions: int = 0


@dataclass(frozen=True)
class ComponentSuggestion:
    name: str
    path: str
    relative_path: str
    status: FileStatus
    file_type: str


@dataclass(frozen=True)
class FunctionSuggestion:
    name: str
    path: str
    relative_path: str
    description: str
    category: Category
    status: FileStatus


Suggestion = Union[ComponentSuggestion, FunctionSuggestion]


@dataclass
class Classification:
    """Output of DiffClassifier.classify()."""

    components: list[ComponentSuggestion] = field(default_factory=list)
    functions: list[FunctionSuggestion] = field(default_factory=list)


@dataclass(frozen=True)
class AssignmentResult:
    """A reviewer assigned to one file. Transient; never persisted directly."""

    file_path: str
    file_name: str
    reviewer_id: int
    reviewer_name: str
    reason: str


# --------------------------------------------------------------------------- #
# Batch assignment options: exactly one variant is active per workflow run.    #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class SingleAssignment:
    """Every file goes to one reviewer."""

    reviewer: int


@dataclass(frozen=True)
class TypeAssignment:
    """One reviewer per lower-cased file extension (".other" for files without one)."""

    mapping: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class DirectoryAssignment:
    """One reviewer per meaningful top-level directory."""

    mapping: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class IndividualAssignment:
    """Legacy per-file manual selection; bypasses the batch engine."""


BatchAssignmentOptions = Union[SingleAssignment, TypeAssignment, DirectoryAssignment, IndividualAssignment]
