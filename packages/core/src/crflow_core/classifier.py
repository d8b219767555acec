"""Diff classifier.

Turns a flat list of changed files into component and function suggestions
using path-fragment and extension heuristics only. The rules are ordered
tables evaluated top to bottom, so extending the classifier means adding a
row rather than another branch.

Classification never raises: a missing or odd-looking path degrades to
best-effort naming.
"""

from __future__ import annotations

import posixpath
from typing import Iterable

from crflow_core.models import (
    Category,
    Classification,
    ComponentSuggestion,
    DiffFile,
    FileStatus,
    FunctionSuggestion,
)

STYLESHEET_EXTENSIONS = (".css", ".scss", ".sass", ".less", ".styl", ".stylus")

COMPONENT_FRAGMENTS = ("/components/", "/widgets/", "/ui/", "/component/")

# Extensions whose PascalCase files are components wherever they live.
COMPONENT_EXTENSIONS = (".vue", ".jsx", ".tsx", ".svelte")

FUNCTION_FRAGMENTS = (
    "/pages/",
    "/views/",
    "/routes/",
    "/router/",
    "/features/",
    "/modules/",
    "/domains/",
    "/services/",
    "/api/",
    "/utils/",
    "/helpers/",
    "/store/",
    "/stores/",
    "/state/",
)

# Broad catch-all: anything under a source root is treated as logic.
FUNCTION_ROOT_FRAGMENTS = ("/src/", "/lib/")

# First match wins; files matching none fall into Category.OTHER.
CATEGORY_RULES: tuple[tuple[tuple[str, ...], Category], ...] = (
    (("/pages/", "/views/"), Category.PAGES),
    (("/api/", "/services/"), Category.API),
    (("/utils/", "/helpers/"), Category.UTILS),
    (("/store/", "/stores/"), Category.STORE),
    (("/features/", "/modules/"), Category.FEATURES),
)

CATEGORY_LABELS = {
    Category.PAGES: "page",
    Category.API: "API service",
    Category.UTILS: "utility",
    Category.STORE: "state store",
    Category.FEATURES: "feature module",
    Category.OTHER: "module",
}

FILE_TYPE_LABELS = {
    ".vue": "Vue",
    ".tsx": "TSX",
    ".jsx": "JSX",
    ".ts": "TS",
    ".js": "JS",
    ".svelte": "Svelte",
    ".mjs": "JS",
    ".cjs": "JS",
}

# Directory names too generic to identify an index file.
GENERIC_SEGMENTS = frozenset({"src", "components", "views", "pages"})

_INDEX_SEGMENT_LIMIT = 2


def _normalise(path: str | None) -> str:
    return (path or "").replace("\\", "/")


def _split(path: str) -> tuple[list[str], str]:
    """Return (ancestor directory segments, basename) for ``path``."""
    parts = [p for p in path.split("/") if p]
    if not parts:
        return [], path
    return parts[:-1], parts[-1]


def _extension(basename: str) -> str:
    return posixpath.splitext(basename)[1].lower()


def _contains_any(path: str, fragments: Iterable[str]) -> bool:
    return any(fragment in path for fragment in fragments)


def is_stylesheet(path: str) -> bool:
    return _normalise(path).lower().endswith(STYLESHEET_EXTENSIONS)


def is_component(path: str) -> bool:
    path = _normalise(path)
    if _contains_any(path, COMPONENT_FRAGMENTS):
        return True
    _, basename = _split(path)
    return _extension(basename) in COMPONENT_EXTENSIONS and basename[:1].isupper()


def is_function(path: str) -> bool:
    path = _normalise(path)
    return _contains_any(path, FUNCTION_FRAGMENTS) or _contains_any(path, FUNCTION_ROOT_FRAGMENTS)


def categorize(path: str) -> Category:
    path = _normalise(path)
    for fragments, category in CATEGORY_RULES:
        if _contains_any(path, fragments):
            return category
    return Category.OTHER


def file_type_label(extension: str) -> str:
    """Human-readable label for an extension; unmapped extensions use the bare upper-cased suffix."""
    extension = extension.lower()
    return FILE_TYPE_LABELS.get(extension) or extension.lstrip(".").upper()


def _camel_join(segments: list[str]) -> str:
    first, *rest = segments
    return first + "".join(s[:1].upper() + s[1:] for s in rest)


def derive_name(path: str | None) -> str:
    """Derive a display name from a file path.

    The extension is stripped from the basename. ``index`` files are named
    after up to two meaningful ancestor directories instead (nearest first,
    camel-joined) and prefixed with their file-type label, e.g.
    ``src/pages/user/profile/index.vue`` -> ``(Vue) profileUser``.
    """
    path = _normalise(path)
    ancestors, basename = _split(path)
    stem, extension = posixpath.splitext(basename)
    if not stem:
        stem = basename
    if stem.lower() != "index":
        return stem

    meaningful: list[str] = []
    for segment in reversed(ancestors):
        if segment.lower() in GENERIC_SEGMENTS:
            continue
        meaningful.append(segment)
        if len(meaningful) == _INDEX_SEGMENT_LIMIT:
            break

    if meaningful:
        name = _camel_join(meaningful)
    elif ancestors:
        name = ancestors[-1]
    else:
        name = basename

    label = FILE_TYPE_LABELS.get(extension.lower())
    return f"({label}) {name}" if label else name


def _status_rank(status: FileStatus) -> int:
    return 0 if status == FileStatus.ADDED else 1


class DiffClassifier:
    """Classify changed files into component and function suggestions.

    ``root`` is joined onto each repo-relative path to fill the suggestions'
    ``path`` field; without it ``path`` equals ``relative_path``.
    """

    def __init__(self, root: str | None = None):
        self.root = root

    def classify(self, files: Iterable[DiffFile]) -> Classification:
        components: list[ComponentSuggestion] = []
        functions: list[FunctionSuggestion] = []

        for diff_file in files:
            relative_path = _normalise(diff_file.path)
            if is_stylesheet(relative_path):
                continue

            name = derive_name(relative_path)
            full_path = posixpath.join(self.root, relative_path) if self.root else relative_path

            if is_component(relative_path):
                _, basename = _split(relative_path)
                components.append(
                    ComponentSuggestion(
                        name=name,
                        path=full_path,
                        relative_path=relative_path,
                        status=diff_file.status,
                        file_type=file_type_label(_extension(basename)),
                    )
                )

            if is_function(relative_path):
                category = categorize(relative_path)
                functions.append(
                    FunctionSuggestion(
                        name=name,
                        path=full_path,
                        relative_path=relative_path,
                        description=f"{name} - {CATEGORY_LABELS[category]}",
                        category=category,
                        status=diff_file.status,
                    )
                )

        components.sort(key=lambda c: (_status_rank(c.status), c.name))
        functions.sort(key=lambda f: (f.category.value, _status_rank(f.status), f.name))
        return Classification(components=components, functions=functions)


def classify(files: Iterable[DiffFile], root: str | None = None) -> Classification:
    """Convenience wrapper around DiffClassifier(root).classify(files)."""
    return DiffClassifier(root=root).classify(files)
