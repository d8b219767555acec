"""Batch reviewer assignment.

The engine is a small state machine driven through a ``Prompter``:

    MODE_SELECTION -> STRATEGY_CONFIGURATION -> EXECUTION -> PREVIEW
        PREVIEW -> CONFIRMED                      (results returned)
        PREVIEW -> RETRY -> MODE_SELECTION        (choose a strategy again)
        PREVIEW -> CANCELLED                      (empty result set)

Four strategies are offered: one reviewer for everything, one reviewer per
file extension (pre-selecting the reviewer the preference cache recommends),
one reviewer per meaningful directory, or the legacy per-file selection
which bypasses execution and preview.

Every mapping the engine produces is fed back into the preference cache via
``record_file_type_preference`` so future recommendations improve. Once a
run ends CANCELLED the engine performs no further persistence; whatever was
recorded during execution stays recorded.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Sequence

from crflow_core.models import (
    AssignmentResult,
    BatchAssignmentOptions,
    DirectoryAssignment,
    IndividualAssignment,
    SingleAssignment,
    Suggestion,
    TypeAssignment,
)
from crflow_core.prompts import Entry, Option, Prompter, PromptCancelled
from crflow_store.models import RankedChoice, Separator

if TYPE_CHECKING:
    from crflow_store.preferences import PreferenceStore

logger = logging.getLogger(__name__)

OTHER_EXTENSION = ".other"

MEANINGFUL_DIRECTORIES = frozenset(
    {"components", "pages", "views", "utils", "services", "api", "store", "features", "modules"}
)

MANUAL_OVERRIDE_REASON = "manual override"
MANUAL_SELECTION_REASON = "manual selection"
SINGLE_REASON = "single reviewer"
UNKNOWN_REVIEWER = "unknown"


class State(str, Enum):
    MODE_SELECTION = "mode_selection"
    STRATEGY_CONFIGURATION = "strategy_configuration"
    EXECUTION = "execution"
    PREVIEW = "preview"
    CONFIRMED = "confirmed"
    RETRY = "retry"
    CANCELLED = "cancelled"


class Disposition(str, Enum):
    """The operator's answer at the preview step."""

    CONFIRMED = "confirmed"
    RETRY = "retry"
    CANCELLED = "cancelled"


@dataclass
class AssignmentOutcome:
    """Terminal result of ``BatchAssignmentEngine.run``.

    A CANCELLED outcome always carries an empty result list; callers must
    treat it as an abort, not an error, and must not retry automatically.
    """

    disposition: Disposition
    results: list[AssignmentResult] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return self.disposition == Disposition.CANCELLED


_MODE_OPTIONS = [
    Option("single", "All files to one reviewer (fastest)"),
    Option("byType", "One reviewer per file type (recommended)"),
    Option("byDirectory", "One reviewer per directory"),
    Option("individual", "Choose a reviewer for each file (classic)"),
]

_PREVIEW_OPTIONS = [
    Option(Disposition.CONFIRMED, "Confirm and continue"),
    Option(Disposition.RETRY, "Choose a different assignment mode"),
    Option(Disposition.CANCELLED, "Cancel assignment"),
]


def extension_group(file_path: str) -> str:
    """Lower-cased extension of ``file_path``; files without one share ``.other``."""
    base = posixpath.basename((file_path or "").replace("\\", "/"))
    return posixpath.splitext(base)[1].lower() or OTHER_EXTENSION


def main_directory(file_path: str) -> str:
    """The directory a file is grouped under for per-directory assignment.

    The first segment whose name is in MEANINGFUL_DIRECTORIES wins; otherwise
    the first segment of the path, or "root" for top-level files.
    """
    parts = [p for p in (file_path or "").replace("\\", "/").split("/") if p]
    for part in parts:
        if part.lower() in MEANINGFUL_DIRECTORIES:
            return part
    return parts[0] if len(parts) > 1 else "root"


def _group(files: Iterable[Suggestion], key) -> dict[str, list[Suggestion]]:
    groups: dict[str, list[Suggestion]] = {}
    for f in files:
        groups.setdefault(key(f.relative_path), []).append(f)
    return groups


def _reviewers(choices: Sequence[RankedChoice | Separator]) -> list[RankedChoice]:
    return [c for c in choices if isinstance(c, RankedChoice)]


def _reviewer_options(
    choices: Sequence[RankedChoice | Separator],
    recommended: int | None = None,
) -> list[Entry]:
    """Build picker entries from ranked choices, floating ``recommended`` to the top."""
    entries: list[Entry] = []
    top: Option | None = None
    for choice in choices:
        if isinstance(choice, Separator):
            entries.append(choice)
        elif recommended is not None and choice.id == recommended:
            top = Option(choice.id, f"★ {choice.name} (ID: {choice.id}) [recommended]")
        else:
            entries.append(Option(choice.id, choice.label))
    if top is None:
        return entries

    # Removing the recommended entry can strand a separator at an edge.
    cleaned: list[Entry] = [top]
    for entry in entries:
        if isinstance(entry, Separator) and isinstance(cleaned[-1], Separator):
            continue
        cleaned.append(entry)
    while isinstance(cleaned[-1], Separator):
        cleaned.pop()
    if len(cleaned) > 1 and isinstance(cleaned[1], Separator):
        cleaned.pop(1)
    return cleaned


class BatchAssignmentEngine:
    """Assigns a reviewer to every selected suggestion.

    Args:
        preferences: a PreferenceStore (anything with
            ``recommend_reviewer_for_extension`` and ``record_file_type_preference``).
        prompter: the human-input port.
    """

    def __init__(self, preferences: PreferenceStore, prompter: Prompter):
        self.preferences = preferences
        self.prompter = prompter
        self.state = State.MODE_SELECTION

    # ------------------------------------------------------------------ #
    # Workflow                                                             #
    # ------------------------------------------------------------------ #

    def run(
        self,
        candidates: Sequence[Suggestion],
        reviewer_choices: Sequence[RankedChoice | Separator],
    ) -> AssignmentOutcome:
        """Drive the full workflow until the operator confirms or cancels."""
        if not candidates:
            self.state = State.CONFIRMED
            return AssignmentOutcome(Disposition.CONFIRMED, [])
        if not _reviewers(reviewer_choices):
            self.prompter.notify("No reviewers available; skipping reviewer assignment.", style="yellow")
            return self._cancel()

        while True:
            self.state = State.MODE_SELECTION
            try:
                options = self.select_mode(candidates, reviewer_choices)
            except PromptCancelled:
                return self._cancel()

            if isinstance(options, IndividualAssignment):
                try:
                    results = self.assign_individually(candidates, reviewer_choices)
                except PromptCancelled:
                    return self._cancel()
                self.state = State.CONFIRMED
                return AssignmentOutcome(Disposition.CONFIRMED, results)

            self.state = State.EXECUTION
            results = self.execute(candidates, options, reviewer_choices)

            self.state = State.PREVIEW
            try:
                disposition = self.preview(results)
            except PromptCancelled:
                disposition = Disposition.CANCELLED

            if disposition == Disposition.CANCELLED:
                return self._cancel()
            if disposition == Disposition.RETRY:
                self.state = State.RETRY
                logger.debug("Operator asked to retry reviewer assignment")
                continue

            try:
                results = self.adjust(results, reviewer_choices)
            except PromptCancelled:
                return self._cancel()
            self.state = State.CONFIRMED
            return AssignmentOutcome(Disposition.CONFIRMED, results)

    def _cancel(self) -> AssignmentOutcome:
        self.state = State.CANCELLED
        self.prompter.notify("Reviewer assignment cancelled.", style="yellow")
        return AssignmentOutcome(Disposition.CANCELLED, [])

    # ------------------------------------------------------------------ #
    # Mode selection and strategy configuration                            #
    # ------------------------------------------------------------------ #

    def select_mode(
        self,
        candidates: Sequence[Suggestion],
        reviewer_choices: Sequence[RankedChoice | Separator],
    ) -> BatchAssignmentOptions:
        """Ask for an assignment strategy and configure it."""
        self.prompter.notify(f"{len(candidates)} file(s) need a reviewer.", style="blue")
        mode = self.prompter.select("Choose an assignment mode:", _MODE_OPTIONS, default="byType")

        self.state = State.STRATEGY_CONFIGURATION
        if mode == "single":
            reviewer = self.prompter.select("Reviewer for all files:", _reviewer_options(reviewer_choices))
            return SingleAssignment(reviewer=reviewer)
        if mode == "byType":
            return self._configure_by_type(candidates, reviewer_choices)
        if mode == "byDirectory":
            return self._configure_by_directory(candidates, reviewer_choices)
        return IndividualAssignment()

    def _configure_by_type(
        self,
        candidates: Sequence[Suggestion],
        reviewer_choices: Sequence[RankedChoice | Separator],
    ) -> TypeAssignment:
        available = [c.id for c in _reviewers(reviewer_choices)]
        mapping: dict[str, int] = {}
        for extension, files in _group(candidates, extension_group).items():
            self.prompter.notify(f"  {extension}: {len(files)} file(s)", style="cyan")
            recommended = self.preferences.recommend_reviewer_for_extension(extension, available)
            mapping[extension] = self.prompter.select(
                f"Reviewer for {extension} files:",
                _reviewer_options(reviewer_choices, recommended),
                default=recommended,
            )
        return TypeAssignment(mapping=mapping)

    def _configure_by_directory(
        self,
        candidates: Sequence[Suggestion],
        reviewer_choices: Sequence[RankedChoice | Separator],
    ) -> DirectoryAssignment:
        mapping: dict[str, int] = {}
        for directory, files in _group(candidates, main_directory).items():
            self.prompter.notify(f"  {directory}: {len(files)} file(s)", style="cyan")
            mapping[directory] = self.prompter.select(
                f"Reviewer for the {directory} directory:",
                _reviewer_options(reviewer_choices),
            )
        return DirectoryAssignment(mapping=mapping)

    # ------------------------------------------------------------------ #
    # Execution                                                            #
    # ------------------------------------------------------------------ #

    def execute(
        self,
        candidates: Sequence[Suggestion],
        options: BatchAssignmentOptions,
        reviewer_choices: Sequence[RankedChoice | Separator],
    ) -> list[AssignmentResult]:
        """Map every candidate to a reviewer according to ``options``. Deterministic."""
        reviewers = _reviewers(reviewer_choices)
        fallback = reviewers[0].id if reviewers else None
        names = {c.id: c.name for c in reviewers}
        reported: set[str] = set()

        results: list[AssignmentResult] = []
        for candidate in candidates:
            path = candidate.relative_path
            if isinstance(options, SingleAssignment):
                reviewer_id = options.reviewer
                reason = SINGLE_REASON
            elif isinstance(options, TypeAssignment):
                extension = extension_group(path)
                if extension in options.mapping:
                    reviewer_id = options.mapping[extension]
                elif OTHER_EXTENSION in options.mapping:
                    reviewer_id = options.mapping[OTHER_EXTENSION]
                    self._report_fallback(
                        reported, extension, f"No reviewer set for {extension}; using the {OTHER_EXTENSION} reviewer."
                    )
                else:
                    reviewer_id = fallback
                    self._report_fallback(
                        reported, extension, f"No reviewer set for {extension}; using the first reviewer."
                    )
                reason = f"file type: {extension}"
            elif isinstance(options, DirectoryAssignment):
                directory = main_directory(path)
                if directory in options.mapping:
                    reviewer_id = options.mapping[directory]
                else:
                    reviewer_id = fallback
                    self._report_fallback(
                        reported, directory, f"No reviewer set for {directory}/; using the first reviewer."
                    )
                reason = f"directory: {directory}"
            else:
                reviewer_id = fallback
                reason = "default"

            results.append(
                AssignmentResult(
                    file_path=path,
                    file_name=candidate.name,
                    reviewer_id=reviewer_id,
                    reviewer_name=names.get(reviewer_id, UNKNOWN_REVIEWER),
                    reason=reason,
                )
            )
            self.preferences.record_file_type_preference(path, reviewer_id)

        return results

    def _report_fallback(self, reported: set[str], key: str, message: str) -> None:
        if key in reported:
            return
        reported.add(key)
        logger.info(message)
        self.prompter.notify(message, style="yellow")

    def assign_individually(
        self,
        candidates: Sequence[Suggestion],
        reviewer_choices: Sequence[RankedChoice | Separator],
    ) -> list[AssignmentResult]:
        """Legacy mode: ask for a reviewer file by file."""
        reviewers = _reviewers(reviewer_choices)
        available = [c.id for c in reviewers]
        names = {c.id: c.name for c in reviewers}

        results: list[AssignmentResult] = []
        for candidate in candidates:
            recommended = self.preferences.recommend_reviewer_for_extension(
                extension_group(candidate.relative_path), available
            )
            reviewer_id = self.prompter.select(
                f"Reviewer for {candidate.name} ({candidate.relative_path}):",
                _reviewer_options(reviewer_choices, recommended),
                default=recommended,
            )
            results.append(
                AssignmentResult(
                    file_path=candidate.relative_path,
                    file_name=candidate.name,
                    reviewer_id=reviewer_id,
                    reviewer_name=names.get(reviewer_id, UNKNOWN_REVIEWER),
                    reason=MANUAL_SELECTION_REASON,
                )
            )
            self.preferences.record_file_type_preference(candidate.relative_path, reviewer_id)
        return results

    # ------------------------------------------------------------------ #
    # Preview and adjustment                                               #
    # ------------------------------------------------------------------ #

    def preview(self, results: Sequence[AssignmentResult]) -> Disposition:
        """Show results grouped by reviewer and return the operator's disposition."""
        grouped: dict[int, list[AssignmentResult]] = {}
        for result in results:
            grouped.setdefault(result.reviewer_id, []).append(result)

        self.prompter.notify("\nAssignment preview:", style="bold blue")
        self.prompter.notify("─" * 60, style="dim")
        for reviewer_id, files in grouped.items():
            self.prompter.notify(
                f"{files[0].reviewer_name} (ID: {reviewer_id}, {len(files)} file(s)):", style="cyan"
            )
            for f in files:
                self.prompter.notify(f"   {f.file_name} ({f.reason})", style="dim")
        self.prompter.notify("─" * 60, style="dim")

        return self.prompter.select("What next?", _PREVIEW_OPTIONS, default=Disposition.CONFIRMED)

    def adjust(
        self,
        results: Sequence[AssignmentResult],
        reviewer_choices: Sequence[RankedChoice | Separator],
    ) -> list[AssignmentResult]:
        """Let the operator override the reviewer of selected files; others are returned unchanged."""
        adjusted = list(results)
        if not adjusted or not self.prompter.confirm("Adjust the reviewer of individual files?", default=False):
            return adjusted

        names = {c.id: c.name for c in _reviewers(reviewer_choices)}
        indexes = self.prompter.multi_select(
            "Files to adjust:",
            [Option(i, f"{r.file_name} → currently {r.reviewer_name}") for i, r in enumerate(adjusted)],
        )
        for index in indexes:
            current = adjusted[index]
            reviewer_id = self.prompter.select(
                f"New reviewer for {current.file_name}:",
                _reviewer_options(reviewer_choices),
                default=current.reviewer_id,
            )
            adjusted[index] = replace(
                current,
                reviewer_id=reviewer_id,
                reviewer_name=names.get(reviewer_id, UNKNOWN_REVIEWER),
                reason=MANUAL_OVERRIDE_REASON,
            )
            self.preferences.record_file_type_preference(current.file_path, reviewer_id)
            self.prompter.notify(f"   {current.file_name} → {adjusted[index].reviewer_name}", style="green")
        return adjusted
