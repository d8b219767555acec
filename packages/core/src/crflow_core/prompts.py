"""Human-input port for interactive workflows.

Workflows talk to the operator only through a ``Prompter``. The terminal
implementation is ``ClickPrompter``; tests substitute a scripted prompter so
every branch of a workflow can be driven without a terminal.

A prompter raises ``PromptCancelled`` when the operator aborts (Ctrl-C,
EOF). Workflows turn that into their own cancelled state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Sequence, Union

import click
from rich.console import Console
from rich.markup import escape

from crflow_store.models import Separator


class PromptCancelled(Exception):
    """The operator aborted a prompt."""


@dataclass(frozen=True)
class Option:
    """One selectable entry: ``label`` is displayed, ``value`` is returned."""

    value: Any
    label: str


Entry = Union[Option, Separator]


class Prompter(Protocol):
    def select(self, message: str, options: Sequence[Entry], default: Any = None) -> Any:
        """Return the value of exactly one option."""

    def multi_select(self, message: str, options: Sequence[Entry], defaults: Sequence[Any] = ()) -> list[Any]:
        """Return the values of zero or more options, in display order."""

    def confirm(self, message: str, default: bool = False) -> bool:
        """Ask a yes/no question."""

    def text(self, message: str, default: Any = None, value_type: Any = str) -> Any:
        """Ask for a free-form value converted to ``value_type``."""

    def notify(self, message: str, style: str | None = None) -> None:
        """Show a one-line status message; never blocks."""


def _selectable(options: Sequence[Entry]) -> list[Option]:
    return [o for o in options if isinstance(o, Option)]


class IndexList(click.ParamType):
    """Parses "1,3,5-7" (1-based) into a sorted list of zero-based indexes."""

    name = "index-list"

    def __init__(self, size: int):
        self.size = size

    def convert(self, value, param, ctx):
        if isinstance(value, list):
            return value
        text = str(value).strip().lower()
        if text in ("", "none", "-"):
            return []
        if text in ("all", "*"):
            return list(range(self.size))

        indexes: set[int] = set()
        for part in text.replace(" ", "").split(","):
            if not part:
                continue
            try:
                if "-" in part:
                    start, end = (int(x) for x in part.split("-", 1))
                else:
                    start = end = int(part)
            except ValueError:
                self.fail(f"{part!r} is not a number or range", param, ctx)
            if start < 1 or end > self.size or start > end:
                self.fail(f"{part!r} is outside 1-{self.size}", param, ctx)
            indexes.update(range(start - 1, end))
        return sorted(indexes)


class ClickPrompter:
    """Terminal prompter: numbered menus rendered with rich, answers read with click."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def _render(self, options: Sequence[Entry], marked: set[int] | None = None) -> list[Option]:
        marked = marked or set()
        selectable: list[Option] = []
        for entry in options:
            if isinstance(entry, Separator):
                self.console.print(f"     [dim]{entry.line}[/dim]")
                continue
            selectable.append(entry)
            marker = "[green]✓[/green]" if len(selectable) - 1 in marked else " "
            self.console.print(f"  {marker} [bold]{len(selectable):>2}[/bold]  {escape(entry.label)}", highlight=False)
        return selectable

    def select(self, message: str, options: Sequence[Entry], default: Any = None) -> Any:
        selectable = _selectable(options)
        if not selectable:
            raise ValueError("select() needs at least one option")
        self.console.print(f"\n[bold]{escape(message)}[/bold]")
        self._render(options)
        default_index = next((i + 1 for i, o in enumerate(selectable) if o.value == default), 1)
        try:
            choice = click.prompt("Choice", type=click.IntRange(1, len(selectable)), default=default_index)
        except click.Abort as e:
            raise PromptCancelled() from e
        return selectable[choice - 1].value

    def multi_select(self, message: str, options: Sequence[Entry], defaults: Sequence[Any] = ()) -> list[Any]:
        selectable = _selectable(options)
        if not selectable:
            return []
        preselected = {i for i, o in enumerate(selectable) if o.value in set(defaults)}
        self.console.print(f"\n[bold]{escape(message)}[/bold] [dim](e.g. 1,3,5-7 · all · none)[/dim]")
        self._render(options, marked=preselected)
        default_text = ",".join(str(i + 1) for i in sorted(preselected)) or "none"
        try:
            indexes = click.prompt("Selection", type=IndexList(len(selectable)), default=default_text)
        except click.Abort as e:
            raise PromptCancelled() from e
        return [selectable[i].value for i in indexes]

    def confirm(self, message: str, default: bool = False) -> bool:
        try:
            return click.confirm(message, default=default)
        except click.Abort as e:
            raise PromptCancelled() from e

    def text(self, message: str, default: Any = None, value_type: Any = str) -> Any:
        try:
            return click.prompt(message, default=default, type=value_type, show_default=default not in (None, ""))
        except click.Abort as e:
            raise PromptCancelled() from e

    def notify(self, message: str, style: str | None = None) -> None:
        if style:
            self.console.print(f"[{style}]{escape(message)}[/{style}]")
        else:
            self.console.print(escape(message))
