"""suggest command: print component/function suggestions for the branch diff."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from crflow_core.models import Classification

console = Console()

_STATUS_STYLE = {"Added": "green", "Modified": "yellow", "Deleted": "red", "Renamed": "cyan", "Copied": "cyan"}


def _status(value: str) -> str:
    style = _STATUS_STYLE.get(value, "white")
    return f"[{style}]{value}[/{style}]"


def render_classification(classification: Classification, out: Console | None = None) -> None:
    """Print the component and function suggestion tables."""
    out = out or console

    if classification.components:
        table = Table(title=f"Components ({len(classification.components)})", show_header=True)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Name", style="bold")
        table.add_column("Path")
        table.add_column("Type")
        table.add_column("Status")
        for i, c in enumerate(classification.components, 1):
            table.add_row(str(i), escape(c.name), escape(c.relative_path), c.file_type, _status(c.status.value))
        out.print(table)

    if classification.functions:
        table = Table(title=f"Functions ({len(classification.functions)})", show_header=True)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Name", style="bold")
        table.add_column("Category")
        table.add_column("Path")
        table.add_column("Status")
        for i, f in enumerate(classification.functions, 1):
            table.add_row(str(i), escape(f.name), f.category.value, escape(f.relative_path), _status(f.status.value))
        out.print(table)


def collect_classification(config: dict, workdir: str, base_ref: str | None) -> Classification:
    """Diff ``workdir`` against the base ref, drop excluded files and classify the rest."""
    from crflow_core.classifier import classify
    from crflow_core.git.repo import get_changed_files
    from crflow_core.utils.paths import filter_excluded

    files = get_changed_files(base_ref or config.get("base_ref", "main"), cwd=workdir)
    files = filter_excluded(files, config.get("exclude") or [])
    return classify(files, root=workdir)


@click.command("suggest")
@click.option(
    "--dir",
    "workdir",
    default=".",
    show_default=True,
    type=click.Path(exists=True, file_okay=False),
    help="Repository to inspect.",
)
@click.option("--base", "base_ref", default=None, help="Base ref to diff against (default: base_ref from config).")
@click.pass_context
def suggest_cmd(ctx, workdir: str, base_ref: str | None):
    """Show which changed files are component or function candidates.

    Non-interactive: nothing is submitted and the preference cache is not
    touched.
    """
    config = ctx.obj["config"]
    classification = collect_classification(config, workdir, base_ref)

    if not classification.components and not classification.functions:
        console.print("[yellow]No component or function candidates in the diff.[/yellow]")
        return

    render_classification(classification)
