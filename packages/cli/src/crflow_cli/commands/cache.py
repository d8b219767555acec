"""cache command group: inspect or reset the reviewer preference cache."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console()


@click.group("cache")
def cache_cmd():
    """Inspect or clear the reviewer preference cache."""


@cache_cmd.command("stats")
@click.pass_context
def stats_cmd(ctx):
    """Show what the preference cache currently remembers."""
    store = ctx.obj["store"]
    stats = store.stats()
    creator = ctx.obj["creators"].get()

    table = Table(title="Preference cache", show_header=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("Location", store.backend.describe())
    table.add_row("Recent participants", str(stats.participant_count))
    table.add_row("Recent check users", str(stats.check_user_count))
    table.add_row("File-type preferences", "yes" if stats.has_file_type_preferences else "no")
    table.add_row("Last updated", stats.last_updated.strftime("%Y-%m-%d %H:%M:%S UTC"))
    table.add_row("Saved creator", f"{escape(creator.display_name)} (ID: {creator.id})" if creator else "none")
    console.print(table)


@cache_cmd.command("clear")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def clear_cmd(ctx, yes: bool):
    """Delete the preference cache and forget the saved creator."""
    store = ctx.obj["store"]
    creators = ctx.obj["creators"]
    if not yes:
        click.confirm(f"Delete the preference cache at {store.backend.describe()}?", abort=True)

    cleared = store.clear()
    if creators.clear():
        cleared = True
    if cleared:
        console.print("[green]✓[/green] Preference cache cleared.")
    else:
        console.print("[yellow]No preference cache to clear.[/yellow]")
