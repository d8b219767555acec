"""config command group: show or validate the effective configuration."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

console = Console()


@click.group("config")
def config_cmd():
    """Show or check the effective configuration."""


@config_cmd.command("show")
@click.pass_context
def show_cmd(ctx):
    """Print the merged configuration with secrets masked."""
    from crflow_core.config import masked

    config = masked(ctx.obj["config"])

    table = Table(title=f"Configuration ({ctx.obj.get('config_path', '.crflow.yml')})", show_header=True)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key in sorted(config):
        value = config[key]
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value) or "[]"
        table.add_row(key, "[dim]not set[/dim]" if value is None else str(value))
    console.print(table)


@config_cmd.command("check")
@click.option("--ping", is_flag=True, help="Also test the connection to the tracker backend.")
@click.pass_context
def check_cmd(ctx, ping: bool):
    """Verify that required settings are present."""
    from crflow_core.config import check_config

    config = ctx.obj["config"]
    missing = check_config(config)
    if missing:
        for key in missing:
            console.print(f"[red]✗[/red] {key} is not set")
        raise click.ClickException(
            "Configuration incomplete. Set the missing keys in .crflow.yml or via CRFLOW_API_BASE_URL / CRFLOW_API_KEY."
        )
    console.print("[green]✓[/green] Required settings present.")

    if ping:
        from crflow_cli.commands.create import build_tracker

        if not build_tracker(config).test_connection():
            raise click.ClickException(f"Could not reach the tracker at {config['api_base_url']}.")
        console.print(f"[green]✓[/green] Tracker reachable at {config['api_base_url']}.")
