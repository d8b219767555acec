"""CLI entry point for crflow.

Commands:
  create   classify the branch diff, pick reviewers and submit a code-review request
  suggest  print the component/function suggestions for the branch diff
  cache    inspect or clear the reviewer preference cache
  config   show or check the effective configuration
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
import yaml
from rich.console import Console

from crflow_cli.commands.cache import cache_cmd
from crflow_cli.commands.config import config_cmd
from crflow_cli.commands.create import create_cmd
from crflow_cli.commands.suggest import suggest_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the preference store from .crflow.yml settings.

    Backend selection:
      cache: json   → JsonFileStore (cache_path or ~/.crflow/preferences.json)
      cache: none   → NoOpStore     (nothing is remembered between runs)

    This factory lives in cli.py so neither crflow_core nor crflow_store
    know about the CLI config format.
    """
    from crflow_store.noop import NoOpStore
    from crflow_store.preferences import PreferenceStore

    cache_type = config.get("cache", "json")

    if cache_type == "json":
        from crflow_store.json_file import JsonFileStore

        backend = JsonFileStore(path=config.get("cache_path"))
    else:
        if cache_type not in ("none", "noop"):
            console.print(f"[yellow]Unknown cache type {cache_type!r}. Preferences will not be remembered.[/yellow]")
        backend = NoOpStore()

    return PreferenceStore(
        backend,
        expiry_days=int(config.get("cache_expiry_days", 30)),
        recent_limit=int(config.get("recent_limit", 20)),
        notify=lambda message: console.print(f"[yellow]{message}[/yellow]"),
    )


def _build_creator_store(config: dict):
    """The saved creator sits next to the JSON preference cache, or nowhere when caching is off."""
    from crflow_store.creator import CREATOR_FILENAME, CreatorStore
    from crflow_store.json_file import JsonFileStore
    from crflow_store.noop import NoOpStore

    if config.get("cache", "json") != "json":
        return CreatorStore(NoOpStore())
    preferences_path = JsonFileStore(path=config.get("cache_path")).path
    return CreatorStore(JsonFileStore(path=preferences_path.with_name(CREATOR_FILENAME)))


@click.group()
@click.version_option(
    version=importlib.metadata.version("crflow"),
    prog_name="crflow",
)
@click.option(
    "--config",
    "config_path",
    default=".crflow.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="CRFLOW_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Create code-review requests with batch reviewer assignment."""
    from crflow_core.config import load_config

    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)

    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except (OSError, yaml.YAMLError) as e:
        raise click.ClickException(f"Could not read {config_path}: {e}") from e

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["creators"] = _build_creator_store(config)
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path
    ctx.call_on_close(store.backend.close)


main.add_command(create_cmd)
main.add_command(suggest_cmd)
main.add_command(cache_cmd)
main.add_command(config_cmd)
