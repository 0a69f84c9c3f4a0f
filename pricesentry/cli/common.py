"""Helpers shared by the CLI command modules."""

import click
from rich.console import Console
from rich.panel import Panel

from pricesentry.config import Config, load_config
from pricesentry.db.store import DataStore
from pricesentry.log import configure_logging

console = Console()


def error_panel(title: str, error: object) -> None:
    """Print an error panel."""
    console.print(Panel(
        f"[red]{title}[/red]\n\n{error}",
        title="[bold red]Error[/bold red]",
        border_style="red",
    ))


def get_config(ctx: click.Context) -> Config:
    """Load configuration once per invocation and set up logging.

    Exits with status 1 if the config file is invalid.
    """
    obj = ctx.ensure_object(dict)
    if "config" not in obj:
        try:
            config = load_config(obj.get("config_path"))
        except ValueError as e:
            error_panel("Invalid configuration:", e)
            raise SystemExit(1)
        configure_logging(obj.get("log_level") or config.logging.level)
        obj["config"] = config
    return obj["config"]


def get_data_store(ctx: click.Context) -> DataStore:
    """Get the data store instance."""
    return DataStore(get_config(ctx).monitor.db_path)
