"""Configuration setup command for PriceSentry CLI."""

import click
from rich.panel import Panel

from pricesentry.cli.common import console
from pricesentry.config import CONFIG_PATH, create_template_config


@click.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file.")
@click.pass_context
def init(ctx: click.Context, force: bool) -> None:
    """Create a template configuration file.

    Writes ~/.config/pricesentry/config.toml (or the --config path).
    SMTP and Telegram secrets may be left empty and supplied through
    SMTP_USER, SMTP_PASS and TELEGRAM_BOT_TOKEN instead.
    """
    config_path = ctx.obj.get("config_path") or CONFIG_PATH

    if config_path.exists() and not force:
        console.print(f"[yellow]Config already exists at {config_path} (use --force to overwrite)[/yellow]")
        return

    written = create_template_config(config_path)
    console.print(Panel(
        f"[green]Configuration file created at:[/green]\n"
        f"[cyan]{written}[/cyan]\n\n"
        f"Edit it to set your SMTP server and Telegram bot token.",
        title="[bold]Configuration[/bold]",
        border_style="green",
    ))
