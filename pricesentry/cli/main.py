"""Main CLI entry point for PriceSentry.

Command modules pull in requests, sqlite and the notifier stack, so the root
group only imports a module once one of its commands is asked for.
"""

import importlib
from pathlib import Path
from typing import Optional

import click


class LazyGroup(click.Group):
    """A click Group whose subcommands are imported on first use.

    Each lazy entry maps a command name to ``"package.module:attribute"``.
    """

    def __init__(self, *args, lazy_subcommands: dict[str, str] | None = None, **kwargs):
        """Initialize the lazy group.

        Args:
            lazy_subcommands: Mapping of command names to ``module:attribute`` targets.
        """
        super().__init__(*args, **kwargs)
        self.lazy_subcommands = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        return sorted(set(super().list_commands(ctx)) | set(self.lazy_subcommands))

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        command = super().get_command(ctx, cmd_name)
        if command is None and cmd_name in self.lazy_subcommands:
            command = self._import_command(cmd_name)
            self.add_command(command, cmd_name)
        return command

    def _import_command(self, cmd_name: str) -> click.Command:
        target = self.lazy_subcommands[cmd_name]
        module_path, _, attr_name = target.partition(":")
        command = getattr(importlib.import_module(module_path), attr_name, None)
        if not isinstance(command, click.Command):
            raise click.ClickException(f"{target} is not a click command")
        return command


LAZY_SUBCOMMANDS = {
    "init": "pricesentry.cli.setup:init",
    # Users
    "user": "pricesentry.cli.users:user",
    # Alerts
    "alert": "pricesentry.cli.alerts:create_alert",
    "alerts": "pricesentry.cli.alerts:list_alerts",
    "edit": "pricesentry.cli.alerts:edit_alert",
    "stats": "pricesentry.cli.alerts:stats",
    # Prices
    "price": "pricesentry.cli.prices:price",
    "prices": "pricesentry.cli.prices:prices",
    # Monitor
    "monitor": "pricesentry.cli.monitor:monitor",
}


@click.group(
    cls=LazyGroup,
    lazy_subcommands=LAZY_SUBCOMMANDS,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(package_name="pricesentry")
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.config/pricesentry/config.toml).",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override the configured log level.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], log_level: Optional[str]) -> None:
    """PriceSentry - price alerts for crypto and other assets.

    Register alerts on symbols, then run the monitor to be notified
    by email or Telegram when a condition becomes true.

    \b
    Quick Start:
      pricesentry init                               # Write a config template
      pricesentry user add alice --email a@b.c       # Register an alert owner
      pricesentry alert bitcoin -u 1 -t price_above -v 70000
      pricesentry monitor                            # Watch until Ctrl-C
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["log_level"] = log_level


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
