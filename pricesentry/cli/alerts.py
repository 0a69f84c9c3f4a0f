"""Alert management commands for PriceSentry CLI.

Handles alert operations including creating, listing, editing,
cancelling and removing alerts.
"""

from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from pricesentry.cli.common import console, error_panel, get_config, get_data_store
from pricesentry.errors import InvalidTransition, PriceSentryError
from pricesentry.models import (
    ALERT_STATUSES,
    ASSET_CLASSES,
    TRIGGER_TYPES,
    Alert,
    NotificationChannels,
)

STATUS_STYLES = {
    "active": "[green]● active[/green]",
    "triggered": "[yellow]✓ triggered[/yellow]",
    "cancelled": "[dim]✗ cancelled[/dim]",
}


def describe_trigger(trigger_type: str, trigger_value: float) -> str:
    """Short human form of a trigger, e.g. ``price > 70000``."""
    if trigger_type == "price_above":
        return f"price > {trigger_value:g}"
    if trigger_type == "price_below":
        return f"price < {trigger_value:g}"
    if trigger_type == "percentage_change":
        return f"|change| >= {trigger_value:g}%"
    return f"{trigger_type.replace('_', ' ')} {trigger_value:g}"


def _fetch_price(ctx: click.Context, symbol: str, asset_class: str) -> float:
    """Look up the starting price for a new alert, 0.0 if unavailable."""
    from pricesentry.prices.oracle import PriceOracle, default_sources

    config = get_config(ctx)
    oracle = PriceOracle(
        sources=default_sources(
            base_url=config.prices.coingecko_url,
            timeout=config.prices.timeout_seconds,
        ),
        ttl_seconds=config.prices.cache_ttl_seconds,
    )
    try:
        return oracle.get_price(symbol, asset_class)
    except PriceSentryError as e:
        console.print(f"[yellow]Could not fetch starting price ({e}); using 0[/yellow]")
        return 0.0


@click.command("alert")
@click.argument("symbol")
@click.option("--user", "-u", "owner", type=int, required=True, help="Owner user ID.")
@click.option(
    "--asset-class", "-a",
    type=click.Choice(ASSET_CLASSES),
    default="crypto",
    show_default=True,
    help="Asset class of the symbol.",
)
@click.option("--type", "-t", "trigger_type", type=click.Choice(TRIGGER_TYPES), required=True, help="Trigger type.")
@click.option("--value", "-v", "trigger_value", type=float, required=True, help="Trigger threshold.")
@click.option("--price", "start_price", type=float, default=None, help="Starting price (fetched if omitted).")
@click.option("--email/--no-email", default=True, help="Notify by email.")
@click.option("--telegram/--no-telegram", default=False, help="Notify on Telegram.")
@click.option("--sms/--no-sms", default=False, help="Notify by SMS.")
@click.option("--description", "-d", default=None, help="Free-form note shown in notifications.")
@click.pass_context
def create_alert(
    ctx: click.Context,
    symbol: str,
    owner: int,
    asset_class: str,
    trigger_type: str,
    trigger_value: float,
    start_price: Optional[float],
    email: bool,
    telegram: bool,
    sms: bool,
    description: Optional[str],
) -> None:
    """Create a price alert.

    SYMBOL is the upstream asset id (for crypto, the CoinGecko id such as
    bitcoin or ethereum).

    \b
    Trigger types:
      price_above        - fires when price rises above VALUE
      price_below        - fires when price falls below VALUE
      percentage_change  - fires when price moves VALUE% between checks
      volume_spike       - accepted, never fires

    \b
    Examples:
      pricesentry alert bitcoin -u 1 -t price_above -v 70000
      pricesentry alert ethereum -u 1 -t percentage_change -v 5 --telegram
    """
    store = get_data_store(ctx)
    if store.get_user(owner) is None:
        error_panel("Failed to create alert:", f"User with ID {owner} not found")
        raise SystemExit(1)

    if start_price is None:
        start_price = _fetch_price(ctx, symbol, asset_class)

    try:
        alert = store.create_alert(Alert(
            owner=owner,
            symbol=symbol,
            asset_class=asset_class,
            trigger_type=trigger_type,
            trigger_value=trigger_value,
            current_price=start_price,
            notification_channels=NotificationChannels(email=email, telegram=telegram, sms=sms),
            description=description,
        ))
    except Exception as e:
        error_panel("Failed to create alert:", e)
        raise SystemExit(1)

    console.print(Panel(
        f"[bold green]Alert Created[/bold green]\n\n"
        f"ID:        {alert.id}\n"
        f"Symbol:    {alert.symbol} ({alert.asset_class})\n"
        f"Trigger:   {describe_trigger(alert.trigger_type, alert.trigger_value)}\n"
        f"Price:     {alert.current_price:,.2f}",
        title="[bold]New Alert[/bold]",
        border_style="green",
    ))


@click.command("alerts")
@click.option("--user", "-u", "owner", type=int, default=None, help="Only show this user's alerts.")
@click.option("--status", "-s", type=click.Choice(ALERT_STATUSES), default=None, help="Filter by status.")
@click.option("--remove", "remove_id", type=int, default=None, help="Remove alert with specified ID.")
@click.option("--cancel", "cancel_id", type=int, default=None, help="Cancel active alert with specified ID.")
@click.pass_context
def list_alerts(
    ctx: click.Context,
    owner: Optional[int],
    status: Optional[str],
    remove_id: Optional[int],
    cancel_id: Optional[int],
) -> None:
    """Display or manage alerts.

    \b
    Examples:
      pricesentry alerts                  # List all alerts
      pricesentry alerts -s active -u 1   # Active alerts of user 1
      pricesentry alerts --cancel 5       # Stop watching alert 5
      pricesentry alerts --remove 5       # Delete alert 5
    """
    store = get_data_store(ctx)

    if remove_id is not None:
        alert = store.get_alert(remove_id)
        if alert is None:
            console.print(f"[yellow]Alert with ID {remove_id} not found[/yellow]")
            return
        store.delete_alert(remove_id)
        console.print(f"[green]✓ Removed alert {remove_id} ({alert.symbol})[/green]")
        return

    if cancel_id is not None:
        try:
            alert = store.cancel_alert(cancel_id)
        except InvalidTransition as e:
            error_panel("Cannot cancel alert:", e)
            raise SystemExit(1)
        if alert is None:
            console.print(f"[yellow]Alert with ID {cancel_id} not found[/yellow]")
            return
        console.print(f"[green]✓ Cancelled alert {cancel_id} ({alert.symbol})[/green]")
        return

    alerts = store.list_alerts(owner=owner, status=status)

    if not alerts:
        console.print(Panel(
            "[dim]No alerts set. Use 'pricesentry alert SYMBOL -u USER -t TYPE -v VALUE' to create one.[/dim]",
            title="[bold]Alerts[/bold]",
            border_style="dim",
        ))
        return

    table = Table(title="Alerts", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", width=6)
    table.add_column("User", justify="right")
    table.add_column("Symbol", style="bold")
    table.add_column("Class")
    table.add_column("Trigger")
    table.add_column("Last Price", justify="right")
    table.add_column("Checked", style="dim")
    table.add_column("Status", justify="center")

    for alert in alerts:
        checked = alert.last_checked.strftime("%Y-%m-%d %H:%M") if alert.last_checked else "-"
        table.add_row(
            str(alert.id),
            str(alert.owner),
            alert.symbol,
            alert.asset_class,
            describe_trigger(alert.trigger_type, alert.trigger_value),
            f"{alert.current_price:,.2f}",
            checked,
            STATUS_STYLES.get(alert.status, alert.status),
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(alerts)} alerts[/dim]")


@click.command("edit")
@click.argument("alert_id", type=int)
@click.option("--type", "-t", "trigger_type", type=click.Choice(TRIGGER_TYPES), default=None, help="New trigger type.")
@click.option("--value", "-v", "trigger_value", type=float, default=None, help="New trigger threshold.")
@click.option("--description", "-d", default=None, help="New description.")
@click.pass_context
def edit_alert(
    ctx: click.Context,
    alert_id: int,
    trigger_type: Optional[str],
    trigger_value: Optional[float],
    description: Optional[str],
) -> None:
    """Change the trigger or description of an alert."""
    changes = {
        name: value
        for name, value in (
            ("trigger_type", trigger_type),
            ("trigger_value", trigger_value),
            ("description", description),
        )
        if value is not None
    }
    if not changes:
        console.print("[yellow]Nothing to change[/yellow]")
        return

    store = get_data_store(ctx)
    try:
        alert = store.update_alert(alert_id, **changes)
    except Exception as e:
        error_panel("Failed to edit alert:", e)
        raise SystemExit(1)

    if alert is None:
        console.print(f"[yellow]Alert with ID {alert_id} not found[/yellow]")
        raise SystemExit(1)
    console.print(
        f"[green]✓ Alert {alert_id}: {describe_trigger(alert.trigger_type, alert.trigger_value)}[/green]"
    )


@click.command("stats")
@click.option("--user", "-u", "owner", type=int, default=None, help="Only count this user's alerts.")
@click.pass_context
def stats(ctx: click.Context, owner: Optional[int]) -> None:
    """Show alert counts per status."""
    store = get_data_store(ctx)
    counts = store.alert_stats(owner)
    total = sum(counts.values())

    table = Table(title="Alert Statistics", show_header=True, header_style="bold cyan")
    table.add_column("Status")
    table.add_column("Count", justify="right")
    for status in ALERT_STATUSES:
        table.add_row(STATUS_STYLES[status], str(counts.get(status, 0)))
    table.add_row("[bold]total[/bold]", f"[bold]{total}[/bold]")

    console.print(table)
