"""User commands for PriceSentry CLI.

Alert owners carry the contact details and channel preferences the
notifier uses when one of their alerts fires.
"""

from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from pricesentry.cli.common import console, error_panel, get_data_store
from pricesentry.models import AlertPreferences, User


def _flag(enabled: bool) -> str:
    return "[green]✓[/green]" if enabled else "[dim]-[/dim]"


@click.group("user")
def user() -> None:
    """Manage alert owners."""
    pass


@user.command("add")
@click.argument("name")
@click.option("--email", default=None, help="Email address for alert emails.")
@click.option("--telegram-chat-id", default=None, help="Telegram chat ID for bot messages.")
@click.option("--phone", default=None, help="Phone number (stored for SMS).")
@click.option("--email-alerts/--no-email-alerts", default=True, help="Receive alerts by email.")
@click.option("--telegram-alerts/--no-telegram-alerts", default=False, help="Receive alerts on Telegram.")
@click.option("--sms-alerts/--no-sms-alerts", default=False, help="Receive alerts by SMS.")
@click.pass_context
def add_user(
    ctx: click.Context,
    name: str,
    email: Optional[str],
    telegram_chat_id: Optional[str],
    phone: Optional[str],
    email_alerts: bool,
    telegram_alerts: bool,
    sms_alerts: bool,
) -> None:
    """Register a new user.

    \b
    Examples:
      pricesentry user add alice --email alice@example.com
      pricesentry user add bob --telegram-chat-id 12345 --telegram-alerts
    """
    try:
        store = get_data_store(ctx)
        new_user = User(
            name=name,
            email=email,
            telegram_chat_id=telegram_chat_id,
            phone=phone,
            alert_preferences=AlertPreferences(
                email=email_alerts,
                telegram=telegram_alerts,
                sms=sms_alerts,
            ),
        )
        user_id = store.save_user(new_user)
    except Exception as e:
        error_panel("Failed to add user:", e)
        raise SystemExit(1)

    console.print(Panel(
        f"[bold green]User Added[/bold green]\n\n"
        f"ID:       {user_id}\n"
        f"Name:     {name}\n"
        f"Email:    {email or '-'}\n"
        f"Telegram: {telegram_chat_id or '-'}",
        title="[bold]New User[/bold]",
        border_style="green",
    ))


@user.command("list")
@click.pass_context
def list_users(ctx: click.Context) -> None:
    """List registered users and their channel preferences."""
    store = get_data_store(ctx)
    users = store.list_users()

    if not users:
        console.print(Panel(
            "[dim]No users yet. Use 'pricesentry user add NAME' to create one.[/dim]",
            title="[bold]Users[/bold]",
            border_style="dim",
        ))
        return

    table = Table(title="Users", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", width=6)
    table.add_column("Name", style="bold")
    table.add_column("Email")
    table.add_column("Telegram")
    table.add_column("Mail", justify="center")
    table.add_column("TG", justify="center")
    table.add_column("SMS", justify="center")

    for u in users:
        prefs = u.alert_preferences
        table.add_row(
            str(u.id),
            u.name,
            u.email or "-",
            u.telegram_chat_id or "-",
            _flag(prefs.email),
            _flag(prefs.telegram),
            _flag(prefs.sms),
        )

    console.print(table)


@user.command("prefs")
@click.argument("user_id", type=int)
@click.option("--email/--no-email", default=None, help="Email alerts on or off.")
@click.option("--telegram/--no-telegram", default=None, help="Telegram alerts on or off.")
@click.option("--sms/--no-sms", default=None, help="SMS alerts on or off.")
@click.pass_context
def set_prefs(
    ctx: click.Context,
    user_id: int,
    email: Optional[bool],
    telegram: Optional[bool],
    sms: Optional[bool],
) -> None:
    """Change which channels a user receives alerts on.

    Options left out keep their current value.
    """
    store = get_data_store(ctx)
    existing = store.get_user(user_id)
    if existing is None:
        console.print(f"[yellow]User with ID {user_id} not found[/yellow]")
        raise SystemExit(1)

    current = existing.alert_preferences
    prefs = AlertPreferences(
        email=current.email if email is None else email,
        telegram=current.telegram if telegram is None else telegram,
        sms=current.sms if sms is None else sms,
    )
    store.set_preferences(user_id, prefs)
    console.print(
        f"[green]✓ Preferences for {existing.name}: "
        f"email={prefs.email} telegram={prefs.telegram} sms={prefs.sms}[/green]"
    )
