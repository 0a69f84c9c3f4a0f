"""Price lookup commands for PriceSentry CLI."""

import click
from rich.table import Table

from pricesentry.cli.common import console, error_panel, get_config
from pricesentry.errors import PriceSentryError
from pricesentry.models import ASSET_CLASSES
from pricesentry.prices.oracle import PriceOracle, default_sources


def _get_oracle(ctx: click.Context) -> PriceOracle:
    config = get_config(ctx)
    return PriceOracle(
        sources=default_sources(
            base_url=config.prices.coingecko_url,
            timeout=config.prices.timeout_seconds,
        ),
        ttl_seconds=config.prices.cache_ttl_seconds,
    )


@click.command("price")
@click.argument("symbol")
@click.option(
    "--asset-class", "-a",
    type=click.Choice(ASSET_CLASSES),
    default="crypto",
    show_default=True,
    help="Asset class of the symbol.",
)
@click.pass_context
def price(ctx: click.Context, symbol: str, asset_class: str) -> None:
    """Show the current price of a symbol.

    \b
    Examples:
      pricesentry price bitcoin
    """
    try:
        value = _get_oracle(ctx).get_price(symbol, asset_class)
    except PriceSentryError as e:
        error_panel(f"Failed to fetch price for {symbol}:", e)
        raise SystemExit(1)

    console.print(f"[bold]{symbol}[/bold] ({asset_class}): [cyan]${value:,.2f}[/cyan]")


@click.command("prices")
@click.argument("symbols", nargs=-1, required=True)
@click.option(
    "--asset-class", "-a",
    type=click.Choice(ASSET_CLASSES),
    default="crypto",
    show_default=True,
    help="Asset class of the symbols.",
)
@click.pass_context
def prices(ctx: click.Context, symbols: tuple[str, ...], asset_class: str) -> None:
    """Show current prices for several symbols in one request.

    \b
    Examples:
      pricesentry prices bitcoin ethereum solana
    """
    try:
        found = _get_oracle(ctx).get_prices(list(symbols), asset_class)
    except PriceSentryError as e:
        error_panel("Failed to fetch prices:", e)
        raise SystemExit(1)

    table = Table(title=f"Prices ({asset_class})", show_header=True, header_style="bold cyan")
    table.add_column("Symbol", style="bold")
    table.add_column("Price (USD)", justify="right")

    for symbol in symbols:
        if symbol in found:
            table.add_row(symbol, f"{found[symbol]:,.2f}")
        else:
            table.add_row(symbol, "[dim]unavailable[/dim]")

    console.print(table)
