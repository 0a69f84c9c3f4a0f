"""Monitor command for PriceSentry CLI.

Runs the alert monitor in the foreground until interrupted, or for a
single cycle with --once.
"""

from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from pricesentry.cli.common import console, error_panel, get_config, get_data_store
from pricesentry.monitor import CycleSummary, build_monitor


def _print_summary(summary: CycleSummary) -> None:
    style = "red" if summary.loop_failed or summary.failed else "green"
    console.print(Panel(
        f"Checked:   {summary.checked}\n"
        f"Triggered: {summary.triggered}\n"
        f"Failed:    {summary.failed}"
        + ("\n\n[red]Cycle aborted, see log[/red]" if summary.loop_failed else ""),
        title="[bold]Monitor Cycle[/bold]",
        border_style=style,
    ))

    if not summary.reports:
        return

    table = Table(title="Notifications", show_header=True, header_style="bold cyan")
    table.add_column("Alert", style="dim")
    table.add_column("Channel")
    table.add_column("Result")
    for report in summary.reports:
        for channel, status in report.results.items():
            if status == "skipped":
                continue
            color = "green" if status == "sent" else "yellow" if status == "unavailable" else "red"
            detail = report.errors.get(channel)
            table.add_row(
                str(report.alert_id),
                channel,
                f"[{color}]{status}[/{color}]" + (f" ({detail})" if detail else ""),
            )
    console.print(table)


@click.command("monitor")
@click.option("--interval", "-i", type=float, default=None, help="Seconds between cycles (default from config).")
@click.option("--once", is_flag=True, help="Run a single cycle and exit.")
@click.pass_context
def monitor(ctx: click.Context, interval: Optional[float], once: bool) -> None:
    """Watch active alerts and notify owners when they fire.

    \b
    Examples:
      pricesentry monitor               # Run until Ctrl-C
      pricesentry monitor -i 30         # Check every 30 seconds
      pricesentry monitor --once        # One pass, then exit
    """
    config = get_config(ctx)
    if interval is not None:
        if interval <= 0:
            error_panel("Invalid interval:", "--interval must be positive")
            raise SystemExit(1)
        config = config.model_copy(
            update={"monitor": config.monitor.model_copy(update={"interval_seconds": interval})}
        )

    loop = build_monitor(config, store=get_data_store(ctx))

    if once:
        _print_summary(loop.run_cycle())
        return

    ack = loop.start()
    console.print(
        f"[dim]{ack.message}; checking every {loop.interval_seconds:g}s. Press Ctrl-C to stop.[/dim]"
    )
    try:
        while not loop.join(timeout=1.0):
            pass
    except KeyboardInterrupt:
        ack = loop.stop()
        console.print(f"\n[dim]{ack.message}, waiting for the current cycle to finish...[/dim]")
        loop.join()
