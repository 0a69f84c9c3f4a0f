"""CLI commands for PriceSentry.

This package provides the command-line interface for PriceSentry,
including user and alert management, price lookups and the monitor.
"""

from pricesentry.cli.main import cli, main

__all__ = ["cli", "main"]
