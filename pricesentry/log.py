"""Logging setup for PriceSentry.

Modules log through ``logging.getLogger(__name__)``; the CLI calls
``configure_logging`` once to route records through rich.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO", console: Console | None = None) -> None:
    """Configure root logging with a rich handler.

    Args:
        level: The log level string (DEBUG, INFO, WARNING, ERROR).
        console: Optional console to log to (stderr by default).
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        log_time_format=LOG_DATE_FORMAT,
    )
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=[handler],
        force=True,
    )

    # urllib3 logs every connection at DEBUG, including Telegram URLs with the token
    logging.getLogger("urllib3").setLevel(logging.WARNING)
