"""Alert monitoring: trigger evaluation and the background loop."""

from pricesentry.monitor.evaluator import should_trigger
from pricesentry.monitor.loop import (
    DEFAULT_INTERVAL_SECONDS,
    ControlAck,
    CycleSummary,
    MonitorLoop,
    build_monitor,
)

__all__ = [
    "ControlAck",
    "CycleSummary",
    "DEFAULT_INTERVAL_SECONDS",
    "MonitorLoop",
    "build_monitor",
    "should_trigger",
]
