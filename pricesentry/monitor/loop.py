"""Alert monitoring loop.

A single background thread cycles over all active alerts: fetch a price,
evaluate the trigger, write the result back and, when an alert fires,
notify its owner. Alerts are processed one at a time, so upstream calls are
bounded to one in flight and the price cache has a single writer.
"""

import logging
import threading
import time
from datetime import datetime
from typing import Callable, Optional

from pydantic import BaseModel, Field

from pricesentry.config import Config
from pricesentry.db.store import AlertStore, DataStore, UserStore
from pricesentry.errors import LoopFailure
from pricesentry.models import Alert
from pricesentry.models.alert import utcnow
from pricesentry.monitor.evaluator import should_trigger
from pricesentry.notifications.dispatcher import (
    DispatchReport,
    NotificationDispatcher,
    build_dispatcher,
)
from pricesentry.prices.oracle import PriceOracle, default_sources

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60.0
THREAD_NAME = "pricesentry-monitor"


class ControlAck(BaseModel):
    """Acknowledgement returned by start/stop."""

    success: bool = Field(..., description="Whether the request was accepted")
    message: str = Field(..., description="Human readable outcome")

    model_config = {"frozen": True}


class CycleSummary(BaseModel):
    """What happened during one pass over the active alerts."""

    started_at: datetime = Field(default_factory=utcnow, description="Cycle start")
    checked: int = Field(default=0, ge=0, description="Alerts checked successfully")
    triggered: int = Field(default=0, ge=0, description="Alerts that fired")
    failed: int = Field(default=0, ge=0, description="Alerts skipped on error")
    loop_failed: bool = Field(default=False, description="Cycle aborted before per-alert work")
    reports: list[DispatchReport] = Field(default_factory=list, description="Dispatch outcomes")


class MonitorLoop:
    """Periodic alert checker with an idempotent start/stop control surface.

    Stopped is the initial state. ``start()`` spawns the worker thread;
    ``stop()`` asks it to exit at the next cycle boundary, letting an
    in-flight cycle finish.
    """

    def __init__(
        self,
        store: AlertStore,
        users: UserStore,
        oracle: PriceOracle,
        dispatcher: NotificationDispatcher,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the monitor.

        Args:
            store: Alert store to read and update.
            users: Source of alert owners.
            oracle: Price oracle; its cache lives as long as this monitor.
            dispatcher: Notification dispatcher for fired alerts.
            interval_seconds: Sleep between cycles.
            clock: Source of timestamps written to alerts.
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.store = store
        self.users = users
        self.oracle = oracle
        self.dispatcher = dispatcher
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._monotonic = time.monotonic

        self._lock = threading.Lock()
        # Monotonic time the next cycle is due; survives stop() and start()
        self._next_cycle_at = 0.0
        self._stop_requested = threading.Event()
        self._thread: Optional[threading.Thread] = None
        # Last spawned worker, kept after it exits so join() can wait on it
        self._worker: Optional[threading.Thread] = None

    # ==================== Control ====================

    @property
    def is_running(self) -> bool:
        """True between an accepted start() and the next stop()."""
        with self._lock:
            return self._thread is not None and not self._stop_requested.is_set()

    def start(self) -> ControlAck:
        """Start monitoring. Does nothing if already running."""
        with self._lock:
            if self._thread is not None:
                if self._stop_requested.is_set():
                    # Worker has not reached the boundary yet; keep it instead of adding one
                    self._stop_requested.clear()
                    logger.info("Stop request withdrawn, alert monitoring continues")
                    return ControlAck(success=True, message="Alert monitoring resumed")
                return ControlAck(success=True, message="Alert monitoring already running")

            self._stop_requested.clear()
            self._thread = self._worker = threading.Thread(
                target=self._run, name=THREAD_NAME, daemon=True
            )
            self._thread.start()

        logger.info("Alert monitoring started (interval %ss)", self.interval_seconds)
        return ControlAck(success=True, message="Alert monitoring started")

    def stop(self) -> ControlAck:
        """Stop monitoring at the next cycle boundary. Does nothing if stopped."""
        with self._lock:
            if self._thread is None or self._stop_requested.is_set():
                return ControlAck(success=True, message="Alert monitoring already stopped")
            self._stop_requested.set()

        logger.info("Alert monitoring stop requested")
        return ControlAck(success=True, message="Alert monitoring stopped")

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker thread to exit.

        Returns:
            True if no worker thread is alive afterwards.
        """
        with self._lock:
            thread = self._worker
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _run(self) -> None:
        """Worker thread body. Only exits through stop()."""
        while self._wait_for_next_cycle():
            summary = self.run_cycle()

            # One doubled pause after a failed cycle, normal cadence otherwise
            delay = self.interval_seconds * 2 if summary.loop_failed else self.interval_seconds
            self._next_cycle_at = self._monotonic() + delay

    def _wait_for_next_cycle(self) -> bool:
        """Sleep until the next cycle is due.

        A stop request wakes the sleep. If it is withdrawn before the worker
        sees it, the worker goes back to sleep until the same deadline.

        Returns:
            False once the worker has stopped.
        """
        while True:
            with self._lock:
                if self._stop_requested.is_set():
                    self._thread = None
                    logger.info("Alert monitoring stopped")
                    return False
            remaining = self._next_cycle_at - self._monotonic()
            if remaining <= 0:
                return True
            self._stop_requested.wait(remaining)

    # ==================== Cycle ====================

    def run_cycle(self) -> CycleSummary:
        """Check every active alert once.

        Per-alert errors are logged and counted; an error outside the
        per-alert boundary marks the cycle as failed. Never raises.
        """
        summary = CycleSummary()
        try:
            summary.started_at = self._clock()
            try:
                alerts = self.store.find_by_status("active")
            except Exception as e:
                raise LoopFailure(f"Cannot load active alerts: {e}") from e

            logger.debug("Checking %d active alerts", len(alerts))
            for alert in alerts:
                self._process(alert, summary)
        except Exception as e:
            logger.error("Monitor cycle failed: %s", e)
            summary.loop_failed = True
            return summary

        if summary.triggered or summary.failed:
            logger.info(
                "Cycle done: %d checked, %d triggered, %d failed",
                summary.checked, summary.triggered, summary.failed,
            )
        return summary

    def _process(self, alert: Alert, summary: CycleSummary) -> None:
        """Check one alert, isolating any error to it."""
        try:
            fired = self._check_alert(alert, summary)
        except Exception as e:
            summary.failed += 1
            logger.warning("Alert %s (%s:%s) skipped: %s", alert.id, alert.asset_class, alert.symbol, e)
            return

        summary.checked += 1
        if fired:
            summary.triggered += 1

    def _check_alert(self, alert: Alert, summary: CycleSummary) -> bool:
        """Fetch, evaluate and persist one alert; notify if it fired.

        Returns:
            True if the alert moved to triggered.
        """
        price = self.oracle.get_price(alert.symbol, alert.asset_class)
        fired = should_trigger(alert, price)

        now = self._clock()
        fields: dict = {"current_price": price, "last_checked": now}
        if fired:
            fields["status"] = "triggered"
            fields["triggered_at"] = now

        updated = self.store.update_fields(alert.id, fields)
        if updated is None:
            logger.warning("Alert %s was deleted during the cycle", alert.id)
            return False
        if not fired:
            return False

        logger.info(
            "Alert %s triggered: %s %s %s at %s",
            alert.id, alert.symbol, alert.trigger_type, alert.trigger_value, price,
        )
        report = self._notify(alert, price)
        if report is not None:
            summary.reports.append(report)
        return True

    def _notify(self, alert: Alert, price: float) -> Optional[DispatchReport]:
        """Dispatch a fired alert. The triggered status is already committed."""
        try:
            user = self.users.get_user(alert.owner)
            if user is None:
                logger.warning("Alert %s owner %s not found, no notification sent", alert.id, alert.owner)
                return None
            report = self.dispatcher.dispatch(alert, user, price)
        except Exception as e:
            logger.error("Alert %s notification failed: %s", alert.id, e)
            return None

        if report.failed:
            logger.warning("Alert %s: delivery failed on %s", alert.id, ", ".join(report.failed))
        if report.sent:
            logger.info("Alert %s: %s notified via %s", alert.id, user.name, ", ".join(report.sent))
        return report


def build_monitor(config: Config, store: Optional[DataStore] = None) -> MonitorLoop:
    """Assemble a monitor from configuration.

    Args:
        config: Loaded configuration.
        store: Optional store; opened from ``config.monitor.db_path`` otherwise.

    Returns:
        A stopped MonitorLoop.
    """
    store = store or DataStore(config.monitor.db_path)
    oracle = PriceOracle(
        sources=default_sources(
            base_url=config.prices.coingecko_url,
            timeout=config.prices.timeout_seconds,
        ),
        ttl_seconds=config.prices.cache_ttl_seconds,
    )
    return MonitorLoop(
        store=store,
        users=store,
        oracle=oracle,
        dispatcher=build_dispatcher(config),
        interval_seconds=config.monitor.interval_seconds,
    )
