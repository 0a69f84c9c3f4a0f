"""Tests for the alert monitoring loop.

**Feature: price-alerts**
"""

import tempfile
import threading
import time
from datetime import datetime, timezone
from pathlib import Path

import pytest

from pricesentry.config import Config
from pricesentry.db.store import DataStore
from pricesentry.errors import PersistenceFailure, UpstreamUnavailable
from pricesentry.models import Alert, AlertPreferences, NotificationChannels, User
from pricesentry.monitor import MonitorLoop, build_monitor
from pricesentry.monitor.loop import THREAD_NAME
from pricesentry.notifications import NotificationChannel, NotificationDispatcher
from pricesentry.prices import PriceOracle, PriceSource


NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class ScriptedSource(PriceSource):
    """Serves prices from a dict; symbols in ``failing`` raise."""

    def __init__(self, prices: dict[str, float]):
        self.prices = dict(prices)
        self.failing: set[str] = set()
        self.calls = 0

    def get_prices(self, symbols: list[str]) -> dict[str, float]:
        return {s: self.get_price(s) for s in symbols}

    def get_price(self, symbol: str) -> float:
        self.calls += 1
        if symbol in self.failing:
            raise UpstreamUnavailable(symbol, "request timed out")
        return self.prices[symbol]


class BlockingSource(ScriptedSource):
    """Holds the fetch of one symbol until released."""

    def __init__(self, prices: dict[str, float], block_on: str):
        super().__init__(prices)
        self.block_on = block_on
        self.entered = threading.Event()
        self.release = threading.Event()

    def get_price(self, symbol: str) -> float:
        if symbol == self.block_on:
            self.entered.set()
            self.release.wait(timeout=5)
        return super().get_price(symbol)


class RecordingChannel(NotificationChannel):
    def __init__(self, name: str = "email", error: Exception | None = None):
        self.name = name
        self.error = error
        self.sent: list[tuple[Alert, User, float]] = []

    def send(self, alert: Alert, user: User, current_price: float) -> None:
        self.sent.append((alert, user, current_price))
        if self.error is not None:
            raise self.error


class BrokenStore(DataStore):
    def find_by_status(self, status: str) -> list[Alert]:
        raise PersistenceFailure("database is locked")


@pytest.fixture
def store():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield DataStore(Path(tmpdir) / "test.db")


@pytest.fixture
def source():
    return ScriptedSource({"bitcoin": 69000.0, "ethereum": 3500.0})


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def owner(store):
    return store.save_user(User(
        name="alice",
        email="alice@example.com",
        alert_preferences=AlertPreferences(email=True),
    ))


def make_loop(store, source, channels, interval: float = 60.0, clock=lambda: NOW) -> MonitorLoop:
    # TTL shorter than any test gap so every cycle sees fresh prices
    clock_value = [0.0]

    def oracle_clock() -> float:
        clock_value[0] += 1000.0
        return clock_value[0]

    return MonitorLoop(
        store=store,
        users=store,
        oracle=PriceOracle(sources={"crypto": source}, ttl_seconds=1, clock=oracle_clock),
        dispatcher=NotificationDispatcher(channels),
        interval_seconds=interval,
        clock=clock,
    )


def add_alert(store, owner, symbol="bitcoin", trigger_type="price_above", value=70000.0, price=68000.0):
    return store.create_alert(Alert(
        owner=owner,
        symbol=symbol,
        asset_class="crypto",
        trigger_type=trigger_type,
        trigger_value=value,
        current_price=price,
        notification_channels=NotificationChannels(email=True),
    ))


class TestTriggerLifecycle:
    """
    **Feature: price-alerts, Property 11: At Most One Trigger Per Alert**

    *For any* alert, once the loop marks it triggered it is never checked
    or notified again.
    """

    def test_price_crossing(self, store, source, channel, owner):
        alert = add_alert(store, owner)
        loop = make_loop(store, source, [channel])

        summary = loop.run_cycle()
        checked = store.get_alert(alert.id)
        assert summary.checked == 1 and summary.triggered == 0
        assert checked.status == "active"
        assert checked.current_price == 69000.0
        assert checked.last_checked == NOW
        assert channel.sent == []

        source.prices["bitcoin"] = 71000.0
        summary = loop.run_cycle()
        fired = store.get_alert(alert.id)
        assert summary.triggered == 1
        assert fired.status == "triggered"
        assert fired.triggered_at == NOW
        assert fired.current_price == 71000.0

        assert len(channel.sent) == 1
        sent_alert, sent_user, sent_price = channel.sent[0]
        assert sent_price == 71000.0
        # Notification sees the previous price as the base of the change
        assert sent_alert.current_price == 69000.0
        assert sent_user.id == owner

        loop.run_cycle()
        assert len(channel.sent) == 1
        assert store.get_alert(alert.id).triggered_at == NOW

    def test_percentage_change_rebases(self, store, source, channel, owner):
        alert = add_alert(store, owner, trigger_type="percentage_change", value=5.0, price=69000.0)
        loop = make_loop(store, source, [channel])

        source.prices["bitcoin"] = 71000.0  # +2.9%
        loop.run_cycle()
        source.prices["bitcoin"] = 73000.0  # +2.8% over the last check
        loop.run_cycle()
        assert store.get_alert(alert.id).status == "active"

        source.prices["bitcoin"] = 69000.0  # -5.5%
        loop.run_cycle()
        assert store.get_alert(alert.id).status == "triggered"

    def test_repeated_cycles_without_crossing(self, store, source, channel, owner):
        alert = add_alert(store, owner)
        loop = make_loop(store, source, [channel])

        loop.run_cycle()
        after_first = store.get_alert(alert.id)
        for _ in range(3):
            loop.run_cycle()

        assert store.get_alert(alert.id) == after_first
        assert after_first.status == "active"
        assert channel.sent == []

    def test_cancelled_alerts_ignored(self, store, source, channel, owner):
        alert = add_alert(store, owner, value=1.0)
        store.cancel_alert(alert.id)
        summary = make_loop(store, source, [channel]).run_cycle()
        assert summary.checked == 0
        assert store.get_alert(alert.id).last_checked is None


class TestIsolation:
    """
    **Feature: price-alerts, Property 12: Per-Alert Error Isolation**

    *For any* alert whose price fetch fails, the other alerts in the cycle
    are still checked and the failing alert is left untouched.
    """

    def test_upstream_failure_skips_one_alert(self, store, source, channel, owner):
        btc = add_alert(store, owner)
        eth = add_alert(store, owner, symbol="ethereum", trigger_type="price_below", value=4000.0, price=3600.0)
        source.failing.add("bitcoin")

        summary = make_loop(store, source, [channel]).run_cycle()

        assert summary.failed == 1
        assert summary.triggered == 1
        untouched = store.get_alert(btc.id)
        assert untouched.status == "active"
        assert untouched.last_checked is None
        assert untouched.current_price == 68000.0
        assert store.get_alert(eth.id).status == "triggered"

    def test_unsupported_asset_class_skipped(self, store, source, channel, owner):
        stock = store.create_alert(Alert(
            owner=owner, symbol="AAPL", asset_class="stock",
            trigger_type="price_above", trigger_value=1.0,
        ))
        summary = make_loop(store, source, [channel]).run_cycle()
        assert summary.failed == 1
        assert store.get_alert(stock.id).status == "active"

    def test_notification_failure_keeps_trigger(self, store, source, owner, caplog):
        failing = RecordingChannel(error=RuntimeError("smtp down"))
        alert = add_alert(store, owner, value=60000.0)

        summary = make_loop(store, source, [failing]).run_cycle()

        assert summary.triggered == 1
        assert summary.reports[0].results == {"email": "failed"}
        assert store.get_alert(alert.id).status == "triggered"
        assert "delivery failed on email" in caplog.text

    def test_missing_owner(self, store, source, channel):
        alert = add_alert(store, owner=999, value=60000.0)
        summary = make_loop(store, source, [channel]).run_cycle()
        assert summary.triggered == 1
        assert summary.reports == []
        assert channel.sent == []
        assert store.get_alert(alert.id).status == "triggered"

    def test_alert_cancelled_mid_cycle(self, store, source, channel, owner):
        alert = add_alert(store, owner, value=60000.0)
        loop = make_loop(store, source, [channel])
        original = store.find_by_status

        def stale_read(status):
            alerts = original(status)
            store.cancel_alert(alert.id)
            return alerts

        store.find_by_status = stale_read
        summary = loop.run_cycle()

        assert summary.failed == 1
        assert store.get_alert(alert.id).status == "cancelled"
        assert channel.sent == []


class TestLoopFailure:
    def test_bulk_read_failure(self, source, channel):
        with tempfile.TemporaryDirectory() as tmpdir:
            loop = make_loop(BrokenStore(Path(tmpdir) / "test.db"), source, [channel])
            summary = loop.run_cycle()
        assert summary.loop_failed is True
        assert summary.checked == 0

    def _record_sleeps(self, loop: MonitorLoop, stop_after: int) -> list[float]:
        """Replace the worker's sleep with a fake clock; stop after N sleeps."""
        now = [0.0]
        delays: list[float] = []

        def fake_wait(delay):
            delays.append(delay)
            now[0] += delay
            if len(delays) == stop_after:
                loop._stop_requested.set()
            return loop._stop_requested.is_set()

        loop._monotonic = lambda: now[0]
        loop._stop_requested.wait = fake_wait
        return delays

    def test_failed_cycle_waits_double_interval(self, source, channel):
        with tempfile.TemporaryDirectory() as tmpdir:
            loop = make_loop(BrokenStore(Path(tmpdir) / "test.db"), source, [channel], interval=5.0)
            delays = self._record_sleeps(loop, stop_after=2)
            loop._run()

        assert delays == [10.0, 10.0]

    def test_normal_interval_after_success(self, store, source, channel):
        loop = make_loop(store, source, [channel], interval=5.0)
        delays = self._record_sleeps(loop, stop_after=1)
        loop._run()
        assert delays == [5.0]

    def test_clock_failure_marks_cycle_failed(self, store, source, channel):
        def broken_clock():
            raise OSError("clock unavailable")

        summary = make_loop(store, source, [channel], clock=broken_clock).run_cycle()
        assert summary.loop_failed is True
        assert summary.checked == 0

    def test_worker_survives_clock_failure(self, store, source, channel):
        def broken_clock():
            raise OSError("clock unavailable")

        loop = make_loop(store, source, [channel], clock=broken_clock)
        loop.start()
        loop.stop()
        assert loop.join(timeout=5)
        assert not loop.is_running
        assert loop.start().message == "Alert monitoring started"
        loop.stop()
        assert loop.join(timeout=5)


class TestControl:
    """
    **Feature: price-alerts, Property 13: Idempotent Start And Stop**

    *For any* sequence of start and stop calls, at most one worker thread
    exists and every call is acknowledged.
    """

    def _workers(self) -> list[threading.Thread]:
        return [t for t in threading.enumerate() if t.name == THREAD_NAME]

    def test_start_twice_one_thread(self, store, source, channel):
        loop = make_loop(store, source, [channel], interval=60.0)
        try:
            first = loop.start()
            second = loop.start()
            assert first.success and second.success
            assert second.message == "Alert monitoring already running"
            assert loop.is_running
            assert len(self._workers()) == 1
        finally:
            loop.stop()
            assert loop.join(timeout=5)
        assert not loop.is_running
        assert self._workers() == []

    def test_stop_when_stopped(self, store, source, channel):
        loop = make_loop(store, source, [channel])
        ack = loop.stop()
        assert ack.success
        assert ack.message == "Alert monitoring already stopped"
        assert loop.join(timeout=1)

    def test_stop_then_start(self, store, source, channel):
        loop = make_loop(store, source, [channel], interval=60.0)
        loop.start()
        loop.stop()
        ack = loop.start()
        try:
            assert ack.success
            assert loop.is_running
        finally:
            loop.stop()
            assert loop.join(timeout=5)

    def test_restart_keeps_cadence(self, store, source, channel, owner):
        add_alert(store, owner)
        loop = make_loop(store, source, [channel], interval=60.0)
        sleeping = threading.Event()
        original_wait = loop._stop_requested.wait

        def wait(timeout=None):
            sleeping.set()
            return original_wait(timeout)

        loop._stop_requested.wait = wait
        try:
            loop.start()
            assert sleeping.wait(timeout=5)
            loop.stop()
            assert loop.start().success
            time.sleep(0.3)
            assert source.calls == 1
            assert loop.is_running
        finally:
            loop.stop()
            assert loop.join(timeout=5)

    def test_stop_lets_running_cycle_finish(self, store, owner):
        source = BlockingSource({"bitcoin": 69000.0, "ethereum": 3500.0, "solana": 150.0}, block_on="ethereum")
        alerts = [
            add_alert(store, owner, symbol=symbol, value=1_000_000.0)
            for symbol in ("bitcoin", "ethereum", "solana")
        ]
        loop = make_loop(store, source, [RecordingChannel()], interval=60.0)
        try:
            loop.start()
            assert source.entered.wait(timeout=5)
            ack = loop.stop()
            assert ack.message == "Alert monitoring stopped"
        finally:
            source.release.set()
        assert loop.join(timeout=5)

        assert [store.get_alert(a.id).last_checked for a in alerts] == [NOW, NOW, NOW]
        assert source.calls == 3

    def test_invalid_interval(self, store, source, channel):
        with pytest.raises(ValueError):
            make_loop(store, source, [channel], interval=0)


class TestBuildMonitor:
    def test_build_from_config(self, store):
        config = Config.model_validate({"monitor": {"interval_seconds": 15}})
        loop = build_monitor(config, store=store)
        assert loop.interval_seconds == 15
        assert loop.store is store
        assert not loop.is_running
        assert [c.name for c in loop.dispatcher.channels] == ["email", "telegram", "sms"]
