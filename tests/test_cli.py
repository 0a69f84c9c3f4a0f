"""Tests for the PriceSentry command line interface."""

import tempfile
from pathlib import Path
from unittest.mock import patch

import click
import pytest
import toml
from click.testing import CliRunner

from pricesentry.cli.main import LAZY_SUBCOMMANDS, cli
from pricesentry.config import load_config
from pricesentry.db.store import DataStore


@pytest.fixture
def workspace():
    """Temporary config file pointing at a temporary database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.toml"
        db_path = Path(tmpdir) / "alerts.db"
        config_path.write_text(toml.dumps({"monitor": {"db_path": str(db_path)}}))
        yield config_path, db_path


def invoke(config_path: Path, *args: str):
    return CliRunner().invoke(cli, ["--config", str(config_path), *args])


class TestCommandLoading:
    def test_every_command_resolves(self):
        ctx = click.Context(cli)
        for name in LAZY_SUBCOMMANDS:
            command = cli.get_command(ctx, name)
            assert command is not None
            assert command.name == name

    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "monitor" in result.output


class TestInit:
    def test_writes_template(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "sub" / "config.toml"
            result = invoke(config_path, "init")
            assert result.exit_code == 0
            assert config_path.exists()
            assert load_config(config_path).monitor.interval_seconds == 60

    def test_keeps_existing(self, workspace):
        config_path, _ = workspace
        before = config_path.read_text()
        result = invoke(config_path, "init")
        assert result.exit_code == 0
        assert config_path.read_text() == before


class TestUserCommands:
    def test_add_and_list(self, workspace):
        config_path, db_path = workspace
        result = invoke(config_path, "user", "add", "alice", "--email", "alice@example.com",
                        "--telegram-chat-id", "4242", "--telegram-alerts")
        assert result.exit_code == 0, result.output

        users = DataStore(db_path).list_users()
        assert len(users) == 1
        assert users[0].alert_preferences.telegram is True

        result = invoke(config_path, "user", "list")
        assert result.exit_code == 0
        assert "alice" in result.output

    def test_prefs_keeps_unset_flags(self, workspace):
        config_path, db_path = workspace
        invoke(config_path, "user", "add", "bob", "--email", "bob@example.com")

        result = invoke(config_path, "user", "prefs", "1", "--no-email", "--telegram")
        assert result.exit_code == 0, result.output
        prefs = DataStore(db_path).get_user(1).alert_preferences
        assert (prefs.email, prefs.telegram, prefs.sms) == (False, True, False)

    def test_prefs_unknown_user(self, workspace):
        config_path, _ = workspace
        result = invoke(config_path, "user", "prefs", "9", "--sms")
        assert result.exit_code == 1


class TestAlertCommands:
    def _add_user(self, config_path: Path) -> None:
        result = invoke(config_path, "user", "add", "alice", "--email", "alice@example.com")
        assert result.exit_code == 0, result.output

    def test_create_list_cancel(self, workspace):
        config_path, db_path = workspace
        self._add_user(config_path)

        result = invoke(config_path, "alert", "bitcoin", "-u", "1", "-t", "price_above",
                        "-v", "70000", "--price", "68000", "--telegram")
        assert result.exit_code == 0, result.output

        alert = DataStore(db_path).get_alert(1)
        assert alert.status == "active"
        assert alert.current_price == 68000.0
        assert alert.notification_channels.telegram is True

        result = invoke(config_path, "alerts")
        assert result.exit_code == 0
        assert "Total: 1 alerts" in result.output

        result = invoke(config_path, "alerts", "--cancel", "1")
        assert result.exit_code == 0
        assert DataStore(db_path).get_alert(1).status == "cancelled"

        result = invoke(config_path, "alerts", "--cancel", "1")
        assert result.exit_code == 1

    def test_fetches_starting_price(self, workspace):
        config_path, db_path = workspace
        self._add_user(config_path)

        with patch("pricesentry.prices.oracle.PriceOracle.get_price", return_value=67000.0):
            result = invoke(config_path, "alert", "bitcoin", "-u", "1", "-t", "price_below", "-v", "60000")

        assert result.exit_code == 0, result.output
        assert DataStore(db_path).get_alert(1).current_price == 67000.0

    def test_unsupported_class_starts_at_zero(self, workspace):
        config_path, db_path = workspace
        self._add_user(config_path)

        result = invoke(config_path, "alert", "AAPL", "-u", "1", "-a", "stock", "-t", "price_above", "-v", "200")

        assert result.exit_code == 0, result.output
        assert DataStore(db_path).get_alert(1).current_price == 0.0

    def test_unknown_owner(self, workspace):
        config_path, _ = workspace
        result = invoke(config_path, "alert", "bitcoin", "-u", "5", "-t", "price_above", "-v", "1", "--price", "1")
        assert result.exit_code == 1

    def test_invalid_trigger_type(self, workspace):
        config_path, _ = workspace
        self._add_user(config_path)
        result = invoke(config_path, "alert", "bitcoin", "-u", "1", "-t", "rsi_above", "-v", "1")
        assert result.exit_code == 2

    def test_edit_remove_and_stats(self, workspace):
        config_path, db_path = workspace
        self._add_user(config_path)
        for symbol in ("bitcoin", "ethereum"):
            invoke(config_path, "alert", symbol, "-u", "1", "-t", "price_above", "-v", "1", "--price", "1")

        result = invoke(config_path, "edit", "1", "-v", "75000")
        assert result.exit_code == 0, result.output
        assert DataStore(db_path).get_alert(1).trigger_value == 75000.0

        result = invoke(config_path, "alerts", "--remove", "2")
        assert result.exit_code == 0
        assert DataStore(db_path).get_alert(2) is None

        result = invoke(config_path, "stats")
        assert result.exit_code == 0
        assert DataStore(db_path).alert_stats() == {"active": 1, "triggered": 0, "cancelled": 0}


class TestPriceCommands:
    def test_price(self, workspace):
        config_path, _ = workspace
        with patch("pricesentry.prices.oracle.PriceOracle.get_price", return_value=68000.0):
            result = invoke(config_path, "price", "bitcoin")
        assert result.exit_code == 0
        assert "68,000.00" in result.output

    def test_prices(self, workspace):
        config_path, _ = workspace
        with patch("pricesentry.prices.oracle.PriceOracle.get_prices", return_value={"bitcoin": 1.5}):
            result = invoke(config_path, "prices", "bitcoin", "nosuchcoin")
        assert result.exit_code == 0
        assert "unavailable" in result.output

    def test_unsupported_class(self, workspace):
        config_path, _ = workspace
        result = invoke(config_path, "price", "EURUSD", "-a", "forex")
        assert result.exit_code == 1


class TestMonitorCommand:
    def test_once_with_no_alerts(self, workspace):
        config_path, _ = workspace
        result = invoke(config_path, "monitor", "--once")
        assert result.exit_code == 0, result.output
        assert "Checked" in result.output

    def test_once_triggers(self, workspace):
        config_path, db_path = workspace
        invoke(config_path, "user", "add", "alice", "--no-email-alerts")
        invoke(config_path, "alert", "bitcoin", "-u", "1", "-t", "price_above", "-v", "70000", "--price", "68000")

        with patch("pricesentry.prices.oracle.PriceOracle.get_price", return_value=71000.0):
            result = invoke(config_path, "monitor", "--once")

        assert result.exit_code == 0, result.output
        assert DataStore(db_path).get_alert(1).status == "triggered"

    def test_invalid_interval(self, workspace):
        config_path, _ = workspace
        result = invoke(config_path, "monitor", "--interval", "0", "--once")
        assert result.exit_code == 1
