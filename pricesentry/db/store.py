"""Alert and user storage for PriceSentry.

``AlertStore`` and ``UserStore`` are the contracts the monitor depends on;
``DataStore`` is the SQLite implementation used by the CLI.
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional

from pricesentry.errors import InvalidTransition, PersistenceFailure
from pricesentry.models import (
    ALERT_STATUSES,
    ASSET_CLASSES,
    TRIGGER_TYPES,
    Alert,
    AlertPreferences,
    NotificationChannels,
    User,
)

logger = logging.getLogger(__name__)

# Fields the monitor and the user-facing commands may write after creation
MUTABLE_FIELDS = {
    "trigger_type",
    "trigger_value",
    "current_price",
    "status",
    "notification_channels",
    "last_checked",
    "triggered_at",
    "description",
}

TERMINAL_STATUSES = {"triggered", "cancelled"}

_ALERT_COLUMNS = """
    id, owner, symbol, asset_class, trigger_type, trigger_value, current_price,
    status, notify_email, notify_telegram, notify_sms, description,
    created_at, last_checked, triggered_at
"""

_USER_COLUMNS = """
    id, name, email, telegram_chat_id, phone, pref_email, pref_telegram, pref_sms
"""


class AlertStore(ABC):
    """Durable storage for alert records, queryable by status."""

    @abstractmethod
    def find_by_status(self, status: str) -> list[Alert]:
        """Get all alerts with the given status.

        Raises:
            PersistenceFailure: If the store cannot be read.
        """
        pass

    @abstractmethod
    def update_fields(self, alert_id: int, fields: dict[str, Any]) -> Optional[Alert]:
        """Update some fields of a single alert.

        Args:
            alert_id: Alert ID.
            fields: Mapping of field name to new value.

        Returns:
            The updated alert, or None if no alert has this ID.

        Raises:
            InvalidTransition: If the write would move a terminal alert.
            PersistenceFailure: If the write fails.
        """
        pass


class UserStore(ABC):
    """Read access to alert owners and their channel preferences."""

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]:
        """Get a user by ID, or None if unknown."""
        pass


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_alert(row: sqlite3.Row) -> Alert:
    return Alert(
        id=row["id"],
        owner=row["owner"],
        symbol=row["symbol"],
        asset_class=row["asset_class"],
        trigger_type=row["trigger_type"],
        trigger_value=row["trigger_value"],
        current_price=row["current_price"],
        status=row["status"],
        notification_channels=NotificationChannels(
            email=bool(row["notify_email"]),
            telegram=bool(row["notify_telegram"]),
            sms=bool(row["notify_sms"]),
        ),
        description=row["description"],
        created_at=datetime.fromisoformat(row["created_at"]),
        last_checked=_from_iso(row["last_checked"]),
        triggered_at=_from_iso(row["triggered_at"]),
    )


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        telegram_chat_id=row["telegram_chat_id"],
        phone=row["phone"],
        alert_preferences=AlertPreferences(
            email=bool(row["pref_email"]),
            telegram=bool(row["pref_telegram"]),
            sms=bool(row["pref_sms"]),
        ),
    )


def _to_columns(fields: dict[str, Any]) -> dict[str, Any]:
    """Translate model field values into column values."""
    columns: dict[str, Any] = {}
    for name, value in fields.items():
        if name == "notification_channels":
            channels = (
                value
                if isinstance(value, NotificationChannels)
                else NotificationChannels(**value)
            )
            columns["notify_email"] = int(channels.email)
            columns["notify_telegram"] = int(channels.telegram)
            columns["notify_sms"] = int(channels.sms)
        elif name in ("last_checked", "triggered_at"):
            columns[name] = _to_iso(value)
        elif name in ("current_price", "trigger_value"):
            columns[name] = float(value)
        else:
            columns[name] = value
    return columns


class DataStore(AlertStore, UserStore):
    """SQLite-based data store for PriceSentry."""

    REQUIRED_TABLES = ["alerts", "users"]

    def __init__(self, db_path: Path):
        """Initialize the data store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._ensure_db_dir()
        self._init_schema()

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success and map sqlite errors."""
        try:
            conn = self._get_connection()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Cannot open {self.db_path}: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceFailure(str(e)) from e
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema on first run."""
        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT,
                    telegram_chat_id TEXT,
                    phone TEXT,
                    pref_email INTEGER NOT NULL DEFAULT 1,
                    pref_telegram INTEGER NOT NULL DEFAULT 0,
                    pref_sms INTEGER NOT NULL DEFAULT 0
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS alerts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner INTEGER NOT NULL,
                    symbol TEXT NOT NULL,
                    asset_class TEXT NOT NULL,
                    trigger_type TEXT NOT NULL,
                    trigger_value REAL NOT NULL,
                    current_price REAL NOT NULL DEFAULT 0,
                    status TEXT NOT NULL DEFAULT 'active',
                    notify_email INTEGER NOT NULL DEFAULT 1,
                    notify_telegram INTEGER NOT NULL DEFAULT 0,
                    notify_sms INTEGER NOT NULL DEFAULT 0,
                    description TEXT,
                    created_at TEXT NOT NULL,
                    last_checked TEXT,
                    triggered_at TEXT
                )
            """)

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_alerts_owner_status ON alerts (owner, status)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_alerts_symbol ON alerts (symbol, asset_class)"
            )

    def get_tables(self) -> list[str]:
        """Get list of all tables in the database."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            return [row["name"] for row in cursor.fetchall()]

    # ==================== Users ====================

    def save_user(self, user: User) -> int:
        """Save a new user.

        Args:
            user: User to save.

        Returns:
            The ID of the saved user.
        """
        prefs = user.alert_preferences
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO users
                (name, email, telegram_chat_id, phone, pref_email, pref_telegram, pref_sms)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user.name,
                    user.email,
                    user.telegram_chat_id,
                    user.phone,
                    int(prefs.email),
                    int(prefs.telegram),
                    int(prefs.sms),
                ),
            )
            return cursor.lastrowid or 0

    def get_user(self, user_id: int) -> Optional[User]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?",
                (user_id,),
            )
            row = cursor.fetchone()
            return _row_to_user(row) if row else None

    def list_users(self) -> list[User]:
        """Get all users ordered by ID."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_USER_COLUMNS} FROM users ORDER BY id")
            return [_row_to_user(row) for row in cursor.fetchall()]

    def set_preferences(self, user_id: int, preferences: AlertPreferences) -> Optional[User]:
        """Replace a user's channel preferences.

        Returns:
            The updated user, or None if no user has this ID.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE users SET pref_email = ?, pref_telegram = ?, pref_sms = ?
                WHERE id = ?
                """,
                (
                    int(preferences.email),
                    int(preferences.telegram),
                    int(preferences.sms),
                    user_id,
                ),
            )
            if cursor.rowcount == 0:
                return None
        return self.get_user(user_id)

    # ==================== Alerts ====================

    def create_alert(self, alert: Alert) -> Alert:
        """Save a new alert.

        The alert always starts out active, whatever status it carries.

        Args:
            alert: Alert to save.

        Returns:
            The stored alert with its ID.

        Raises:
            ValueError: If the asset class or trigger type is not recognised.
        """
        if alert.asset_class not in ASSET_CLASSES:
            raise ValueError(f"Unknown asset class: {alert.asset_class}")
        if alert.trigger_type not in TRIGGER_TYPES:
            raise ValueError(f"Unknown trigger type: {alert.trigger_type}")

        channels = alert.notification_channels
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO alerts
                (owner, symbol, asset_class, trigger_type, trigger_value, current_price,
                 status, notify_email, notify_telegram, notify_sms, description,
                 created_at, last_checked)
                VALUES (?, ?, ?, ?, ?, ?, 'active', ?, ?, ?, ?, ?, ?)
                """,
                (
                    alert.owner,
                    alert.symbol,
                    alert.asset_class,
                    alert.trigger_type,
                    alert.trigger_value,
                    alert.current_price,
                    int(channels.email),
                    int(channels.telegram),
                    int(channels.sms),
                    alert.description,
                    alert.created_at.isoformat(),
                    _to_iso(alert.last_checked),
                ),
            )
            alert_id = cursor.lastrowid or 0

        logger.debug("Created alert %s for %s (%s)", alert_id, alert.symbol, alert.asset_class)
        return alert.model_copy(update={"id": alert_id, "status": "active", "triggered_at": None})

    def get_alert(self, alert_id: int) -> Optional[Alert]:
        """Get an alert by ID.

        Args:
            alert_id: Alert ID.

        Returns:
            Alert if found, None otherwise.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_ALERT_COLUMNS} FROM alerts WHERE id = ?",
                (alert_id,),
            )
            row = cursor.fetchone()
            return _row_to_alert(row) if row else None

    def list_alerts(
        self, owner: Optional[int] = None, status: Optional[str] = None
    ) -> list[Alert]:
        """Get alerts, newest first.

        Args:
            owner: Optional owner filter.
            status: Optional status filter.

        Returns:
            List of alerts.
        """
        clauses = []
        params: list[Any] = []
        if owner is not None:
            clauses.append("owner = ?")
            params.append(owner)
        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_ALERT_COLUMNS} FROM alerts {where} ORDER BY created_at DESC, id DESC",
                params,
            )
            return [_row_to_alert(row) for row in cursor.fetchall()]

    def find_by_status(self, status: str) -> list[Alert]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_ALERT_COLUMNS} FROM alerts WHERE status = ? ORDER BY id",
                (status,),
            )
            return [_row_to_alert(row) for row in cursor.fetchall()]

    def update_fields(self, alert_id: int, fields: dict[str, Any]) -> Optional[Alert]:
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        requested = fields.get("status")
        if requested is not None and requested not in TERMINAL_STATUSES:
            raise ValueError(f"Status can only move to triggered or cancelled, not '{requested}'")
        if "triggered_at" in fields and requested != "triggered":
            raise ValueError("triggered_at is only set together with status 'triggered'")
        if not fields:
            return self.get_alert(alert_id)

        columns = _to_columns(fields)
        assignments = ", ".join(f"{name} = ?" for name in columns)
        params = list(columns.values()) + [alert_id]
        query = f"UPDATE alerts SET {assignments} WHERE id = ?"
        if requested is not None:
            # Status writes only succeed while the alert is still active
            query += " AND status = 'active'"

        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            updated = cursor.rowcount

        if updated == 0:
            current = self.get_alert(alert_id)
            if current is None:
                return None
            raise InvalidTransition(alert_id, current.status, requested or "")
        return self.get_alert(alert_id)

    def update_alert(self, alert_id: int, **changes: Any) -> Optional[Alert]:
        """Apply a user edit to an alert.

        Only the trigger, channels and description may change; symbol and
        asset class are fixed at creation.

        Returns:
            The updated alert, or None if not found.
        """
        allowed = {"trigger_type", "trigger_value", "notification_channels", "description"}
        rejected = set(changes) - allowed
        if rejected:
            raise ValueError(f"Fields cannot be edited: {', '.join(sorted(rejected))}")
        if "trigger_type" in changes and changes["trigger_type"] not in TRIGGER_TYPES:
            raise ValueError(f"Unknown trigger type: {changes['trigger_type']}")
        return self.update_fields(alert_id, changes)

    def cancel_alert(self, alert_id: int) -> Optional[Alert]:
        """Cancel an active alert.

        Raises:
            InvalidTransition: If the alert already triggered or was cancelled.
        """
        return self.update_fields(alert_id, {"status": "cancelled"})

    def delete_alert(self, alert_id: int) -> bool:
        """Delete an alert.

        Args:
            alert_id: ID of the alert to delete.

        Returns:
            True if a row was deleted.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM alerts WHERE id = ?", (alert_id,))
            return cursor.rowcount > 0

    # ==================== Stats ====================

    def alert_stats(self, owner: Optional[int] = None) -> dict[str, int]:
        """Count alerts per status.

        Args:
            owner: Optional owner filter.

        Returns:
            Mapping of every status to its alert count.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            if owner is not None:
                cursor.execute(
                    "SELECT status, COUNT(*) AS count FROM alerts WHERE owner = ? GROUP BY status",
                    (owner,),
                )
            else:
                cursor.execute("SELECT status, COUNT(*) AS count FROM alerts GROUP BY status")
            stats = {status: 0 for status in ALERT_STATUSES}
            for row in cursor.fetchall():
                stats[row["status"]] = row["count"]
            return stats
