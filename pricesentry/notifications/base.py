"""Base notification channel interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from pricesentry.models import Alert, User, price_change
from pricesentry.models.alert import utcnow


NO_DESCRIPTION = "No description provided"


def trigger_label(trigger_type: str) -> str:
    """Human form of a trigger type, e.g. ``price above``."""
    return trigger_type.replace("_", " ")


def render_text(alert: Alert, current_price: float, now: Optional[datetime] = None) -> str:
    """Plain-text alert message shared by the text channels.

    ``alert.current_price`` is the previous stored price and is the base of
    the reported change.
    """
    change = price_change(alert.current_price, current_price)
    sign = "+" if change.is_positive else "-"
    now = now or utcnow()
    return "\n".join([
        "Trade Alert Triggered!",
        "",
        f"Symbol: {alert.symbol}",
        f"Asset Class: {alert.asset_class}",
        f"Trigger: {trigger_label(alert.trigger_type)} {alert.trigger_value:g}",
        f"Current Price: ${current_price:,.2f}",
        f"Previous Price: ${alert.current_price:,.2f}",
        f"Change: {sign}${abs(change.value):,.2f} ({sign}{abs(change.percentage):.2f}%)",
        f"Description: {alert.description or NO_DESCRIPTION}",
        "",
        f"Time: {now.strftime('%Y-%m-%d %H:%M:%S %Z')}",
    ])


class NotificationChannel(ABC):
    """Abstract base class for notification transports.

    ``name`` must match the flag names on ``NotificationChannels`` and
    ``AlertPreferences`` (email, telegram, sms).
    """

    name: str = ""

    @abstractmethod
    def send(self, alert: Alert, user: User, current_price: float) -> None:
        """Deliver a fired alert to a user.

        Args:
            alert: The alert as read before it triggered.
            user: The alert owner.
            current_price: Price that fired the alert.

        Raises:
            ChannelUnavailable: If the channel cannot reach this user at all.
            NotificationFailure: If the transport rejected the send.
        """
        pass
