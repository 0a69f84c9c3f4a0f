"""Notification dispatcher.

Delivers a fired alert on every channel that both the alert and its owner
enabled. Each channel is attempted once; a failure on one channel is logged
and recorded, never raised, so it can neither block the other channels nor
undo the alert's triggered status.
"""

import logging
from typing import Literal, Optional

from pydantic import BaseModel, Field

from pricesentry.config import Config
from pricesentry.errors import ChannelUnavailable
from pricesentry.models import Alert, User
from pricesentry.notifications.base import NotificationChannel
from pricesentry.notifications.email import EmailChannel
from pricesentry.notifications.sms import SmsChannel
from pricesentry.notifications.telegram import TelegramChannel

logger = logging.getLogger(__name__)

DeliveryStatus = Literal["sent", "skipped", "failed", "unavailable"]


class DispatchReport(BaseModel):
    """Outcome of one dispatch, per channel."""

    alert_id: Optional[int] = Field(default=None, description="Alert ID")
    results: dict[str, DeliveryStatus] = Field(default_factory=dict, description="Channel outcomes")
    errors: dict[str, str] = Field(default_factory=dict, description="Failure reasons")

    @property
    def sent(self) -> list[str]:
        return [name for name, status in self.results.items() if status == "sent"]

    @property
    def failed(self) -> list[str]:
        return [name for name, status in self.results.items() if status == "failed"]


class NotificationDispatcher:
    """Routes fired alerts to their notification channels."""

    def __init__(self, channels: list[NotificationChannel]):
        """Initialize the dispatcher.

        Args:
            channels: Channels to consider, tried in order.
        """
        self.channels = channels

    @staticmethod
    def _enabled(alert: Alert, user: User, channel: str) -> bool:
        wanted = getattr(alert.notification_channels, channel, False)
        allowed = getattr(user.alert_preferences, channel, False)
        return bool(wanted and allowed)

    def dispatch(self, alert: Alert, user: User, current_price: float) -> DispatchReport:
        """Send a fired alert on each enabled channel.

        Args:
            alert: The alert as read before it triggered; its ``current_price``
                is the previous price used for the reported change.
            user: The alert owner.
            current_price: Price that fired the alert.

        Returns:
            Per-channel outcome. Never raises for a channel failure.
        """
        report = DispatchReport(alert_id=alert.id)

        for channel in self.channels:
            if not self._enabled(alert, user, channel.name):
                report.results[channel.name] = "skipped"
                continue

            try:
                channel.send(alert, user, current_price)
            except ChannelUnavailable as e:
                logger.warning("Alert %s not sent: %s", alert.id, e)
                report.results[channel.name] = "unavailable"
                report.errors[channel.name] = e.reason
            except Exception as e:
                logger.error("Alert %s: %s notification failed: %s", alert.id, channel.name, e)
                report.results[channel.name] = "failed"
                report.errors[channel.name] = str(e)
            else:
                report.results[channel.name] = "sent"

        return report


def build_dispatcher(config: Config) -> NotificationDispatcher:
    """Create a dispatcher with the email, Telegram and SMS channels."""
    return NotificationDispatcher([
        EmailChannel(config.smtp),
        TelegramChannel(config.telegram),
        SmsChannel(),
    ])
