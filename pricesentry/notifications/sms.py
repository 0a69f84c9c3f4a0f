"""SMS notification channel.

No SMS provider is wired up. The channel exists so that alerts and users
asking for SMS get an explicit ``unavailable`` result and a warning in the
logs instead of a silent success.
"""

import logging

from pricesentry.errors import ChannelUnavailable
from pricesentry.models import Alert, User, price_change
from pricesentry.notifications.base import NotificationChannel, trigger_label

logger = logging.getLogger(__name__)

MAX_SMS_LENGTH = 160


class SmsChannel(NotificationChannel):
    """SMS placeholder that never delivers."""

    name = "sms"

    def format_message(self, alert: Alert, current_price: float) -> str:
        """Single-segment text a provider would send."""
        change = price_change(alert.current_price, current_price)
        text = (
            f"{alert.symbol} {trigger_label(alert.trigger_type)} {alert.trigger_value:g}: "
            f"now ${current_price:,.2f} ({change.percentage:+.2f}%)"
        )
        if alert.description:
            text += f" - {alert.description}"
        return text[:MAX_SMS_LENGTH]

    def send(self, alert: Alert, user: User, current_price: float) -> None:
        logger.debug(
            "Undelivered SMS to %s: %s",
            user.phone or f"user {user.id}",
            self.format_message(alert, current_price),
        )
        raise ChannelUnavailable(self.name, "no SMS transport configured")
