"""Alert notification channels and dispatcher."""

from pricesentry.notifications.base import NotificationChannel
from pricesentry.notifications.dispatcher import (
    DispatchReport,
    NotificationDispatcher,
    build_dispatcher,
)
from pricesentry.notifications.email import EmailChannel
from pricesentry.notifications.sms import SmsChannel
from pricesentry.notifications.telegram import TelegramChannel

__all__ = [
    "DispatchReport",
    "EmailChannel",
    "NotificationChannel",
    "NotificationDispatcher",
    "SmsChannel",
    "TelegramChannel",
    "build_dispatcher",
]
