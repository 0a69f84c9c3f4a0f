"""Telegram notification channel."""

import html
import logging
from typing import Optional

import requests

from pricesentry.config import TelegramSettings
from pricesentry.errors import ChannelUnavailable, NotificationFailure
from pricesentry.models import Alert, User
from pricesentry.notifications.base import NotificationChannel, render_text

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"
MAX_MESSAGE_LENGTH = 4000


class TelegramChannel(NotificationChannel):
    """Sends alert messages through the Telegram Bot API."""

    name = "telegram"

    def __init__(
        self,
        settings: TelegramSettings,
        session: Optional[requests.Session] = None,
        base_url: str = TELEGRAM_API,
    ):
        self.settings = settings
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")

    def format_message(self, alert: Alert, current_price: float) -> str:
        """HTML-formatted message with the first line in bold."""
        lines = html.escape(render_text(alert, current_price)).split("\n")
        lines[0] = f"<b>{lines[0]}</b>"
        text = "\n".join(lines)
        if len(text) > MAX_MESSAGE_LENGTH:
            text = text[: MAX_MESSAGE_LENGTH - 3] + "..."
        return text

    def send(self, alert: Alert, user: User, current_price: float) -> None:
        if not self.settings.configured:
            raise ChannelUnavailable(self.name, "bot token not configured")
        if not user.telegram_chat_id:
            raise ChannelUnavailable(self.name, f"user {user.id} has no Telegram chat id")

        url = f"{self.base_url}/bot{self.settings.bot_token}/sendMessage"
        payload = {
            "chat_id": user.telegram_chat_id,
            "text": self.format_message(alert, current_price),
            "parse_mode": "HTML",
        }

        # Exception text may embed the URL, which carries the bot token
        try:
            response = self.session.post(url, json=payload, timeout=self.settings.timeout_seconds)
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise NotificationFailure(self.name, "request timed out") from e
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else "unknown"
            raise NotificationFailure(self.name, f"HTTP {status_code}") from e
        except requests.exceptions.RequestException as e:
            raise NotificationFailure(self.name, type(e).__name__) from e

        logger.info("Telegram alert for %s sent to user %s", alert.symbol, user.id)
