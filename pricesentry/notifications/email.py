"""Email notification channel over SMTP."""

import html
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Callable, Optional

from pricesentry.config import SmtpSettings
from pricesentry.errors import ChannelUnavailable, NotificationFailure
from pricesentry.models import Alert, User, price_change
from pricesentry.models.alert import utcnow
from pricesentry.notifications.base import (
    NO_DESCRIPTION,
    NotificationChannel,
    render_text,
    trigger_label,
)

logger = logging.getLogger(__name__)


def email_subject(alert: Alert) -> str:
    """Subject line for a fired alert."""
    return f"Trade Alert: {alert.symbol} {trigger_label(alert.trigger_type)} {alert.trigger_value:g}"


def email_html(alert: Alert, current_price: float) -> str:
    """HTML body for a fired alert."""
    change = price_change(alert.current_price, current_price)
    color = "#27ae60" if change.is_positive else "#e74c3c"
    arrow = "&uarr;" if change.is_positive else "&darr;"
    sign = "+" if change.is_positive else "-"
    checked = alert.last_checked.strftime("%Y-%m-%d %H:%M:%S %Z") if alert.last_checked else "never"
    rows = [
        ("Trigger", html.escape(trigger_label(alert.trigger_type)).upper()),
        ("Trigger Value", f"{alert.trigger_value:,.2f}"),
        ("Previous Price", f"${alert.current_price:,.2f}"),
        (
            "Price Change",
            f'<span style="color: {color}">{sign}${abs(change.value):,.2f} '
            f"({abs(change.percentage):.2f}%)</span>",
        ),
        ("Description", html.escape(alert.description or NO_DESCRIPTION)),
        ("Last Checked", checked),
    ]
    table = "\n".join(
        f'<tr><td style="padding: 6px 0;"><strong>{label}:</strong></td>'
        f'<td style="padding: 6px 0;">{value}</td></tr>'
        for label, value in rows
    )
    return f"""\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #2c3e50;">Trade Alert Triggered!</h2>
  <p style="font-size: 22px; margin: 0;"><strong>{html.escape(alert.symbol)}</strong>
    <span style="color: #7f8c8d;">{html.escape(alert.asset_class.upper())}</span></p>
  <p style="font-size: 22px; margin: 4px 0;">${current_price:,.2f}
    <span style="color: {color};">{arrow} {abs(change.percentage):.2f}%</span></p>
  <table style="width: 100%; border-collapse: collapse;">
{table}
  </table>
  <p style="font-size: 12px; color: #7f8c8d;">Alert time: {utcnow().strftime("%Y-%m-%d %H:%M:%S %Z")}.
    This is an automated message, please do not reply.</p>
</div>
"""


class EmailChannel(NotificationChannel):
    """Sends alert emails through an SMTP server.

    The server accepting the message counts as delivered; nothing is retried.
    """

    name = "email"

    def __init__(
        self,
        settings: SmtpSettings,
        smtp_factory: Optional[Callable[..., smtplib.SMTP]] = None,
    ):
        """Initialize the channel.

        Args:
            settings: SMTP settings.
            smtp_factory: Optional SMTP class override, used by tests.
        """
        self.settings = settings
        if smtp_factory is not None:
            self._smtp_factory = smtp_factory
        elif settings.secure:
            self._smtp_factory = smtplib.SMTP_SSL
        else:
            self._smtp_factory = smtplib.SMTP

    def build_message(self, alert: Alert, user: User, current_price: float) -> EmailMessage:
        """Render the email for a fired alert."""
        sender = self.settings.user or f"alerts@{self.settings.host}"
        message = EmailMessage()
        message["Subject"] = email_subject(alert)
        message["From"] = formataddr((self.settings.sender_name, sender))
        message["To"] = user.email
        message.set_content(render_text(alert, current_price))
        message.add_alternative(email_html(alert, current_price), subtype="html")
        return message

    def send(self, alert: Alert, user: User, current_price: float) -> None:
        if not self.settings.configured:
            raise ChannelUnavailable(self.name, "SMTP host not configured")
        if not user.email:
            raise ChannelUnavailable(self.name, f"user {user.id} has no email address")

        message = self.build_message(alert, user, current_price)
        try:
            with self._smtp_factory(
                self.settings.host,
                self.settings.port,
                timeout=self.settings.timeout_seconds,
            ) as smtp:
                if not self.settings.secure:
                    smtp.ehlo()
                    if smtp.has_extn("starttls"):
                        smtp.starttls()
                        smtp.ehlo()
                if self.settings.user and self.settings.password:
                    smtp.login(self.settings.user, self.settings.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationFailure(self.name, str(e)) from e

        logger.info("Alert email for %s sent to user %s", alert.symbol, user.id)
