"""User data model."""

from typing import Optional
from pydantic import BaseModel, Field


class AlertPreferences(BaseModel):
    """Per-channel notification opt-in flags for a user."""

    email: bool = Field(default=True, description="Receive alert emails")
    telegram: bool = Field(default=False, description="Receive Telegram messages")
    sms: bool = Field(default=False, description="Receive SMS messages")

    model_config = {"frozen": True}


class User(BaseModel):
    """Represents an alert owner and where to reach them."""

    id: Optional[int] = Field(default=None, description="Database ID")
    name: str = Field(..., min_length=1, description="Display name")
    email: Optional[str] = Field(default=None, description="Email address")
    telegram_chat_id: Optional[str] = Field(default=None, description="Telegram chat ID")
    phone: Optional[str] = Field(default=None, description="Phone number for SMS")
    alert_preferences: AlertPreferences = Field(
        default_factory=AlertPreferences, description="Channel opt-ins"
    )

    model_config = {"frozen": True}
