"""Alert data model."""

from datetime import datetime, timezone
from typing import Literal, Optional
from pydantic import BaseModel, Field


AssetClass = Literal["crypto", "stock", "forex", "commodity"]
TriggerType = Literal["price_above", "price_below", "percentage_change", "volume_spike"]
AlertStatus = Literal["active", "triggered", "cancelled"]

ASSET_CLASSES: tuple[str, ...] = ("crypto", "stock", "forex", "commodity")
TRIGGER_TYPES: tuple[str, ...] = (
    "price_above",
    "price_below",
    "percentage_change",
    "volume_spike",
)
ALERT_STATUSES: tuple[str, ...] = ("active", "triggered", "cancelled")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class NotificationChannels(BaseModel):
    """Channels an alert wants to be delivered on."""

    email: bool = Field(default=True, description="Deliver by email")
    telegram: bool = Field(default=False, description="Deliver by Telegram")
    sms: bool = Field(default=False, description="Deliver by SMS")

    model_config = {"frozen": True}


class Alert(BaseModel):
    """Represents a price-trigger rule owned by a user.

    ``trigger_type`` and ``asset_class`` are plain strings so that rows written
    by other tools with unexpected values still load; the evaluator treats an
    unknown trigger type as never firing and the oracle rejects an unknown
    asset class with ``NotSupported``.
    """

    id: Optional[int] = Field(default=None, description="Database ID")
    owner: int = Field(..., description="Owning user ID")
    symbol: str = Field(..., min_length=1, description="Symbol or upstream asset id")
    asset_class: str = Field(..., description="crypto, stock, forex or commodity")
    trigger_type: str = Field(..., description="Trigger condition type")
    trigger_value: float = Field(..., description="Trigger threshold")
    current_price: float = Field(default=0.0, description="Last observed price")
    status: AlertStatus = Field(default="active", description="Lifecycle status")
    notification_channels: NotificationChannels = Field(
        default_factory=NotificationChannels, description="Delivery channels"
    )
    description: Optional[str] = Field(default=None, description="Free-form note")
    created_at: datetime = Field(default_factory=utcnow, description="Creation timestamp")
    last_checked: Optional[datetime] = Field(default=None, description="Last successful check")
    triggered_at: Optional[datetime] = Field(default=None, description="Trigger timestamp")

    model_config = {"frozen": True}
