"""Data models for PriceSentry."""

from pricesentry.models.alert import (
    ASSET_CLASSES,
    ALERT_STATUSES,
    TRIGGER_TYPES,
    Alert,
    AlertStatus,
    AssetClass,
    NotificationChannels,
    TriggerType,
)
from pricesentry.models.price import PriceChange, price_change
from pricesentry.models.user import AlertPreferences, User

__all__ = [
    "ASSET_CLASSES",
    "ALERT_STATUSES",
    "TRIGGER_TYPES",
    "Alert",
    "AlertPreferences",
    "AlertStatus",
    "AssetClass",
    "NotificationChannels",
    "PriceChange",
    "TriggerType",
    "User",
    "price_change",
]
