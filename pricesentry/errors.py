"""Exception types raised by the PriceSentry core."""


class PriceSentryError(Exception):
    """Base class for all PriceSentry errors."""


class UpstreamUnavailable(PriceSentryError):
    """A price fetch failed, timed out, or returned malformed data."""

    def __init__(self, symbol: str, reason: str):
        self.symbol = symbol
        self.reason = reason
        super().__init__(f"Price for {symbol} unavailable: {reason}")


class NotSupported(PriceSentryError):
    """The asset class has no real price source wired up."""

    def __init__(self, asset_class: str):
        self.asset_class = asset_class
        super().__init__(f"No price source for asset class '{asset_class}'")


class PersistenceFailure(PriceSentryError):
    """A read or write against the alert store failed."""


class InvalidTransition(PersistenceFailure):
    """A status write would move an alert out of a terminal state."""

    def __init__(self, alert_id: int, current: str, requested: str):
        self.alert_id = alert_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Alert {alert_id} cannot move from '{current}' to '{requested}'"
        )


class LoopFailure(PriceSentryError):
    """An error outside per-alert isolation, e.g. the bulk read of active alerts."""


class NotificationFailure(PriceSentryError):
    """Sending on a single notification channel failed."""

    def __init__(self, channel: str, reason: str):
        self.channel = channel
        self.reason = reason
        super().__init__(f"{channel} notification failed: {reason}")


class ChannelUnavailable(NotificationFailure):
    """A channel has no transport configured, or the user has no address on it."""
