"""Trigger predicates for alerts.

Everything here is pure: no I/O and no mutation of the alert.
"""

from pricesentry.models import Alert, price_change


def should_trigger(alert: Alert, new_price: float) -> bool:
    """Decide whether an alert fires at the newly observed price.

    ``percentage_change`` compares against ``alert.current_price``, the price
    stored by the previous poll, so it measures the move since the last check
    and re-bases every cycle. Without a positive stored price there is no
    baseline and it never fires.

    ``volume_spike`` always returns False: no volume feed exists yet.
    Unknown trigger types also return False.

    Args:
        alert: The alert as stored before this check.
        new_price: Price just observed.

    Returns:
        True if the alert should move to triggered.
    """
    trigger_type = alert.trigger_type
    threshold = alert.trigger_value

    if trigger_type == "price_above":
        return new_price > threshold
    elif trigger_type == "price_below":
        return new_price < threshold
    elif trigger_type == "percentage_change":
        if alert.current_price <= 0:
            return False
        change = price_change(alert.current_price, new_price)
        return abs(change.percentage) >= threshold
    elif trigger_type == "volume_spike":
        return False

    return False
