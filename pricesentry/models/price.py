"""Price change value type."""

from dataclasses import dataclass


@dataclass(frozen=True)
class PriceChange:
    """Move from a previous price to the current one."""

    value: float
    percentage: float

    @property
    def is_positive(self) -> bool:
        return self.value >= 0


def price_change(previous: float, current: float) -> PriceChange:
    """Compute the absolute and percentage change between two prices.

    The percentage is 0 when there is no positive previous price.
    """
    change = current - previous
    percentage = (change / previous) * 100 if previous > 0 else 0.0
    return PriceChange(value=change, percentage=percentage)
