"""Base price source interface for PriceSentry."""

import math
from abc import ABC, abstractmethod
from typing import Any

from pricesentry.errors import NotSupported, UpstreamUnavailable


def parse_price(symbol: str, value: Any) -> float:
    """Validate a raw upstream price value.

    Args:
        symbol: Symbol the value belongs to, for the error message.
        value: Raw value from a decoded response.

    Returns:
        The price as a float.

    Raises:
        UpstreamUnavailable: If the value is missing, not a number, or not finite.
    """
    # bool is an int subclass; a JSON true is not a price
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise UpstreamUnavailable(symbol, f"non-numeric price {value!r}")
    price = float(value)
    if not math.isfinite(price):
        raise UpstreamUnavailable(symbol, f"non-finite price {value!r}")
    return price


class PriceSource(ABC):
    """Abstract base class for per-asset-class price sources.

    All sources quote in USD.
    """

    @abstractmethod
    def get_prices(self, symbols: list[str]) -> dict[str, float]:
        """Get current prices for several symbols in one request.

        Args:
            symbols: Symbols to quote.

        Returns:
            Mapping of symbol to price for the symbols the upstream resolved.
            Symbols that are missing or malformed in the response are left out.

        Raises:
            UpstreamUnavailable: If the request itself fails.
            NotSupported: If the source has no real upstream.
        """
        pass

    @abstractmethod
    def get_price(self, symbol: str) -> float:
        """Get the current price for a symbol.

        Args:
            symbol: Symbol to quote.

        Returns:
            Price in USD.

        Raises:
            UpstreamUnavailable: If the fetch fails or the symbol has no valid price.
            NotSupported: If the source has no real upstream.
        """
        pass


class UnsupportedSource(PriceSource):
    """Placeholder for asset classes without a price feed.

    Never issues a request; every lookup raises ``NotSupported``.
    """

    def __init__(self, asset_class: str):
        self.asset_class = asset_class

    def get_prices(self, symbols: list[str]) -> dict[str, float]:
        raise NotSupported(self.asset_class)

    def get_price(self, symbol: str) -> float:
        raise NotSupported(self.asset_class)
