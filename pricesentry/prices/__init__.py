"""Price sources and the caching price oracle."""

from pricesentry.prices.base import PriceSource, UnsupportedSource, parse_price
from pricesentry.prices.coingecko import CoinGeckoSource
from pricesentry.prices.oracle import DEFAULT_TTL_SECONDS, PriceOracle

__all__ = [
    "CoinGeckoSource",
    "DEFAULT_TTL_SECONDS",
    "PriceOracle",
    "PriceSource",
    "UnsupportedSource",
    "parse_price",
]
