"""Caching price oracle.

The oracle hides the per-asset-class price sources behind a time-bounded
cache keyed by ``(asset_class, symbol)``, with crypto symbols lowercased.
It is owned by one monitor and only touched from the monitor's thread, so
the cache is not locked.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from pricesentry.errors import NotSupported
from pricesentry.prices.base import PriceSource, UnsupportedSource
from pricesentry.prices.coingecko import COINGECKO_API, CoinGeckoSource

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60.0

# Asset classes whose upstream ids ignore case
CASE_INSENSITIVE_CLASSES = frozenset({"crypto"})


@dataclass
class CachedPrice:
    """A cached price and when it was fetched (oracle clock)."""

    price: float
    fetched_at: float


def default_sources(
    base_url: str = COINGECKO_API, timeout: float = 10.0
) -> dict[str, PriceSource]:
    """Build the asset-class lookup table.

    Only crypto has a real feed; the other classes are extension points.
    """
    return {
        "crypto": CoinGeckoSource(base_url=base_url, timeout=timeout),
        "stock": UnsupportedSource("stock"),
        "forex": UnsupportedSource("forex"),
        "commodity": UnsupportedSource("commodity"),
    }


class PriceOracle:
    """Current prices per (symbol, asset class) with a TTL cache."""

    def __init__(
        self,
        sources: Optional[dict[str, PriceSource]] = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the oracle.

        Args:
            sources: Mapping of asset class to price source.
            ttl_seconds: How long a fetched price is served from cache.
            clock: Monotonic clock in seconds, injectable for tests.
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.sources = sources if sources is not None else default_sources()
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: dict[tuple[str, str], CachedPrice] = {}

    def _source_for(self, asset_class: str) -> PriceSource:
        source = self.sources.get(asset_class)
        if source is None:
            raise NotSupported(asset_class)
        return source

    @staticmethod
    def _key(asset_class: str, symbol: str) -> tuple[str, str]:
        if asset_class in CASE_INSENSITIVE_CLASSES:
            symbol = symbol.lower()
        return asset_class, symbol

    def _cached(self, asset_class: str, symbol: str) -> Optional[float]:
        entry = self._cache.get(self._key(asset_class, symbol))
        if entry is None:
            return None
        if self._clock() - entry.fetched_at >= self.ttl_seconds:
            return None
        return entry.price

    def _store(self, asset_class: str, symbol: str, price: float) -> None:
        self._cache[self._key(asset_class, symbol)] = CachedPrice(price=price, fetched_at=self._clock())

    def get_price(self, symbol: str, asset_class: str) -> float:
        """Get the current price of a symbol.

        Args:
            symbol: Symbol to quote.
            asset_class: Asset class of the symbol.

        Returns:
            Price in USD, from cache when fetched within the TTL.

        Raises:
            UpstreamUnavailable: If the upstream fetch fails.
            NotSupported: If the asset class has no price feed.
        """
        cached = self._cached(asset_class, symbol)
        if cached is not None:
            logger.debug("Cache hit for %s:%s", asset_class, symbol)
            return cached

        price = self._source_for(asset_class).get_price(symbol)
        self._store(asset_class, symbol, price)
        logger.debug("Fetched %s:%s = %s", asset_class, symbol, price)
        return price

    def get_prices(self, symbols: list[str], asset_class: str) -> dict[str, float]:
        """Get prices for several symbols of one asset class.

        Cache misses are fetched in one upstream request. Symbols the upstream
        does not resolve are left out of the result.

        Raises:
            UpstreamUnavailable: If the batched request fails.
            NotSupported: If the asset class has no price feed.
        """
        prices: dict[str, float] = {}
        missing: list[str] = []
        for symbol in symbols:
            cached = self._cached(asset_class, symbol)
            if cached is not None:
                prices[symbol] = cached
            else:
                missing.append(symbol)

        if missing:
            fetched = self._source_for(asset_class).get_prices(missing)
            for symbol, price in fetched.items():
                self._store(asset_class, symbol, price)
            prices.update(fetched)
        return prices
