"""CoinGecko crypto price source."""

import logging
from typing import Any, Optional

import requests

from pricesentry.errors import UpstreamUnavailable
from pricesentry.prices.base import PriceSource, parse_price

logger = logging.getLogger(__name__)

COINGECKO_API = "https://api.coingecko.com/api/v3"
QUOTE_CURRENCY = "usd"


class CoinGeckoSource(PriceSource):
    """Crypto prices from CoinGecko's ``simple/price`` endpoint.

    Symbols are CoinGecko coin ids (``bitcoin``, ``ethereum``); lookups are
    case-insensitive. Several ids are fetched in a single request.
    """

    def __init__(
        self,
        base_url: str = COINGECKO_API,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the source.

        Args:
            base_url: API base URL.
            timeout: Request timeout in seconds.
            session: Optional requests session (a new one is created otherwise).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _fetch(self, ids: list[str]) -> dict[str, Any]:
        """Run one ``simple/price`` request and return the decoded body."""
        label = ",".join(ids)
        try:
            response = self.session.get(
                f"{self.base_url}/simple/price",
                params={"ids": label, "vs_currencies": QUOTE_CURRENCY},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout as e:
            raise UpstreamUnavailable(label, "request timed out") from e
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else "unknown"
            raise UpstreamUnavailable(label, f"HTTP {status_code}") from e
        except requests.exceptions.RequestException as e:
            raise UpstreamUnavailable(label, f"request failed: {e}") from e
        except ValueError as e:
            raise UpstreamUnavailable(label, "response is not JSON") from e

        if not isinstance(data, dict):
            raise UpstreamUnavailable(label, "unexpected response shape")
        return data

    @staticmethod
    def _extract(symbol: str, data: dict[str, Any]) -> float:
        entry = data.get(symbol.lower())
        if not isinstance(entry, dict) or QUOTE_CURRENCY not in entry:
            raise UpstreamUnavailable(symbol, "missing from response")
        return parse_price(symbol, entry[QUOTE_CURRENCY])

    def get_prices(self, symbols: list[str]) -> dict[str, float]:
        if not symbols:
            return {}
        ids = sorted({symbol.lower() for symbol in symbols})
        data = self._fetch(ids)

        prices: dict[str, float] = {}
        for symbol in symbols:
            try:
                prices[symbol] = self._extract(symbol, data)
            except UpstreamUnavailable as e:
                logger.warning("%s", e)
        return prices

    def get_price(self, symbol: str) -> float:
        data = self._fetch([symbol.lower()])
        return self._extract(symbol, data)
