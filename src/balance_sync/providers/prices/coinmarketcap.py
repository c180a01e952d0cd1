"""CoinMarketCap price oracle."""
import logging
import os

import httpx

from balance_sync.providers.core import RemoteUnavailable
from balance_sync.providers.prices.models import CoinMarketCapQuotesParams
from balance_sync.providers.prices.oracle import (REBRANDED_TICKERS, USD,
                                                  USD_NAME)
from balance_sync.schemas import PriceQuotes

logger = logging.getLogger(__name__)


class CoinMarketCapPriceProvider:
    """USD spot prices via the CoinMarketCap Pro API.

    USD is priced at 1.0 without a remote call; rebranded tickers are queried
    under their successor symbol and mapped back on return.
    """

    BASE_URL = "https://pro-api.coinmarketcap.com"
    QUOTES_PATH = "/v1/cryptocurrency/quotes/latest"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        rebrands: dict[str, str] | None = None,
        timeout: float = 15.0,
    ) -> None:
        """Initialize the CoinMarketCap provider.

        Args:
            api_key: CoinMarketCap API key. Defaults to COINMARKETCAP_API_KEY env var.
            client: Pre-built HTTP client (tests inject a mock transport).
            rebrands: Retired ticker -> successor ticker map.
            timeout: Request timeout in seconds for the default client.
        """
        self._api_key = api_key or os.getenv("COINMARKETCAP_API_KEY")
        self._rebrands = REBRANDED_TICKERS if rebrands is None else rebrands

        headers: dict[str, str] = {"Accept": "application/json"}
        if self._api_key:
            headers["X-CMC_PRO_API_KEY"] = self._api_key
        self._client = client or httpx.AsyncClient(
            base_url=self.BASE_URL, headers=headers, timeout=timeout
        )

    async def get_quotes(self, tickers: list[str]) -> PriceQuotes:
        """Quote tickers in USD.

        Raises:
            RemoteUnavailable: the API call failed or returned non-2xx.
        """
        quotes = PriceQuotes()
        lookup: dict[str, list[str]] = {}  # queried symbol -> tickers held
        for ticker in dict.fromkeys(tickers):
            if ticker.upper() == USD:
                quotes.prices[ticker] = 1.0
                quotes.names[ticker] = USD_NAME
                continue
            symbol = self._rebrands.get(ticker.upper(), ticker.upper())
            lookup.setdefault(symbol, []).append(ticker)
        if not lookup:
            return quotes

        params = CoinMarketCapQuotesParams().model_dump() | {"symbol": ",".join(lookup)}
        try:
            response = await self._client.get(self.QUOTES_PATH, params=params)
        except httpx.HTTPError as exc:
            raise RemoteUnavailable(f"Failed to fetch prices: {exc}") from exc
        if response.is_error:
            logger.warning(
                "CoinMarketCap API error: %s %s", response.status_code, response.reason_phrase
            )
            raise RemoteUnavailable("Failed to fetch prices", status_code=response.status_code)

        try:
            data = response.json().get("data") or {}
            for symbol, info in data.items():
                self._add_quote(quotes, lookup.get(symbol.upper(), []), info)
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Malformed CoinMarketCap response: %s", exc)
            raise RemoteUnavailable("Unexpected price response") from exc
        return quotes

    @staticmethod
    def _add_quote(quotes: PriceQuotes, tickers: list[str], info: object) -> None:
        if isinstance(info, list):  # newer API versions return a list per symbol
            info = info[0] if info else {}
        usd = ((info or {}).get("quote") or {}).get(USD) or {}
        price = usd.get("price")
        if price is None:
            return
        for ticker in tickers:
            quotes.prices[ticker] = float(price)
            if info.get("name"):
                quotes.names[ticker] = info["name"]

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
