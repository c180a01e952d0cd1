"""Price oracle interface: tickers in, USD prices and display names out."""
from typing import Protocol

from balance_sync.schemas import PriceQuotes

USD = "USD"
USD_NAME = "US Dollar"

# Retired tickers and their successors; looked up under the new symbol and
# reported back under the one the user holds.
REBRANDED_TICKERS: dict[str, str] = {
    "MATIC": "POL",
}


class PriceOracle(Protocol):
    """Anything that can quote a list of tickers in USD."""

    async def get_quotes(self, tickers: list[str]) -> PriceQuotes:
        """Return prices and names for the tickers it knows; unknown ones are absent."""
        ...

    async def close(self) -> None: ...
