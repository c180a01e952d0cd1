"""Aggregated, USD-valued view over every connected provider."""
import logging
from collections.abc import Iterable

from balance_sync.db.balances import BalanceStore
from balance_sync.db.credentials import CredentialStore
from balance_sync.providers.prices import PriceOracle
from balance_sync.schemas import (AggregatedBalance, BalanceRow,
                                  PortfolioSummary, PriceQuotes)

logger = logging.getLogger(__name__)


def aggregate_balances(
    rows: Iterable[BalanceRow], quotes: PriceQuotes | None = None
) -> list[AggregatedBalance]:
    """Sum amounts per currency across providers and value them in USD.

    Zero rows are dropped; a currency without a price is valued at 0.
    Result is sorted by USD value, largest first.
    """
    quotes = quotes or PriceQuotes()
    by_currency: dict[str, AggregatedBalance] = {}
    for row in rows:
        if row.amount == 0:
            continue
        item = by_currency.get(row.currency)
        if item is None:
            item = by_currency[row.currency] = AggregatedBalance(
                currency=row.currency, total_amount=0.0, exchanges=[]
            )
        item.total_amount += row.amount
        if row.provider not in item.exchanges:
            item.exchanges.append(row.provider)

    for item in by_currency.values():
        item.price = quotes.prices.get(item.currency, 0.0)
        item.name = quotes.names.get(item.currency)
        item.usd_value = item.total_amount * item.price
    return sorted(by_currency.values(), key=lambda b: b.usd_value, reverse=True)


class PortfolioService:
    """Reads the balance snapshot of connected providers and values it."""

    def __init__(
        self,
        credentials: CredentialStore,
        balances: BalanceStore,
        prices: PriceOracle,
    ) -> None:
        self._credentials = credentials
        self._balances = balances
        self._prices = prices

    def list_balances(self, user_id: str) -> list[BalanceRow]:
        """Non-zero rows of providers that are still connected."""
        connected = self._credentials.connected_providers(user_id)
        return self._balances.list_for_user(user_id, connected)

    async def get_quotes(self, currencies: list[str]) -> PriceQuotes:
        """Quote currencies through the oracle. Raises RemoteUnavailable."""
        return await self._prices.get_quotes(currencies)

    async def get_summary(self, user_id: str) -> PortfolioSummary:
        """Aggregated balance sheet valued at current prices."""
        rows = self.list_balances(user_id)
        currencies = sorted({r.currency for r in rows})
        quotes = await self._prices.get_quotes(currencies) if currencies else PriceQuotes()
        aggregated = aggregate_balances(rows, quotes)
        return PortfolioSummary(
            balances=aggregated,
            total_usd=sum(b.usd_value for b in aggregated),
        )
