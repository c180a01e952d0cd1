"""Account source providers and the price oracle.

This module provides a unified interface (BalanceProviderABC) for reading
balances from every account source a user can link:

- CoinbaseProvider: OAuth2 bearer tokens, refreshed by the token manager
- GeminiProvider: API key + HMAC-SHA384 signed requests
- LedgerImportProvider: Ledger Live CSV exports (no remote API)

CoinMarketCapPriceProvider values the resulting balances in USD.

Example:
    async with GeminiProvider() as provider:
        if await provider.validate(payload):
            for balance in await provider.fetch_balances(payload):
                print(f"{balance.currency}: {balance.amount}")
"""
from balance_sync.providers.coinbase import CoinbaseProvider
from balance_sync.providers.core import BalanceProviderABC
from balance_sync.providers.gemini import GeminiProvider
from balance_sync.providers.ledger import LedgerImportProvider
from balance_sync.providers.prices import (CoinMarketCapPriceProvider,
                                           PriceOracle)

__all__ = [
    "BalanceProviderABC",
    "CoinbaseProvider",
    "CoinMarketCapPriceProvider",
    "GeminiProvider",
    "LedgerImportProvider",
    "PriceOracle",
]
