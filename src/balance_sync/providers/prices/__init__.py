"""USD price oracles."""
from balance_sync.providers.prices.coinmarketcap import \
    CoinMarketCapPriceProvider
from balance_sync.providers.prices.oracle import (REBRANDED_TICKERS,
                                                  PriceOracle)

__all__ = ["CoinMarketCapPriceProvider", "PriceOracle", "REBRANDED_TICKERS"]
