"""Coinbase OAuth provider."""
from balance_sync.providers.coinbase.provider import CoinbaseProvider

__all__ = ["CoinbaseProvider"]
