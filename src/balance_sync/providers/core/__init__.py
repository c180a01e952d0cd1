"""Core provider abstractions."""
from balance_sync.providers.core.error_mapper import ProviderErrorMapper
from balance_sync.providers.core.exceptions import (AuthRequired,
                                                    BalanceSyncError,
                                                    InvalidCredentials,
                                                    NotConnected, NotFound,
                                                    ParseError,
                                                    PersistenceError,
                                                    ReconnectRequired,
                                                    RefreshFailed,
                                                    RemoteUnavailable)
from balance_sync.providers.core.provider_abc import BalanceProviderABC

__all__ = [
    "AuthRequired",
    "BalanceProviderABC",
    "BalanceSyncError",
    "InvalidCredentials",
    "NotConnected",
    "NotFound",
    "ParseError",
    "PersistenceError",
    "ProviderErrorMapper",
    "ReconnectRequired",
    "RefreshFailed",
    "RemoteUnavailable",
]
