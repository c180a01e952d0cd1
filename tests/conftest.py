"""Shared fixtures: in-memory database, stores and scripted providers."""
import asyncio
from datetime import timedelta

import pytest

from balance_sync.db import Provider, utcnow
from balance_sync.db.balances import BalanceStore
from balance_sync.db.credentials import CredentialStore
from balance_sync.db.sessions import init_db, make_engine
from balance_sync.providers.core import (BalanceProviderABC, RefreshFailed,
                                         RemoteUnavailable)
from balance_sync.schemas import (CredentialPayload, FetchedBalance,
                                  OAuthTokenPayload, PriceQuotes)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", echo=False)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def credential_store(engine):
    return CredentialStore(engine)


@pytest.fixture
def balance_store(engine):
    return BalanceStore(engine)


class ScriptedProvider(BalanceProviderABC):
    """Provider double that records calls and returns canned results."""

    def __init__(
        self,
        provider: Provider,
        balances: list[tuple[str, float]] | None = None,
        *,
        valid: bool = True,
        refresh_ok: bool = True,
        fetch_error: Exception | None = None,
    ) -> None:
        self.provider = provider
        self.balances = balances or []
        self.valid = valid
        self.refresh_ok = refresh_ok
        self.fetch_error = fetch_error
        self.snapshots: list[list[tuple[str, float]]] = []  # consumed one per fetch
        self.validate_calls: list[CredentialPayload] = []
        self.refresh_calls: list[CredentialPayload] = []
        self.fetch_calls: list[CredentialPayload] = []
        self.closed = False

    async def validate(self, payload):
        self.validate_calls.append(payload)
        return self.valid

    async def refresh(self, payload):
        self.refresh_calls.append(payload)
        if not self.refresh_ok:
            raise RefreshFailed()
        return OAuthTokenPayload(
            access_token=f"access-{len(self.refresh_calls)}",
            refresh_token=f"refresh-{len(self.refresh_calls)}",
            expires_at=utcnow() + timedelta(hours=2),
        )

    async def fetch_balances(self, payload):
        self.fetch_calls.append(payload)
        balances = self.snapshots.pop(0) if self.snapshots else self.balances
        await asyncio.sleep(0)
        if self.fetch_error is not None:
            raise self.fetch_error
        return [FetchedBalance(currency=c, amount=a) for c, a in balances]

    async def close(self):
        self.closed = True


class StaticPrices:
    """Price oracle double."""

    def __init__(self, prices=None, names=None, *, error: bool = False) -> None:
        self.prices = prices or {}
        self.names = names or {}
        self.error = error
        self.calls: list[list[str]] = []

    async def get_quotes(self, tickers):
        self.calls.append(list(tickers))
        if self.error:
            raise RemoteUnavailable("Failed to fetch prices", status_code=500)
        return PriceQuotes(
            prices={t: self.prices[t] for t in tickers if t in self.prices},
            names={t: self.names[t] for t in tickers if t in self.names},
        )

    async def close(self):
        pass


@pytest.fixture
def coinbase():
    return ScriptedProvider(Provider.COINBASE, [("BTC", 0.5), ("ETH", 2.0)])


@pytest.fixture
def gemini():
    return ScriptedProvider(Provider.GEMINI, [("BTC", 0.3), ("USD", 100.0)])


@pytest.fixture
def prices():
    return StaticPrices(
        {"BTC": 50000.0, "ETH": 3000.0, "USD": 1.0},
        {"BTC": "Bitcoin", "ETH": "Ethereum", "USD": "US Dollar"},
    )


@pytest.fixture
def services(engine, coinbase, gemini, prices):
    from balance_sync.services import create_services

    return create_services(
        engine,
        providers={Provider.COINBASE: coinbase, Provider.GEMINI: gemini},
        prices=prices,
    )


def _token_payload(expires_in: timedelta | None = timedelta(hours=1), refresh_token="refresh-0"):
    return OAuthTokenPayload(
        access_token="access-0",
        refresh_token=refresh_token,
        expires_at=None if expires_in is None else utcnow() + expires_in,
    )


@pytest.fixture
def make_token():
    return _token_payload
