"""Factory wiring stores, providers and services into one object graph."""
import logging
from dataclasses import dataclass, field

from sqlalchemy.engine import Engine

from balance_sync.db import Provider
from balance_sync.db.balances import BalanceStore
from balance_sync.db.credentials import CredentialStore
from balance_sync.db.sessions import get_engine, init_db
from balance_sync.providers import (BalanceProviderABC, CoinbaseProvider,
                                    CoinMarketCapPriceProvider,
                                    GeminiProvider, LedgerImportProvider,
                                    PriceOracle)
from balance_sync.services.connections import ConnectionLifecycleManager
from balance_sync.services.export import ExportService
from balance_sync.services.portfolio import PortfolioService
from balance_sync.services.reconciliation import BalanceReconciliationEngine
from balance_sync.services.token_refresh import TokenRefreshManager

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the HTTP layer and the CLI need, built once per process."""

    credentials: CredentialStore
    balances: BalanceStore
    providers: dict[Provider, BalanceProviderABC]
    prices: PriceOracle
    token_manager: TokenRefreshManager
    reconciliation: BalanceReconciliationEngine
    connections: ConnectionLifecycleManager
    portfolio: PortfolioService
    export: ExportService
    _closed: bool = field(default=False, repr=False)

    async def close(self) -> None:
        """Finish background syncs, then close provider HTTP clients."""
        if self._closed:
            return
        self._closed = True
        await self.connections.drain()
        for resource in (*self.providers.values(), self.prices):
            try:
                await resource.close()
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Error closing %s: %s", type(resource).__name__, exc)


def create_services(
    engine: Engine | None = None,
    *,
    providers: dict[Provider, BalanceProviderABC] | None = None,
    prices: PriceOracle | None = None,
    create_tables: bool = True,
) -> Services:
    """Create the service graph.

    Args:
        engine: Database engine; defaults to the DATABASE_URL engine.
        providers: Remote adapters by provider; defaults to Coinbase + Gemini.
        prices: Price oracle; defaults to CoinMarketCap.
        create_tables: Run init_db on the engine first.
    """
    engine = engine or get_engine()
    if create_tables:
        init_db(engine)
    credentials = CredentialStore(engine)
    balances = BalanceStore(engine)
    if providers is None:
        providers = {
            Provider.COINBASE: CoinbaseProvider(),
            Provider.GEMINI: GeminiProvider(),
        }
    prices = prices or CoinMarketCapPriceProvider()
    token_manager = TokenRefreshManager(credentials, providers)
    reconciliation = BalanceReconciliationEngine(credentials, balances, providers, token_manager)
    connections = ConnectionLifecycleManager(
        credentials, balances, providers, reconciliation, LedgerImportProvider()
    )
    portfolio = PortfolioService(credentials, balances, prices)
    return Services(
        credentials=credentials,
        balances=balances,
        providers=providers,
        prices=prices,
        token_manager=token_manager,
        reconciliation=reconciliation,
        connections=connections,
        portfolio=portfolio,
        export=ExportService(portfolio),
    )
