"""Service layer: credential lifecycle, reconciliation and the aggregated views."""
from balance_sync.services.connections import ConnectionLifecycleManager
from balance_sync.services.export import ExportService
from balance_sync.services.factory import Services, create_services
from balance_sync.services.portfolio import PortfolioService, aggregate_balances
from balance_sync.services.reconciliation import BalanceReconciliationEngine
from balance_sync.services.token_refresh import TokenRefreshManager

__all__ = [
    "BalanceReconciliationEngine",
    "ConnectionLifecycleManager",
    "ExportService",
    "PortfolioService",
    "Services",
    "TokenRefreshManager",
    "aggregate_balances",
    "create_services",
]
