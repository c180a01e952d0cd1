"""API routers.

Includes routes for:
- /connections - Link, import, unlink and status of account sources
- /balances - Stored snapshot, aggregated summary, sync triggers
- /prices - USD quotes from the price oracle
- /export - Spreadsheet download

Every route except the price lookup needs the X-User-Id header set by the
upstream identity provider.
"""
from balance_sync.routers.balances import router as balances_router
from balance_sync.routers.connections import router as connections_router
from balance_sync.routers.export import router as export_router
from balance_sync.routers.prices import router as prices_router

__all__ = [
    "balances_router",
    "connections_router",
    "export_router",
    "prices_router",
]
