"""FastAPI dependency injection: app.state holds singletons; Depends() resolves them.

No external DI container. Lifespan (main.py) builds the service graph once and
attaches it to app.state; these getters are used by Depends().
"""
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request

from balance_sync.db import Provider
from balance_sync.providers.core import AuthRequired, ProviderErrorMapper
from balance_sync.services import (BalanceReconciliationEngine,
                                   ConnectionLifecycleManager, ExportService,
                                   PortfolioService, Services)


def get_services(request: Request) -> Services:
    """Resolve the service graph from app.state (created at startup)."""
    return request.app.state.services


def get_current_user(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """User id asserted by the upstream identity provider; 401 when absent."""
    if not x_user_id or not x_user_id.strip():
        ProviderErrorMapper().raise_http(AuthRequired())
    return x_user_id.strip()


def get_connections(request: Request) -> ConnectionLifecycleManager:
    return get_services(request).connections


def get_reconciliation(request: Request) -> BalanceReconciliationEngine:
    return get_services(request).reconciliation


def get_portfolio(request: Request) -> PortfolioService:
    return get_services(request).portfolio


def get_export(request: Request) -> ExportService:
    return get_services(request).export


def parse_provider(provider: str) -> Provider:
    """Path param -> Provider; 400 lists the valid names."""
    try:
        return Provider(provider.lower())
    except ValueError:
        raise HTTPException(
            400,
            detail={
                "error": "Invalid service",
                "details": f"Service must be one of: {', '.join(p.value for p in Provider)}",
            },
        ) from None


# Type aliases for route injection
CurrentUser = Annotated[str, Depends(get_current_user)]
ConnectionsDep = Annotated[ConnectionLifecycleManager, Depends(get_connections)]
ReconciliationDep = Annotated[BalanceReconciliationEngine, Depends(get_reconciliation)]
PortfolioDep = Annotated[PortfolioService, Depends(get_portfolio)]
ExportDep = Annotated[ExportService, Depends(get_export)]
ProviderParam = Annotated[Provider, Depends(parse_provider)]
