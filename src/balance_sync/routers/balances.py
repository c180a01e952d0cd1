"""Balance routes: stored snapshot, aggregated summary and sync triggers."""
import logging

from fastapi import APIRouter
from pydantic import BaseModel

from balance_sync.deps import (CurrentUser, PortfolioDep, ProviderParam,
                               ReconciliationDep)
from balance_sync.providers.core import BalanceSyncError, ProviderErrorMapper
from balance_sync.schemas import BalanceRow, PortfolioSummary, SyncResult

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/balances", tags=["balances"])


class BalancesResponse(BaseModel):
    balances: list[BalanceRow]


class SyncFailure(BaseModel):
    error: str
    message: str


class SyncAllResponse(BaseModel):
    results: dict[str, SyncResult | SyncFailure]


@router.get("", response_model=BalancesResponse)
async def list_balances(user_id: CurrentUser, portfolio: PortfolioDep) -> BalancesResponse:
    """Non-zero balances of the current user's connected providers."""
    try:
        return BalancesResponse(balances=portfolio.list_balances(user_id))
    except BalanceSyncError as exc:
        ProviderErrorMapper().raise_http(exc)


@router.get("/summary", response_model=PortfolioSummary)
async def get_summary(user_id: CurrentUser, portfolio: PortfolioDep) -> PortfolioSummary:
    """Cross-provider totals per currency, valued in USD."""
    try:
        return await portfolio.get_summary(user_id)
    except BalanceSyncError as exc:
        ProviderErrorMapper(api_name="price").raise_http(exc)


@router.post("/sync", response_model=SyncAllResponse)
async def sync_all(user_id: CurrentUser, reconciliation: ReconciliationDep) -> SyncAllResponse:
    """Sync every connected provider; failures are reported per provider."""
    try:
        outcomes = await reconciliation.sync_all(user_id)
    except BalanceSyncError as exc:
        ProviderErrorMapper().raise_http(exc)
    return SyncAllResponse(
        results={
            provider.value: (
                SyncFailure(error=outcome.kind, message=outcome.message)
                if isinstance(outcome, BalanceSyncError)
                else outcome
            )
            for provider, outcome in outcomes.items()
        }
    )


@router.post("/{provider}/sync", response_model=SyncResult)
async def sync_provider(
    provider: ProviderParam,
    user_id: CurrentUser,
    reconciliation: ReconciliationDep,
) -> SyncResult:
    """Fetch live balances from one provider and replace the stored snapshot."""
    try:
        return await reconciliation.sync(user_id, provider)
    except BalanceSyncError as exc:
        logger.info("Sync of %s for user %s failed: %s", provider.value, user_id, exc.kind)
        ProviderErrorMapper(api_name=provider.value).raise_http(exc)
