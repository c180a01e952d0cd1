"""Balance Reconciliation Engine: replaces a provider's stored snapshot with a fresh fetch."""
import asyncio
import logging
from collections.abc import Mapping

from balance_sync.db import Provider, utcnow
from balance_sync.db.balances import BalanceStore
from balance_sync.db.credentials import CredentialStore
from balance_sync.providers.core import BalanceProviderABC, BalanceSyncError
from balance_sync.schemas import (BalanceRow, FetchedBalance, PayloadKind,
                                  SyncResult)
from balance_sync.services.token_refresh import TokenRefreshManager

logger = logging.getLogger(__name__)


def to_balance_rows(
    user_id: str, provider: Provider, fetched: list[FetchedBalance]
) -> list[BalanceRow]:
    """Canonical rows stamped now; several accounts of one currency are summed."""
    totals: dict[str, float] = {}
    for balance in fetched:
        totals[balance.currency] = totals.get(balance.currency, 0.0) + balance.amount
    now = utcnow()
    return [
        BalanceRow(user_id=user_id, provider=provider, currency=c, amount=a, updated_at=now)
        for c, a in totals.items()
    ]


class BalanceReconciliationEngine:
    """Fetches balances from a provider and upserts them as one batch.

    Currencies missing from a fetch keep their previous row: a withdrawn
    asset stays at its last amount until the provider reports it again or
    the connection is unlinked.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        balances: BalanceStore,
        providers: Mapping[Provider, BalanceProviderABC],
        token_manager: TokenRefreshManager,
    ) -> None:
        self._credentials = credentials
        self._balances = balances
        self._providers = providers
        self._token_manager = token_manager

    async def sync(self, user_id: str, provider: Provider) -> SyncResult:
        """Run one reconciliation cycle for (user, provider).

        Raises:
            NotConnected, ReconnectRequired, RefreshFailed, RemoteUnavailable,
            PersistenceError: see the respective collaborators.
        """
        credential = self._credentials.get(user_id, provider)
        kind = credential.payload.kind
        refreshed = False
        if kind == PayloadKind.FILE_IMPORT:
            logger.debug("%s has no remote source; snapshot changes on re-import", provider.value)
            return SyncResult(provider=provider, skipped=True)
        if kind == PayloadKind.OAUTH_TOKEN:
            payload, refreshed = await self._token_manager.ensure_valid(user_id, provider)
        else:
            payload = credential.payload

        logger.info("Fetching %s balances for user %s", provider.value, user_id)
        fetched = await self._providers[provider].fetch_balances(payload)
        result = self.reconcile(user_id, provider, fetched)
        result.refreshed = refreshed
        return result

    def reconcile(
        self, user_id: str, provider: Provider, fetched: list[FetchedBalance]
    ) -> SyncResult:
        """Upsert fetched balances for (user, provider) in one batch."""
        rows = to_balance_rows(user_id, provider, fetched)
        written = self._balances.upsert_many(rows)
        logger.info("Stored %d %s balances for user %s", written, provider.value, user_id)
        return SyncResult(provider=provider, rows_written=written)

    async def sync_all(self, user_id: str) -> dict[Provider, SyncResult | BalanceSyncError]:
        """Sync every connected provider independently.

        A failing provider is reported in the result map and never affects
        the stored balances of the others.
        """
        providers = self._credentials.connected_providers(user_id)
        outcomes = await asyncio.gather(
            *(self.sync(user_id, p) for p in providers),
            return_exceptions=True,
        )
        results: dict[Provider, SyncResult | BalanceSyncError] = {}
        for provider, outcome in zip(providers, outcomes):
            if isinstance(outcome, BalanceSyncError):
                logger.warning("Sync of %s for user %s failed: %s", provider.value, user_id, outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            results[provider] = outcome
        return results
