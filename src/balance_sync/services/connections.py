"""Connection Lifecycle Manager: link, import, unlink and report provider connections."""
import asyncio
import logging
from collections.abc import Mapping

from balance_sync.db import Provider
from balance_sync.db.balances import BalanceStore
from balance_sync.db.credentials import CredentialStore
from balance_sync.providers.coinbase import CoinbaseProvider
from balance_sync.providers.core import (BalanceProviderABC,
                                         InvalidCredentials, NotFound)
from balance_sync.providers.ledger import LedgerImportProvider
from balance_sync.schemas import (ConnectionStatus, Credential,
                                  CredentialPayload, FileImportPayload,
                                  ProviderStatus)
from balance_sync.services.reconciliation import BalanceReconciliationEngine

logger = logging.getLogger(__name__)


class ConnectionLifecycleManager:
    """Create/unlink/status over the credential and balance stores.

    A balance row never outlives its connection: unlink deletes balances
    first, then the credential, so a failure in between leaves a recoverable
    credential rather than orphaned balances.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        balances: BalanceStore,
        providers: Mapping[Provider, BalanceProviderABC],
        engine: BalanceReconciliationEngine,
        ledger: LedgerImportProvider | None = None,
    ) -> None:
        self._credentials = credentials
        self._balances = balances
        self._providers = providers
        self._engine = engine
        self._ledger = ledger or LedgerImportProvider()
        self._background: set[asyncio.Task] = set()

    async def connect(
        self, user_id: str, provider: Provider, payload: CredentialPayload
    ) -> Credential:
        """Validate and store credentials, then start a best-effort initial sync.

        Raises:
            InvalidCredentials: the provider rejected the credentials.
            PersistenceError: they could not be stored.
        """
        adapter = self._providers[provider]
        if not await adapter.validate(payload):
            raise InvalidCredentials(f"Invalid {provider.value} credentials")
        credential = self._credentials.upsert(user_id, provider, payload)
        logger.info("Connected %s for user %s", provider.value, user_id)
        self._spawn_initial_sync(user_id, provider)
        return credential

    async def connect_oauth(self, user_id: str, provider: Provider, code: str) -> Credential:
        """Finish an OAuth authorization: exchange the code, then connect."""
        adapter = self._providers[provider]
        if not isinstance(adapter, CoinbaseProvider):
            raise InvalidCredentials(f"{provider.value} does not use OAuth")
        payload = await adapter.exchange_code(code)
        return await self.connect(user_id, provider, payload)

    def import_file(self, user_id: str, filename: str, text: str) -> dict[str, float]:
        """Parse a ledger export, record the import and store its totals.

        Raises:
            ParseError: the file is malformed; nothing is stored.
            PersistenceError: storage failed.
        """
        totals = self._ledger.parse(text)
        self._credentials.upsert(user_id, Provider.LEDGER, self._ledger.build_payload(filename))
        self._engine.reconcile(user_id, Provider.LEDGER, self._ledger.to_balances(totals))
        logger.info("Imported %s for user %s (%d currencies)", filename, user_id, len(totals))
        return totals

    def unlink(self, user_id: str, provider: Provider) -> None:
        """Remove a connection and every balance row it owns.

        Raises:
            NotFound: the user has no such connection.
        """
        if not self._credentials.exists(user_id, provider):
            raise NotFound(f"No {provider.value} connection found for this user")
        removed = self._balances.delete_for_provider(user_id, provider)
        self._credentials.delete(user_id, provider)
        logger.info(
            "Unlinked %s for user %s (%d balances removed)", provider.value, user_id, removed
        )

    def status(self, user_id: str) -> ConnectionStatus:
        """Per-provider connection state with link or import metadata."""
        status = ConnectionStatus()
        for credential in self._credentials.list_for_user(user_id):
            entry = ProviderStatus(connected=True, linked_at=credential.created_at)
            if isinstance(credential.payload, FileImportPayload):
                entry.source_filename = credential.payload.source_filename
                entry.imported_at = credential.payload.imported_at
            setattr(status, credential.provider.value, entry)
        return status

    def delete_account_data(self, user_id: str) -> None:
        """Remove every balance, then every connection, of a user."""
        balances = self._balances.delete_all(user_id)
        connections = self._credentials.delete_all(user_id)
        logger.info(
            "Deleted data of user %s (%d balances, %d connections)",
            user_id, balances, connections,
        )

    async def drain(self) -> None:
        """Wait for outstanding initial syncs (shutdown, tests)."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def _spawn_initial_sync(self, user_id: str, provider: Provider) -> None:
        task = asyncio.create_task(
            self._engine.sync(user_id, provider),
            name=f"initial-sync:{provider.value}:{user_id}",
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        task.add_done_callback(_log_initial_sync)


def _log_initial_sync(task: asyncio.Task) -> None:
    """Failures of the fire-and-forget sync end here and nowhere else."""
    if task.cancelled():
        logger.warning("Initial sync %s was cancelled", task.get_name())
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Initial sync %s failed: %s", task.get_name(), exc)
    else:
        logger.info("Initial sync %s stored %d balances", task.get_name(), task.result().rows_written)
