"""Abstract base class for remote balance providers."""
from abc import ABC, abstractmethod
from typing import ClassVar

from balance_sync.db import Provider
from balance_sync.schemas import CredentialPayload, FetchedBalance


class BalanceProviderABC(ABC):
    """Base interface for every remote account source.

    Each provider adapter implements this interface to validate stored
    credentials and fetch the current per-currency totals of the account.
    Adapters hold no per-user state; the credential payload travels with each call.
    """

    provider: ClassVar[Provider]

    @abstractmethod
    async def validate(self, payload: CredentialPayload) -> bool:
        """Cheap liveness check of the credentials against the remote API.

        Returns:
            True when the provider accepted the credentials. Network errors
            and non-2xx responses return False instead of raising.
        """

    @abstractmethod
    async def fetch_balances(self, payload: CredentialPayload) -> list[FetchedBalance]:
        """Fetch the current balances of the account.

        Raises:
            RemoteUnavailable: the call failed or returned non-2xx.
        """

    async def refresh(self, payload: CredentialPayload) -> CredentialPayload:
        """Exchange the payload's refresh material for a new payload.

        Default implementation raises NotImplementedError. Override in
        providers whose credentials expire (e.g. OAuth tokens).

        Raises:
            RefreshFailed: the provider rejected the refresh.
        """
        raise NotImplementedError("Credential refresh is not supported by this provider")

    async def close(self) -> None:
        """Clean up resources (connections, clients).

        Override in subclasses if cleanup is needed.
        """

    async def __aenter__(self) -> "BalanceProviderABC":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        """Async context manager exit - calls close()."""
        await self.close()
