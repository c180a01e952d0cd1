"""Pydantic schemas for credentials, balances and views. Rows live in balance_sync.db."""
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from balance_sync.db import Provider, utcnow


class PayloadKind(str, Enum):
    """Discriminator of the credential payload union."""

    OAUTH_TOKEN = "oauth_token"
    API_KEY = "api_key"
    FILE_IMPORT = "file_import"


class OAuthTokenPayload(BaseModel):
    """Bearer credentials of a token-based provider (Coinbase)."""

    kind: Literal["oauth_token"] = "oauth_token"
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None  # None: never treated as expired


class ApiKeyPayload(BaseModel):
    """Key pair of a request-signing provider (Gemini)."""

    kind: Literal["api_key"] = "api_key"
    api_key: str = Field(min_length=1)
    api_secret: str = Field(min_length=1)


class FileImportPayload(BaseModel):
    """Provenance of a manually uploaded ledger export."""

    kind: Literal["file_import"] = "file_import"
    source_filename: str
    imported_at: datetime = Field(default_factory=utcnow)


CredentialPayload = Annotated[
    Union[OAuthTokenPayload, ApiKeyPayload, FileImportPayload],
    Field(discriminator="kind"),
]
credential_payload_adapter: TypeAdapter[CredentialPayload] = TypeAdapter(CredentialPayload)

PAYLOAD_KIND_BY_PROVIDER: dict[Provider, PayloadKind] = {
    Provider.COINBASE: PayloadKind.OAUTH_TOKEN,
    Provider.GEMINI: PayloadKind.API_KEY,
    Provider.LEDGER: PayloadKind.FILE_IMPORT,
}


class Credential(BaseModel):
    """A user's stored credential for one provider."""

    user_id: str
    provider: Provider
    payload: CredentialPayload
    created_at: datetime
    updated_at: datetime


class FetchedBalance(BaseModel):
    """One (ticker, amount) pair as reported by a provider."""

    currency: str
    amount: float


class BalanceRow(BaseModel):
    """Canonical stored balance of one currency at one provider."""

    user_id: str
    provider: Provider
    currency: str
    amount: float
    updated_at: datetime = Field(default_factory=utcnow)


class SyncResult(BaseModel):
    """Outcome of one reconciliation cycle."""

    provider: Provider
    rows_written: int = 0
    refreshed: bool = False
    skipped: bool = False  # provider has no remote source (file import)
    synced_at: datetime = Field(default_factory=utcnow)


class ProviderStatus(BaseModel):
    """Connection state of one provider for the settings view."""

    connected: bool = False
    linked_at: datetime | None = None
    source_filename: str | None = None
    imported_at: datetime | None = None


class ConnectionStatus(BaseModel):
    """Connection state of every provider."""

    coinbase: ProviderStatus = Field(default_factory=ProviderStatus)
    gemini: ProviderStatus = Field(default_factory=ProviderStatus)
    ledger: ProviderStatus = Field(default_factory=ProviderStatus)

    def for_provider(self, provider: Provider) -> ProviderStatus:
        return getattr(self, provider.value)


class PriceQuotes(BaseModel):
    """USD prices and display names keyed by ticker."""

    prices: dict[str, float] = Field(default_factory=dict)
    names: dict[str, str] = Field(default_factory=dict)


class AggregatedBalance(BaseModel):
    """Cross-provider total of one currency, valued in USD."""

    currency: str
    name: str | None = None
    total_amount: float
    exchanges: list[Provider]
    price: float = 0.0
    usd_value: float = 0.0


class PortfolioSummary(BaseModel):
    """Aggregated balance sheet of one user."""

    balances: list[AggregatedBalance]
    total_usd: float
    generated_at: datetime = Field(default_factory=utcnow)


__all__ = [
    "AggregatedBalance",
    "ApiKeyPayload",
    "BalanceRow",
    "ConnectionStatus",
    "Credential",
    "CredentialPayload",
    "FetchedBalance",
    "FileImportPayload",
    "OAuthTokenPayload",
    "PAYLOAD_KIND_BY_PROVIDER",
    "PayloadKind",
    "PortfolioSummary",
    "PriceQuotes",
    "ProviderStatus",
    "SyncResult",
    "credential_payload_adapter",
]
