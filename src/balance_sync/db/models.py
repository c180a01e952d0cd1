"""Database models for the balance synchronization service.

Only user connection state and the latest balance snapshot per provider are
persisted. Prices are looked up on demand and never stored.
"""
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class Provider(str, Enum):
    """External account sources a user can link."""

    COINBASE = "coinbase"  # OAuth tokens
    GEMINI = "gemini"  # API key + secret
    LEDGER = "ledger"  # Ledger Live CSV export


class ConnectedAccount(SQLModel, table=True):
    """One credential per (user, provider); the JSON payload is a tagged union."""

    __tablename__ = "connected_accounts"

    user_id: str = Field(primary_key=True)
    provider: str = Field(primary_key=True)  # coinbase | gemini | ledger
    credentials: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class BalanceRecord(SQLModel, table=True):
    """Latest fetched total of one currency at one provider for one user."""

    __tablename__ = "balances"

    user_id: str = Field(primary_key=True)
    provider: str = Field(primary_key=True, index=True)
    currency: str = Field(primary_key=True)  # ticker, e.g. BTC
    amount: float
    updated_at: datetime = Field(default_factory=utcnow)
