"""Database package: models and session management."""
from balance_sync.db.models import (BalanceRecord, ConnectedAccount, Provider,
                                    as_utc, utcnow)

__all__ = ["BalanceRecord", "ConnectedAccount", "Provider", "as_utc", "utcnow"]
