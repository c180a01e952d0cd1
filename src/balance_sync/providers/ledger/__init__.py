"""Ledger Live CSV import."""
from balance_sync.providers.ledger.parser import parse_ledger_csv
from balance_sync.providers.ledger.provider import LedgerImportProvider

__all__ = ["LedgerImportProvider", "parse_ledger_csv"]
