"""Ledger Live file-import provider."""
from balance_sync.db import Provider
from balance_sync.providers.ledger.parser import parse_ledger_csv
from balance_sync.schemas import FetchedBalance, FileImportPayload


class LedgerImportProvider:
    """Account source fed by uploaded Ledger Live exports.

    There is no remote API: balances only change when a new export is
    imported, so this adapter is a pure transform and not a BalanceProviderABC.
    """

    provider = Provider.LEDGER

    def parse(self, text: str) -> dict[str, float]:
        """Per-ticker totals of an export. Raises ParseError on malformed files."""
        return parse_ledger_csv(text)

    def to_balances(self, totals: dict[str, float]) -> list[FetchedBalance]:
        return [FetchedBalance(currency=t, amount=a) for t, a in totals.items()]

    def build_payload(self, filename: str) -> FileImportPayload:
        """Credential payload recording which file was imported and when."""
        return FileImportPayload(source_filename=filename)
