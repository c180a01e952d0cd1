"""Parser for Ledger Live operation history exports (CSV)."""
import csv
import io
import logging

from balance_sync.providers.core.exceptions import ParseError
from balance_sync.providers.core.utils import parse_amount

logger = logging.getLogger(__name__)

TYPE_COLUMN = "Operation Type"
TICKER_COLUMN = "Currency Ticker"
AMOUNT_COLUMN = "Operation Amount"
REQUIRED_COLUMNS = (TYPE_COLUMN, TICKER_COLUMN, AMOUNT_COLUMN)

INFLOW = "IN"
OUTFLOW = "OUT"

# Ledger Live writes sub-account tickers like "ETH_2"; those rows are dropped.
SEPARATOR_ARTIFACT = "_"


def parse_ledger_csv(text: str) -> dict[str, float]:
    """Sum signed operation amounts per ticker.

    IN operations add the absolute amount, OUT operations subtract it, every
    other operation type is ignored.

    Args:
        text: Raw CSV export, header row first.

    Returns:
        Mapping ticker -> net total, in order of first appearance.

    Raises:
        ParseError: fewer than two lines, or a required column is missing.
    """
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if len(lines) < 2:
        raise ParseError("CSV file must have at least a header and one data row")

    reader = csv.reader(io.StringIO("\n".join(lines)))
    header = [column.lstrip("\ufeff").strip() for column in next(reader)]
    missing = [column for column in REQUIRED_COLUMNS if column not in header]
    if missing:
        raise ParseError(f"CSV file is missing required columns: {', '.join(missing)}")
    type_idx, ticker_idx, amount_idx = (header.index(c) for c in REQUIRED_COLUMNS)
    width = max(type_idx, ticker_idx, amount_idx)

    totals: dict[str, float] = {}
    skipped = 0
    for row in reader:
        if len(row) <= width:
            skipped += 1
            continue
        op_type = row[type_idx].strip().upper()
        ticker = row[ticker_idx].strip()
        if op_type not in (INFLOW, OUTFLOW) or not ticker or SEPARATOR_ARTIFACT in ticker:
            skipped += 1
            continue
        amount = parse_amount(row[amount_idx])
        if amount is None:
            skipped += 1
            continue
        signed = abs(amount) if op_type == INFLOW else -abs(amount)
        totals[ticker] = totals.get(ticker, 0.0) + signed

    if skipped:
        logger.debug("Ledger import skipped %d rows", skipped)
    return totals
