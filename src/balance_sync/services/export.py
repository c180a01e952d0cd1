"""Spreadsheet export of the aggregated balance sheet (openpyxl)."""
import io
import logging
from datetime import datetime

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from balance_sync.db import Provider, utcnow
from balance_sync.providers.core import NotFound, RemoteUnavailable
from balance_sync.schemas import BalanceRow, PriceQuotes
from balance_sync.services.portfolio import PortfolioService, aggregate_balances

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
NAME_NOT_FOUND = "Name Not Found"
CURRENCY_FORMAT = "$#,##0.00"
HEADER_FILL = PatternFill(fill_type="solid", fgColor="FFE6E6E6")
COLUMN_WIDTHS = (10, 20, 15, 25, 25, 25)


def _stamp(now: datetime) -> str:
    return now.strftime("%m/%d/%Y %H:%M")


def export_filename(now: datetime) -> str:
    return f"master_portfolio_{now.strftime('%m-%d-%Y_%H-%M')}.xlsx"


def _format_sheet(sheet: Worksheet, columns: int) -> None:
    for cell in sheet[1]:
        cell.font = Font(bold=True)
        cell.fill = HEADER_FILL
    for idx, width in enumerate(COLUMN_WIDTHS[:columns], start=1):
        sheet.column_dimensions[get_column_letter(idx)].width = width
    for row in sheet.iter_rows(min_row=2, min_col=4, max_col=5):
        for cell in row:
            cell.number_format = CURRENCY_FORMAT
    for cell in sheet[sheet.max_row]:
        cell.font = Font(bold=True)


def build_workbook(
    rows: list[BalanceRow], quotes: PriceQuotes, now: datetime | None = None
) -> Workbook:
    """Master sheet of cross-provider totals plus one sheet per provider.

    Zero rows are excluded everywhere; sheets are sorted by USD value.
    """
    stamp = _stamp(now or utcnow())
    rows = [r for r in rows if r.amount != 0]
    workbook = Workbook()

    master = workbook.active
    master.title = "Master"
    master.append(
        ["Symbol", "Name", "Amount", f"Balance at {stamp}", f"Price at {stamp}",
         "Exchanges with Asset"]
    )
    master_total = 0.0
    for item in aggregate_balances(rows, quotes):
        master_total += item.usd_value
        master.append([
            item.currency,
            item.name or NAME_NOT_FOUND,
            item.total_amount,
            item.usd_value,
            item.price,
            ", ".join(f"'{p.value}'" for p in item.exchanges),
        ])
    master.append([None] * 6)
    master.append([None, None, "Total Balance:", master_total, None, None])
    _format_sheet(master, 6)

    providers: list[Provider] = list(dict.fromkeys(r.provider for r in rows))
    for provider in providers:
        sheet = workbook.create_sheet(provider.value.capitalize())
        sheet.append(["Symbol", "Name", "Amount", f"Balance at {stamp}", f"Price at {stamp}"])
        provider_rows = sorted(
            (r for r in rows if r.provider == provider),
            key=lambda r: r.amount * quotes.prices.get(r.currency, 0.0),
            reverse=True,
        )
        total = 0.0
        for row in provider_rows:
            price = quotes.prices.get(row.currency, 0.0)
            total += row.amount * price
            sheet.append([
                row.currency,
                quotes.names.get(row.currency, NAME_NOT_FOUND),
                row.amount,
                row.amount * price,
                price,
            ])
        sheet.append([None] * 5)
        sheet.append([None, None, "Total Balance:", total, None])
        _format_sheet(sheet, 5)
    return workbook


class ExportService:
    """Builds the .xlsx export of a user's balances."""

    def __init__(self, portfolio: PortfolioService) -> None:
        self._portfolio = portfolio

    async def export(self, user_id: str) -> tuple[str, bytes]:
        """Return (filename, xlsx bytes).

        Prices are best effort: when the oracle is down the export still
        renders, valued at 0.

        Raises:
            NotFound: the user has no non-zero balances.
        """
        rows = self._portfolio.list_balances(user_id)
        if not rows:
            raise NotFound("No balances found")
        currencies = sorted({r.currency for r in rows})
        try:
            quotes = await self._portfolio.get_quotes(currencies)
        except RemoteUnavailable as exc:
            logger.warning("Failed to fetch prices and names for export: %s", exc)
            quotes = PriceQuotes()
        now = utcnow()
        buffer = io.BytesIO()
        build_workbook(rows, quotes, now).save(buffer)
        return export_filename(now), buffer.getvalue()
