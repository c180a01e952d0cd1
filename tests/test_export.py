import io
from datetime import datetime

import httpx
import pytest
from openpyxl import load_workbook

from balance_sync.db import Provider
from balance_sync.providers.core import NotFound
from balance_sync.providers.prices import CoinMarketCapPriceProvider
from balance_sync.schemas import (ApiKeyPayload, BalanceRow,
                                  OAuthTokenPayload, PriceQuotes)
from balance_sync.services.export import (ExportService, build_workbook,
                                          export_filename)
from balance_sync.services.portfolio import PortfolioService

pytestmark = pytest.mark.anyio

USER = "user-1"
NOW = datetime(2024, 3, 5, 14, 7)


def _row(provider, currency, amount) -> BalanceRow:
    return BalanceRow(user_id=USER, provider=provider, currency=currency, amount=amount)


def test_filename():
    assert export_filename(NOW) == "master_portfolio_03-05-2024_14-07.xlsx"


def test_workbook_layout():
    rows = [
        _row(Provider.COINBASE, "BTC", 0.5),
        _row(Provider.GEMINI, "BTC", 0.3),
        _row(Provider.GEMINI, "ZZZ", 4.0),
        _row(Provider.GEMINI, "ETH", 0.0),
    ]
    quotes = PriceQuotes(prices={"BTC": 50000.0}, names={"BTC": "Bitcoin"})

    workbook = build_workbook(rows, quotes, NOW)

    assert workbook.sheetnames == ["Master", "Coinbase", "Gemini"]
    master = workbook["Master"]
    assert [c.value for c in master[1]] == [
        "Symbol",
        "Name",
        "Amount",
        "Balance at 03/05/2024 14:07",
        "Price at 03/05/2024 14:07",
        "Exchanges with Asset",
    ]
    assert master["A2"].value == "BTC"
    assert master["C2"].value == pytest.approx(0.8)
    assert master["D2"].value == pytest.approx(40000.0)
    assert master["F2"].value == "'coinbase', 'gemini'"
    assert master["B3"].value == "Name Not Found"
    assert master["C5"].value == "Total Balance:"
    assert master["D5"].value == pytest.approx(40000.0)

    gemini = workbook["Gemini"]
    assert [gemini.cell(row=r, column=1).value for r in (2, 3)] == ["BTC", "ZZZ"]
    assert gemini["D5"].value == pytest.approx(15000.0)


async def test_export_service_returns_xlsx(services):
    services.credentials.upsert(USER, Provider.GEMINI, ApiKeyPayload(api_key="k", api_secret="s"))
    services.balances.upsert_many([_row(Provider.GEMINI, "BTC", 1.0)])

    filename, content = await services.export.export(USER)

    assert filename.startswith("master_portfolio_")
    workbook = load_workbook(io.BytesIO(content))
    assert workbook["Master"]["D2"].value == pytest.approx(50000.0)


async def test_export_survives_price_outage(services, prices):
    prices.error = True
    services.credentials.upsert(USER, Provider.COINBASE, OAuthTokenPayload(access_token="a"))
    services.balances.upsert_many([_row(Provider.COINBASE, "ETH", 2.0)])

    _, content = await services.export.export(USER)

    master = load_workbook(io.BytesIO(content))["Master"]
    assert master["C2"].value == 2.0
    assert master["D2"].value == 0


async def test_export_without_balances(services):
    with pytest.raises(NotFound):
        await services.export.export(USER)


async def test_export_survives_unparseable_price_response(services):
    oracle = CoinMarketCapPriceProvider(
        "key",
        client=httpx.AsyncClient(
            base_url=CoinMarketCapPriceProvider.BASE_URL,
            transport=httpx.MockTransport(
                lambda r: httpx.Response(200, text="<html>maintenance</html>")
            ),
        ),
    )
    portfolio = PortfolioService(services.credentials, services.balances, oracle)
    services.credentials.upsert(USER, Provider.GEMINI, ApiKeyPayload(api_key="k", api_secret="s"))
    services.balances.upsert_many([_row(Provider.GEMINI, "BTC", 1.0)])

    _, content = await ExportService(portfolio).export(USER)

    master = load_workbook(io.BytesIO(content))["Master"]
    assert master["A2"].value == "BTC"
    assert master["D2"].value == 0
