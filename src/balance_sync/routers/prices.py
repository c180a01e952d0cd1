"""Price routes: USD quotes from the price oracle."""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from balance_sync.deps import PortfolioDep
from balance_sync.providers.core import BalanceSyncError, ProviderErrorMapper
from balance_sync.schemas import PriceQuotes

router = APIRouter(prefix="/prices", tags=["prices"])


class PricesRequest(BaseModel):
    currencies: list[str] = []


@router.post("", response_model=PriceQuotes)
async def get_prices(body: PricesRequest, portfolio: PortfolioDep) -> PriceQuotes:
    """Prices and display names for the requested tickers."""
    currencies = [c.strip() for c in body.currencies if c and c.strip()]
    if not currencies:
        raise HTTPException(400, detail={"error": "Invalid currencies array"})
    try:
        return await portfolio.get_quotes(currencies)
    except BalanceSyncError as exc:
        ProviderErrorMapper(api_name="price").raise_http(exc)
