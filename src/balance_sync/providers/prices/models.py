"""Models for the CoinMarketCap price oracle."""
from pydantic import BaseModel


class CoinMarketCapQuotesParams(BaseModel):
    """Params for /v1/cryptocurrency/quotes/latest. Merge with 'symbol' at call site."""

    convert: str = "USD"
    skip_invalid: str = "true"
