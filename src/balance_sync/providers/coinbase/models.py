"""Models for the Coinbase provider (OAuth token requests and v2 account DTOs)."""
from pydantic import BaseModel


class CoinbaseAuthorizationCodeRequest(BaseModel):
    """Body of the authorization_code grant sent to /oauth/token."""

    grant_type: str = "authorization_code"
    code: str
    client_id: str | None = None
    client_secret: str | None = None
    redirect_uri: str | None = None


class CoinbaseRefreshRequest(BaseModel):
    """Body of the refresh_token grant sent to /oauth/token."""

    grant_type: str = "refresh_token"
    refresh_token: str
    client_id: str | None = None
    client_secret: str | None = None


class CoinbaseTokenResponse(BaseModel):
    """Token endpoint response; refresh_token and expires_in are optional."""

    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None
    token_type: str | None = None
    scope: str | None = None
