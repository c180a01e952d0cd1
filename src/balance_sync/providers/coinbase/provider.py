"""Coinbase account provider (OAuth2 bearer tokens, v2 REST API)."""
import logging
import os
from datetime import timedelta
from typing import Any

import httpx
from pydantic import ValidationError

from balance_sync.db import Provider, utcnow
from balance_sync.providers.coinbase.models import (
    CoinbaseAuthorizationCodeRequest, CoinbaseRefreshRequest,
    CoinbaseTokenResponse)
from balance_sync.providers.core import (BalanceProviderABC,
                                         InvalidCredentials, RefreshFailed,
                                         RemoteUnavailable)
from balance_sync.providers.core.utils import (error_message,
                                               normalize_ticker, parse_amount)
from balance_sync.schemas import (CredentialPayload, FetchedBalance,
                                  OAuthTokenPayload)

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600  # seconds, used when the token endpoint omits expires_in


def _require_token_payload(payload: CredentialPayload) -> OAuthTokenPayload:
    if not isinstance(payload, OAuthTokenPayload):
        raise InvalidCredentials("Coinbase expects OAuth token credentials")
    return payload


def _bearer(payload: OAuthTokenPayload) -> dict[str, str]:
    return {"Authorization": f"Bearer {payload.access_token}"}


def _json_or_empty(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}


class CoinbaseProvider(BalanceProviderABC):
    """Balance provider for Coinbase retail accounts via OAuth2.

    The authorization code is exchanged once (exchange_code); afterwards the
    token refresh manager keeps the access token alive through validate() and
    refresh(). Balances come from the paginated /v2/accounts listing.
    """

    provider = Provider.COINBASE

    BASE_URL = "https://api.coinbase.com"
    TOKEN_PATH = "/oauth/token"
    USER_PATH = "/v2/user"
    ACCOUNTS_PATH = "/v2/accounts"

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        redirect_uri: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        """Initialize the Coinbase provider.

        Args:
            client_id: OAuth client id. Defaults to COINBASE_CLIENT_ID env var.
            client_secret: OAuth client secret. Defaults to COINBASE_CLIENT_SECRET env var.
            redirect_uri: Registered redirect URI. Defaults to COINBASE_REDIRECT_URI env var.
            client: Pre-built HTTP client (tests inject a mock transport).
            timeout: Request timeout in seconds for the default client.
        """
        self._client_id = client_id or os.getenv("COINBASE_CLIENT_ID")
        self._client_secret = client_secret or os.getenv("COINBASE_CLIENT_SECRET")
        self._redirect_uri = redirect_uri or os.getenv("COINBASE_REDIRECT_URI")
        self._client = client or httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )

    async def exchange_code(self, code: str) -> OAuthTokenPayload:
        """Trade an OAuth authorization code for the first token payload.

        Raises:
            InvalidCredentials: the code was rejected or no access token came back.
        """
        body = CoinbaseAuthorizationCodeRequest(
            code=code,
            client_id=self._client_id,
            client_secret=self._client_secret,
            redirect_uri=self._redirect_uri,
        ).model_dump(exclude_none=True)
        try:
            response = await self._client.post(self.TOKEN_PATH, json=body)
        except httpx.HTTPError as exc:
            raise RemoteUnavailable(f"Coinbase token exchange failed: {exc}") from exc
        data = _json_or_empty(response)
        if response.is_error:
            logger.info("Coinbase token exchange rejected with status %s", response.status_code)
            raise InvalidCredentials(error_message(data, "token_exchange_failed"))
        token = self._parse_token(data)
        if not token.access_token:
            raise InvalidCredentials("token_exchange_failed")
        return self._payload_from_token(token, previous_refresh_token=None)

    async def validate(self, payload: CredentialPayload) -> bool:
        """Check the access token with a lightweight GET /v2/user."""
        token = _require_token_payload(payload)
        try:
            response = await self._client.get(self.USER_PATH, headers=_bearer(token))
        except httpx.HTTPError as exc:
            logger.info("Coinbase token validation error: %s", exc)
            return False
        if response.is_error:
            logger.info("Coinbase token validation failed with status %s", response.status_code)
            return False
        return True

    async def refresh(self, payload: CredentialPayload) -> OAuthTokenPayload:
        """Run the refresh_token grant.

        The returned payload keeps the previous refresh token when Coinbase
        does not rotate it, and expires_in seconds from now.

        Raises:
            RefreshFailed: non-2xx response, network error, or no access token.
        """
        token = _require_token_payload(payload)
        if not token.refresh_token:
            raise RefreshFailed("No refresh token available")
        body = CoinbaseRefreshRequest(
            refresh_token=token.refresh_token,
            client_id=self._client_id,
            client_secret=self._client_secret,
        ).model_dump(exclude_none=True)
        try:
            response = await self._client.post(self.TOKEN_PATH, json=body)
        except httpx.HTTPError as exc:
            raise RefreshFailed(f"Failed to refresh token: {exc}") from exc
        if response.is_error:
            logger.info("Coinbase token refresh rejected with status %s", response.status_code)
            raise RefreshFailed("Failed to refresh token")
        refreshed = self._parse_token(_json_or_empty(response))
        if not refreshed.access_token:
            raise RefreshFailed("Token endpoint returned no access token")
        return self._payload_from_token(refreshed, previous_refresh_token=token.refresh_token)

    async def fetch_balances(self, payload: CredentialPayload) -> list[FetchedBalance]:
        """Fetch every account of the user, following pagination.next_uri."""
        token = _require_token_payload(payload)
        balances: list[FetchedBalance] = []
        path: str | None = self.ACCOUNTS_PATH
        while path:
            try:
                response = await self._client.get(path, headers=_bearer(token))
            except httpx.HTTPError as exc:
                raise RemoteUnavailable(f"Failed to fetch from Coinbase: {exc}") from exc
            data = _json_or_empty(response)
            if response.is_error:
                raise RemoteUnavailable(
                    error_message(data, response.reason_phrase or "Failed to fetch from Coinbase"),
                    status_code=response.status_code,
                )
            if not isinstance(data, dict):
                raise RemoteUnavailable("Unexpected Coinbase accounts response")
            balances.extend(self._balances_from_page(data))
            pagination = data.get("pagination")
            path = pagination.get("next_uri") if isinstance(pagination, dict) else None
        return balances

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    def _parse_token(self, data: Any) -> CoinbaseTokenResponse:
        try:
            return CoinbaseTokenResponse.model_validate(data)
        except ValidationError:
            return CoinbaseTokenResponse()

    def _payload_from_token(
        self,
        token: CoinbaseTokenResponse,
        previous_refresh_token: str | None,
    ) -> OAuthTokenPayload:
        expires_in = token.expires_in if token.expires_in else DEFAULT_EXPIRES_IN
        return OAuthTokenPayload(
            access_token=token.access_token or "",
            refresh_token=token.refresh_token or previous_refresh_token,
            expires_at=utcnow() + timedelta(seconds=expires_in),
        )

    def _balances_from_page(self, data: Any) -> list[FetchedBalance]:
        """Map one /v2/accounts page to (ticker, amount) pairs."""
        out: list[FetchedBalance] = []
        accounts = data.get("data")
        for account in accounts if isinstance(accounts, list) else []:
            if not isinstance(account, dict):
                continue
            currency = account.get("currency")
            code = currency.get("code") if isinstance(currency, dict) else currency
            balance = account.get("balance")
            amount = parse_amount(balance.get("amount")) if isinstance(balance, dict) else None
            if not isinstance(code, str) or not code or amount is None:
                logger.debug("Skipping malformed Coinbase account %s", account.get("id"))
                continue
            out.append(FetchedBalance(currency=normalize_ticker(code), amount=amount))
        return out
