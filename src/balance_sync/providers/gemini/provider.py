"""Gemini account provider (API key + HMAC-signed requests)."""
import logging
from typing import Any

import httpx

from balance_sync.db import Provider
from balance_sync.providers.core import (BalanceProviderABC,
                                         InvalidCredentials,
                                         RemoteUnavailable)
from balance_sync.providers.core.utils import (error_message,
                                               normalize_ticker, parse_amount)
from balance_sync.providers.gemini.signing import (NonceGenerator,
                                                   encode_payload,
                                                   signed_headers)
from balance_sync.schemas import (ApiKeyPayload, CredentialPayload,
                                  FetchedBalance)

logger = logging.getLogger(__name__)


def _require_key_payload(payload: CredentialPayload) -> ApiKeyPayload:
    if not isinstance(payload, ApiKeyPayload):
        raise InvalidCredentials("Invalid Gemini credentials format")
    return payload


class GeminiProvider(BalanceProviderABC):
    """Balance provider for Gemini via private API keys.

    Every request is signed per call; there is nothing to refresh. A
    successful signed /v1/balances call doubles as the validation check.
    """

    provider = Provider.GEMINI

    BASE_URL = "https://api.gemini.com"
    BALANCES_PATH = "/v1/balances"

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        nonces: NonceGenerator | None = None,
        timeout: float = 15.0,
    ) -> None:
        """Initialize the Gemini provider.

        Args:
            client: Pre-built HTTP client (tests inject a mock transport).
            nonces: Nonce source shared by all requests of this process.
            timeout: Request timeout in seconds for the default client.
        """
        self._client = client or httpx.AsyncClient(base_url=self.BASE_URL, timeout=timeout)
        self._nonces = nonces or NonceGenerator()

    async def request(
        self,
        endpoint: str,
        credentials: ApiKeyPayload,
        extra: dict | None = None,
    ) -> httpx.Response:
        """POST a signed request to `endpoint` and return the raw response."""
        b64_payload = encode_payload(endpoint, self._nonces.next(credentials.api_key), extra)
        headers = signed_headers(credentials.api_key, credentials.api_secret, b64_payload)
        logger.debug("Gemini request to %s", endpoint)
        response = await self._client.post(endpoint, headers=headers)
        logger.debug("Gemini response status %s", response.status_code)
        return response

    async def validate(self, payload: CredentialPayload) -> bool:
        """Sign a balances request; any 2xx means the key pair works."""
        credentials = _require_key_payload(payload)
        try:
            response = await self.request(self.BALANCES_PATH, credentials)
        except httpx.HTTPError as exc:
            logger.info("Gemini credential test error: %s", exc)
            return False
        if response.is_error:
            logger.info("Gemini credential test failed with status %s", response.status_code)
            return False
        return True

    async def fetch_balances(self, payload: CredentialPayload) -> list[FetchedBalance]:
        """Fetch /v1/balances and map each entry's currency and amount."""
        credentials = _require_key_payload(payload)
        try:
            response = await self.request(self.BALANCES_PATH, credentials)
        except httpx.HTTPError as exc:
            raise RemoteUnavailable(f"Failed to fetch Gemini balances: {exc}") from exc
        data = self._json(response)
        if response.is_error:
            raise RemoteUnavailable(
                error_message(data, response.reason_phrase or "Failed to fetch Gemini balances"),
                status_code=response.status_code,
            )
        if not isinstance(data, list):
            raise RemoteUnavailable("Unexpected Gemini balances response")
        out: list[FetchedBalance] = []
        for entry in data:
            if not isinstance(entry, dict):
                continue
            currency = entry.get("currency")
            amount = parse_amount(entry.get("amount"))
            if not isinstance(currency, str) or not currency or amount is None:
                continue
            out.append(FetchedBalance(currency=normalize_ticker(currency), amount=amount))
        return out

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return {}
