"""Token Refresh Manager: keeps OAuth credentials usable across syncs."""
import logging
import os
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone

from balance_sync.db import Provider, utcnow
from balance_sync.db.credentials import CredentialStore
from balance_sync.providers.core import (BalanceProviderABC,
                                         InvalidCredentials,
                                         ReconnectRequired)
from balance_sync.schemas import OAuthTokenPayload

logger = logging.getLogger(__name__)

EXPIRY_BUFFER = timedelta(minutes=int(os.getenv("TOKEN_EXPIRY_BUFFER_MINUTES", "5")))


def is_token_expired(
    payload: OAuthTokenPayload,
    now: datetime,
    buffer: timedelta = EXPIRY_BUFFER,
) -> bool:
    """True when the token expires within `buffer` of `now`.

    A payload without expires_at is never considered expired; validation
    against the provider still catches a dead token.
    """
    if payload.expires_at is None:
        return False
    expires_at = payload.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at - buffer < now


class TokenRefreshManager:
    """Runs check -> validate -> refresh -> persist for token-based providers.

    Validating before refreshing avoids burning refresh tokens (Coinbase
    rotates them) and tolerates skew between our expiry bookkeeping and the
    provider's.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        providers: Mapping[Provider, BalanceProviderABC],
        *,
        buffer: timedelta = EXPIRY_BUFFER,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._credentials = credentials
        self._providers = providers
        self._buffer = buffer
        self._clock = clock

    async def ensure_valid(self, user_id: str, provider: Provider) -> tuple[OAuthTokenPayload, bool]:
        """Return a usable token payload and whether it was refreshed.

        Raises:
            NotConnected: no credential is stored.
            ReconnectRequired: the token is dead and there is no refresh token.
            RefreshFailed: the provider rejected the refresh; nothing is persisted.
            PersistenceError: the refreshed payload could not be stored.
        """
        credential = self._credentials.get(user_id, provider)
        payload = credential.payload
        if not isinstance(payload, OAuthTokenPayload):
            raise InvalidCredentials(f"{provider.value} credentials are not OAuth tokens")
        adapter = self._providers[provider]

        expired = is_token_expired(payload, self._clock(), self._buffer)
        logger.debug(
            "%s token for user %s expired=%s expires_at=%s",
            provider.value, user_id, expired, payload.expires_at,
        )
        if not expired:
            if await adapter.validate(payload):
                return payload, False
            logger.info("%s token for user %s failed validation", provider.value, user_id)

        if not payload.refresh_token:
            logger.info(
                "%s token for user %s expired and no refresh token available",
                provider.value, user_id,
            )
            raise ReconnectRequired()

        logger.info("Refreshing %s token for user %s", provider.value, user_id)
        refreshed = await adapter.refresh(payload)
        self._credentials.upsert(user_id, provider, refreshed)
        logger.info("Stored refreshed %s token for user %s", provider.value, user_id)
        return refreshed, True
