"""Domain concept for mapping core failures to HTTP responses."""
from dataclasses import dataclass

from fastapi import HTTPException

from balance_sync.providers.core.exceptions import (AuthRequired,
                                                    BalanceSyncError,
                                                    InvalidCredentials,
                                                    NotConnected, NotFound,
                                                    ParseError,
                                                    PersistenceError,
                                                    ReconnectRequired,
                                                    RefreshFailed,
                                                    RemoteUnavailable)

_STATUS_BY_ERROR: dict[type[BalanceSyncError], int] = {
    AuthRequired: 401,
    NotConnected: 404,
    InvalidCredentials: 400,
    ReconnectRequired: 401,
    RefreshFailed: 401,
    RemoteUnavailable: 502,
    ParseError: 400,
    PersistenceError: 500,
    NotFound: 404,
}

_HINT_BY_ERROR: dict[type[BalanceSyncError], str] = {
    ReconnectRequired: "Please reconnect your {name} account",
    RefreshFailed: "Please reconnect your {name} account",
    NotConnected: "Please connect your {name} account",
}


@dataclass(frozen=True)
class ProviderErrorMapper:
    """Maps BalanceSyncError subclasses to HTTP (status_code, detail).

    Routers use one mapper per request so the detail can name the provider
    involved (e.g. "Please reconnect your Coinbase account").
    """

    api_name: str = "provider"

    def to_http(self, exc: BalanceSyncError) -> tuple[int, dict]:
        """Map a core failure to (status_code, detail) for HTTP responses.

        Args:
            exc: The failure raised by a provider, store or service.

        Returns:
            (status_code, detail) suitable for HTTPException(status_code=..., detail=...).
        """
        status_code = 500
        for error_type, status in _STATUS_BY_ERROR.items():
            if isinstance(exc, error_type):
                status_code = status
                break
        detail: dict = {"error": exc.kind, "message": exc.message}
        hint = next(
            (h for t, h in _HINT_BY_ERROR.items() if isinstance(exc, t)), None
        )
        if hint is not None:
            detail["details"] = hint.format(name=self.api_name.capitalize())
        if isinstance(exc, RemoteUnavailable) and exc.status_code is not None:
            detail["status"] = exc.status_code
        return status_code, detail

    def raise_http(self, exc: BalanceSyncError) -> None:
        """Map the failure to HTTP and raise HTTPException. Never returns."""
        status_code, detail = self.to_http(exc)
        raise HTTPException(status_code=status_code, detail=detail) from exc
