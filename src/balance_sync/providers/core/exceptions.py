"""Typed failures raised by providers, stores and services.

Every failure the core surfaces to a caller is a BalanceSyncError subclass with a
stable `kind` string, so the HTTP layer and the CLI can decide whether to prompt
a reconnect or show a transient error.
"""


class BalanceSyncError(Exception):
    """Base class for all typed failures of the synchronization core."""

    kind = "error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__ or self.kind


class AuthRequired(BalanceSyncError):
    """Not authenticated"""

    kind = "auth_required"


class NotConnected(BalanceSyncError):
    """No credential is stored for this provider"""

    kind = "not_connected"


class InvalidCredentials(BalanceSyncError):
    """The provider rejected the supplied credentials"""

    kind = "invalid_credentials"


class ReconnectRequired(BalanceSyncError):
    """Token expired and no refresh token available"""

    kind = "reconnect_required"


class RefreshFailed(BalanceSyncError):
    """Failed to refresh token"""

    kind = "refresh_failed"


class RemoteUnavailable(BalanceSyncError):
    """The provider API call failed"""

    kind = "remote_unavailable"

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ParseError(BalanceSyncError):
    """The uploaded file could not be parsed"""

    kind = "parse_error"


class PersistenceError(BalanceSyncError):
    """A storage write failed"""

    kind = "persistence_error"


class NotFound(BalanceSyncError):
    """Connection not found"""

    kind = "not_found"
