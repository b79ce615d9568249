"""
Exception hierarchy shared by the session engine and the reconciliation engine.
"""

from __future__ import annotations

from typing import Optional


class DatasphereError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(DatasphereError):
    """Raised when settings or OAuth client options are missing or malformed."""


class AuthenticationError(DatasphereError):
    """Raised when a usable access token cannot be obtained."""


class NotAuthenticatedError(AuthenticationError):
    """Raised when no token set is held and login has not been performed."""


class OAuthTokenExchangeError(AuthenticationError):
    """Raised when the token endpoint rejects a code exchange or refresh."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class OAuthStateMismatchError(AuthenticationError):
    """Raised when the authorization callback carries an unexpected state."""


class OAuthCallbackTimeoutError(AuthenticationError):
    """Raised when the browser never reaches the local callback listener."""


class SessionExpiredError(AuthenticationError):
    """Raised when the service answers 401 to an authenticated call."""


class CsrfError(DatasphereError):
    """Raised when a CSRF token cannot be fetched or is rejected after a retry."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DatasphereHTTPError(DatasphereError):
    """Raised when a resource operation returns a non-2xx status."""

    BODY_PREVIEW_CHARS = 500

    def __init__(self, operation: str, status_code: int, body: str) -> None:
        self.operation = operation
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"{operation}: HTTP {status_code} - {body[: self.BODY_PREVIEW_CHARS]}"
        )


class RunReplicationFlowError(DatasphereHTTPError):
    """Raised when a replication flow run request fails."""


class DatasphereTransportError(DatasphereError):
    """Raised when a request never produced a response (connect, read, timeout)."""


class DocumentError(DatasphereError, ValueError):
    """Raised when a CSN document does not contain the requested object."""


class ExistenceProbeError(DatasphereError):
    """Raised when an upsert cannot tell whether the object already exists."""


__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "CsrfError",
    "DatasphereError",
    "DatasphereHTTPError",
    "DatasphereTransportError",
    "DocumentError",
    "ExistenceProbeError",
    "NotAuthenticatedError",
    "OAuthCallbackTimeoutError",
    "OAuthStateMismatchError",
    "OAuthTokenExchangeError",
    "RunReplicationFlowError",
    "SessionExpiredError",
]
