"""Client for SAP Datasphere views, local tables and replication flows."""

import logging

from .client import DatasphereClient, create_client
from .core.config import ClientSettings, OAuthSettings, get_settings
from .core.errors import (
    AuthenticationError,
    ConfigurationError,
    CsrfError,
    DatasphereError,
    DatasphereHTTPError,
    DatasphereTransportError,
    DocumentError,
    ExistenceProbeError,
    NotAuthenticatedError,
    OAuthCallbackTimeoutError,
    OAuthStateMismatchError,
    OAuthTokenExchangeError,
    RunReplicationFlowError,
    SessionExpiredError,
)
from .schemas import (
    CsrfSession,
    ExistenceState,
    OAuthTokenSet,
    RunResult,
    UpsertAction,
    UpsertResult,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AuthenticationError",
    "ClientSettings",
    "ConfigurationError",
    "CsrfError",
    "CsrfSession",
    "DatasphereClient",
    "DatasphereError",
    "DatasphereHTTPError",
    "DatasphereTransportError",
    "DocumentError",
    "ExistenceProbeError",
    "ExistenceState",
    "NotAuthenticatedError",
    "OAuthCallbackTimeoutError",
    "OAuthSettings",
    "OAuthStateMismatchError",
    "OAuthTokenExchangeError",
    "OAuthTokenSet",
    "RunReplicationFlowError",
    "RunResult",
    "SessionExpiredError",
    "UpsertAction",
    "UpsertResult",
    "create_client",
    "get_settings",
]
