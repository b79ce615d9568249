"""Public schema exports."""

from .auth import (
    CsrfSession,
    OAuthTokenSet,
    RefreshEndpointResponse,
    TokenEndpointResponse,
)
from .results import (
    ExistenceState,
    RunResponsePayload,
    RunResult,
    UpsertAction,
    UpsertResult,
)

__all__ = [
    "CsrfSession",
    "ExistenceState",
    "OAuthTokenSet",
    "RefreshEndpointResponse",
    "RunResponsePayload",
    "RunResult",
    "TokenEndpointResponse",
    "UpsertAction",
    "UpsertResult",
]
