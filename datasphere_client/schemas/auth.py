"""Schemas related to OAuth flows and the authenticated session."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class OAuthTokenSet(BaseModel):
    """Token set held by the session and persisted in the token cache."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    access_token: str
    refresh_token: str
    expires_after: int = Field(..., description="Epoch seconds after which the access token is stale.")
    token_url: str
    client_id: str
    client_secret: str

    def is_valid(self, now: float, buffer_seconds: int) -> bool:
        return self.expires_after > now + buffer_seconds


class CsrfSession(BaseModel):
    """Anti-CSRF token plus the session cookies it is bound to."""

    model_config = ConfigDict(frozen=True)

    csrf_token: str
    cookie_header: str = ""


class TokenEndpointResponse(BaseModel):
    """Payload returned by the token endpoint for the authorization-code grant."""

    access_token: str
    refresh_token: str
    expires_in: int


class RefreshEndpointResponse(BaseModel):
    """Payload returned by the token endpoint for the refresh-token grant."""

    access_token: str
    expires_in: int


__all__ = [
    "CsrfSession",
    "OAuthTokenSet",
    "RefreshEndpointResponse",
    "TokenEndpointResponse",
]
