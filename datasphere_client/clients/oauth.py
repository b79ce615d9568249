"""
Datasphere OAuth utilities.

These helpers build the authorization URL and talk to the token endpoint for
the authorization-code and refresh-token grants.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Tuple

import httpx
from pydantic import ValidationError

from datasphere_client.core.config import OAuthSettings
from datasphere_client.core.errors import OAuthTokenExchangeError
from datasphere_client.core.logging import get_logger
from datasphere_client.schemas.auth import (
    OAuthTokenSet,
    RefreshEndpointResponse,
    TokenEndpointResponse,
)
from datasphere_client.utils.http import HttpClientFactory

_FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


class DatasphereOAuthClient:
    """Build authorization URLs, exchange authorization codes and refresh tokens."""

    def __init__(
        self,
        http: HttpClientFactory,
        *,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._http = http
        self._clock = clock
        self._logger = get_logger(__name__, logger)

    @staticmethod
    def build_authorization_url(oauth: OAuthSettings, state: str) -> str:
        """Construct the consent URL.

        Only ``response_type``, ``client_id`` and ``state`` are sent; the
        redirect URI is whatever is maintained for the client in Datasphere.
        """
        url = httpx.URL(str(oauth.authorization_url)).copy_merge_params(
            {
                "response_type": "code",
                "client_id": oauth.client_id,
                "state": state,
            }
        )
        return str(url)

    async def exchange_authorization_code(
        self, oauth: OAuthSettings, code: str, *, redirect_uri: str
    ) -> OAuthTokenSet:
        """Exchange an authorization code for a complete token set."""
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": oauth.client_id,
            "client_secret": oauth.client_secret,
        }
        token_url = str(oauth.token_url)

        self._logger.debug("Exchanging authorization code for tokens...")
        response = await self._post_form(token_url, payload)
        if not response.is_success:
            raise OAuthTokenExchangeError(
                f"Token exchange failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            token_payload = TokenEndpointResponse.model_validate_json(response.content)
        except ValidationError as exc:
            raise OAuthTokenExchangeError(
                f"Incomplete token payload returned from {token_url}: {exc}",
                status_code=response.status_code,
                body=response.text,
            ) from exc

        return OAuthTokenSet(
            access_token=token_payload.access_token,
            refresh_token=token_payload.refresh_token,
            expires_after=int(self._clock()) + token_payload.expires_in,
            token_url=token_url,
            client_id=oauth.client_id,
            client_secret=oauth.client_secret,
        )

    async def refresh_token(
        self,
        *,
        token_url: str,
        refresh_token: str,
        client_id: str,
        client_secret: str,
    ) -> Tuple[str, int]:
        """Refresh the access token.

        Returns a tuple of (access_token, expires_after_epoch_seconds). No
        retry is attempted here.
        """
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": client_id,
            "client_secret": client_secret,
        }

        self._logger.debug("Refreshing access token...")
        response = await self._post_form(token_url, payload)
        if not response.is_success:
            raise OAuthTokenExchangeError(
                f"Token refresh failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            refreshed = RefreshEndpointResponse.model_validate_json(response.content)
        except ValidationError as exc:
            raise OAuthTokenExchangeError(
                f"Incomplete refresh payload returned from {token_url}: {exc}",
                status_code=response.status_code,
                body=response.text,
            ) from exc

        self._logger.debug("Token refreshed, expires in %s seconds", refreshed.expires_in)
        return refreshed.access_token, int(self._clock()) + refreshed.expires_in

    async def _post_form(self, url: str, payload: dict) -> httpx.Response:
        try:
            async with self._http() as client:
                return await client.post(url, data=payload, headers=_FORM_HEADERS)
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError(f"Token endpoint {url} unreachable: {exc}") from exc


__all__ = ["DatasphereOAuthClient"]
