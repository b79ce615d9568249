"""
Session management for authenticated Datasphere calls.

Keeps the access token fresh, holds the CSRF session bound to it, and sends
requests with the right headers, retrying a mutating call once when the
service rejects a stale CSRF token.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import httpx

from datasphere_client.clients.csrf import CsrfClient
from datasphere_client.clients.oauth import DatasphereOAuthClient
from datasphere_client.clients.token_store import TokenStore
from datasphere_client.core.errors import (
    CsrfError,
    DatasphereTransportError,
    NotAuthenticatedError,
)
from datasphere_client.core.logging import get_logger
from datasphere_client.schemas.auth import CsrfSession, OAuthTokenSet
from datasphere_client.utils.http import HttpClientFactory, build_url

OBJECT_CONTENT_TYPE = "application/vnd.sap.datasphere.object.content+json"
_SAFE_METHODS = frozenset({"GET", "HEAD"})


class SessionManager:
    """Guarantees callers a currently valid (access token, CSRF session) pair."""

    TOKEN_EXPIRY_BUFFER_SECONDS = 60

    def __init__(
        self,
        *,
        host: str,
        http: HttpClientFactory,
        oauth_client: DatasphereOAuthClient,
        csrf_client: CsrfClient,
        token_store: TokenStore,
        tokens: Optional[OAuthTokenSet] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._host = host
        self._http = http
        self._oauth = oauth_client
        self._csrf_client = csrf_client
        self._token_store = token_store
        self._tokens = tokens
        self._csrf: Optional[CsrfSession] = None
        self._clock = clock
        self._logger = get_logger(__name__, logger)
        self._token_lock = asyncio.Lock()
        self._csrf_lock = asyncio.Lock()

    @property
    def host(self) -> str:
        return self._host

    @property
    def tokens(self) -> Optional[OAuthTokenSet]:
        return self._tokens

    @property
    def csrf(self) -> Optional[CsrfSession]:
        return self._csrf

    def install(self, tokens: OAuthTokenSet, csrf: Optional[CsrfSession] = None) -> None:
        """Adopt a token set obtained by login (and optionally its CSRF session)."""
        self._tokens = tokens
        self._csrf = csrf

    def clear(self) -> None:
        self._tokens = None
        self._csrf = None

    async def ensure_access_token(self) -> Tuple[str, bool]:
        """Return ``(access_token, refreshed)``, refreshing when close to expiry."""
        async with self._token_lock:
            tokens = self._tokens
            if tokens is None:
                raise NotAuthenticatedError(
                    "Not authenticated - call login() first or provide tokens in configuration"
                )

            if tokens.is_valid(self._clock(), self.TOKEN_EXPIRY_BUFFER_SECONDS):
                return tokens.access_token, False

            self._logger.debug("Access token expired, refreshing...")
            access_token, expires_after = await self._oauth.refresh_token(
                token_url=tokens.token_url,
                refresh_token=tokens.refresh_token,
                client_id=tokens.client_id,
                client_secret=tokens.client_secret,
            )
            refreshed = tokens.model_copy(
                update={"access_token": access_token, "expires_after": expires_after}
            )
            # Persist before the new token becomes visible to any caller.
            self._token_store.save(self._host, refreshed)
            self._tokens = refreshed
            self._csrf = None
            return access_token, True

    async def ensure_csrf(self, access_token: str) -> CsrfSession:
        async with self._csrf_lock:
            if self._csrf is None:
                self._csrf = await self._csrf_client.fetch(access_token)
            return self._csrf

    def invalidate_csrf(self, stale: Optional[CsrfSession] = None) -> None:
        """Drop the held CSRF session; with ``stale``, only if it is still the held one."""
        if stale is None or self._csrf is stale:
            self._csrf = None

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        content: Optional[bytes] = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send an authenticated request.

        Non-2xx responses are returned as-is, except a 403 on a mutating call,
        which is retried once with a fresh CSRF token and raises ``CsrfError``
        if rejected again. A request that gets no response at all raises
        ``DatasphereTransportError``.
        """
        access_token, _ = await self.ensure_access_token()

        method = method.upper()
        mutating = method not in _SAFE_METHODS
        request_headers: Dict[str, str] = {
            "Authorization": f"Bearer {access_token}",
            "X-Requested-With": "XMLHttpRequest",
        }
        request_headers.update(headers or {})
        if not mutating:
            request_headers.setdefault("Accept", OBJECT_CONTENT_TYPE)

        url = build_url(self._host, path, params)
        self._logger.debug("%s %s", method, url)

        if not mutating:
            return await self._send(method, url, request_headers, content, json)

        csrf = await self.ensure_csrf(access_token)
        response = await self._send(
            method, url, self._with_csrf(request_headers, csrf), content, json
        )
        if response.status_code != httpx.codes.FORBIDDEN:
            return response

        self._logger.debug("Got 403, retrying with fresh CSRF token...")
        self.invalidate_csrf(csrf)
        fresh = await self.ensure_csrf(access_token)
        retry = await self._send(
            method, url, self._with_csrf(request_headers, fresh), content, json
        )
        if retry.status_code == httpx.codes.FORBIDDEN:
            self.invalidate_csrf(fresh)
            raise CsrfError(
                f"{method} {url} rejected with 403 after CSRF refresh: {retry.text[:500]}",
                status_code=retry.status_code,
                body=retry.text,
            )
        return retry

    @staticmethod
    def _with_csrf(headers: Mapping[str, str], csrf: CsrfSession) -> Dict[str, str]:
        merged = dict(headers)
        merged["X-Csrf-Token"] = csrf.csrf_token
        if csrf.cookie_header:
            merged["Cookie"] = csrf.cookie_header
        return merged

    async def _send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        content: Optional[bytes],
        json: Any,
    ) -> httpx.Response:
        try:
            async with self._http() as client:
                return await client.request(
                    method, url, headers=headers, content=content, json=json
                )
        except httpx.HTTPError as exc:
            raise DatasphereTransportError(f"{method} {url} failed: {exc}") from exc


__all__ = ["OBJECT_CONTENT_TYPE", "SessionManager"]
