"""
Login flow: reuse cached tokens, fall back to a silent refresh, and finally run
the interactive OAuth authorization-code flow in the system browser.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
import webbrowser
from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional

from datasphere_client.clients.callback_server import OAuthCallbackListener
from datasphere_client.clients.csrf import CsrfClient
from datasphere_client.clients.oauth import DatasphereOAuthClient
from datasphere_client.clients.token_store import TokenStore
from datasphere_client.core.config import ClientSettings, OAuthSettings, resolve_callback_port
from datasphere_client.core.errors import (
    AuthenticationError,
    CsrfError,
    OAuthCallbackTimeoutError,
)
from datasphere_client.core.logging import get_logger
from datasphere_client.schemas.auth import CsrfSession, OAuthTokenSet

BrowserOpener = Callable[[str], bool]


@dataclass(slots=True)
class LoginResult:
    """Tokens plus the CSRF session that proved them usable."""

    tokens: OAuthTokenSet
    csrf: CsrfSession


class LoginFlow:
    """Obtain a validated token set for the configured host."""

    TOKEN_EXPIRY_BUFFER_SECONDS = 60

    def __init__(
        self,
        *,
        settings: ClientSettings,
        oauth_client: DatasphereOAuthClient,
        csrf_client: CsrfClient,
        token_store: TokenStore,
        listener_factory: Callable[..., OAuthCallbackListener] = OAuthCallbackListener,
        browser_opener: BrowserOpener = webbrowser.open,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._settings = settings
        self._host = settings.base_url
        self._oauth = oauth_client
        self._csrf = csrf_client
        self._token_store = token_store
        self._listener_factory = listener_factory
        self._browser_opener = browser_opener
        self._clock = clock
        self._logger = get_logger(__name__, logger)

    async def login(self) -> LoginResult:
        cached = self._token_store.load(self._host)
        if cached is not None:
            resumed = await self._resume(cached)
            if resumed is not None:
                return resumed

        oauth = self._settings.resolve_oauth()
        tokens = await self._interactive_login(oauth)
        self._token_store.save(self._host, tokens)

        csrf = await self._csrf.fetch(tokens.access_token)
        return LoginResult(tokens=tokens, csrf=csrf)

    async def _resume(self, cached: OAuthTokenSet) -> Optional[LoginResult]:
        """Validate cached tokens, refreshing once; ``None`` means log in again."""
        if cached.is_valid(self._clock(), self.TOKEN_EXPIRY_BUFFER_SECONDS):
            self._logger.debug("Using cached tokens (still valid)")
            try:
                csrf = await self._csrf.fetch(cached.access_token)
            except CsrfError as exc:
                self._logger.debug("Cached token CSRF failed, will try refresh: %s", exc)
            else:
                return LoginResult(tokens=cached, csrf=csrf)
        else:
            self._logger.debug("Cached access token expired, refreshing...")

        try:
            access_token, expires_after = await self._oauth.refresh_token(
                token_url=cached.token_url,
                refresh_token=cached.refresh_token,
                client_id=cached.client_id,
                client_secret=cached.client_secret,
            )
        except AuthenticationError as exc:
            self._logger.debug("Token refresh failed: %s", exc)
            return None

        tokens = cached.model_copy(
            update={"access_token": access_token, "expires_after": expires_after}
        )
        self._token_store.save(self._host, tokens)

        try:
            csrf = await self._csrf.fetch(tokens.access_token)
        except CsrfError as exc:
            self._logger.debug("Refreshed token CSRF failed, will do full login: %s", exc)
            return None
        return LoginResult(tokens=tokens, csrf=csrf)

    async def _interactive_login(self, oauth: OAuthSettings) -> OAuthTokenSet:
        state = secrets.token_hex(16)
        port = resolve_callback_port(oauth.client_id, self._settings.callback_port)
        redirect_uri = f"http://localhost:{port}"

        listener = self._listener_factory(
            port=port,
            state=state,
            exchange=partial(
                self._oauth.exchange_authorization_code, oauth, redirect_uri=redirect_uri
            ),
        )
        async with listener:
            authorization_url = self._oauth.build_authorization_url(oauth, state)
            self._logger.debug("Opening browser for OAuth login...")
            self._logger.debug("Redirect URI: %s", redirect_uri)
            self._logger.debug("Auth URL: %s", authorization_url)
            await asyncio.to_thread(self._open_browser, authorization_url)

            try:
                return await asyncio.wait_for(
                    listener.wait(), timeout=self._settings.callback_timeout_seconds
                )
            except asyncio.TimeoutError as exc:
                raise OAuthCallbackTimeoutError(
                    "OAuth login timed out. Did you maintain the redirect URI as "
                    f"{redirect_uri} in SAP Datasphere?"
                ) from exc

    def _open_browser(self, url: str) -> None:
        try:
            opened = self._browser_opener(url)
        except webbrowser.Error as exc:
            self._logger.debug("Failed to open browser: %s", exc)
            opened = False
        if not opened:
            self._logger.warning("Open this URL to finish logging in: %s", url)


__all__ = ["LoginFlow", "LoginResult"]
