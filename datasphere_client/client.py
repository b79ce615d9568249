"""
Public entry point wiring settings, the session engine and the per-kind
reconciliation engines into one client.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional

import httpx

from datasphere_client.clients.callback_server import OAuthCallbackListener
from datasphere_client.clients.csrf import CsrfClient
from datasphere_client.clients.oauth import DatasphereOAuthClient
from datasphere_client.clients.token_store import TokenStore
from datasphere_client.core.config import ClientSettings, get_settings
from datasphere_client.core.logging import get_logger
from datasphere_client.models.resource_kinds import (
    LOCAL_TABLE,
    REPLICATION_FLOW,
    VIEW,
    get_resource_kind,
)
from datasphere_client.schemas.auth import OAuthTokenSet
from datasphere_client.services.login import BrowserOpener, LoginFlow
from datasphere_client.services.reconciliation import ReplicationFlowEngine, ResourceEngine
from datasphere_client.services.session import SessionManager
from datasphere_client.services.token_cipher import TokenCacheCipher
from datasphere_client.utils.http import HttpClientFactory


class DatasphereClient:
    """Authenticated client for one Datasphere host and space.

    Not safe for use from several event loops; one instance keeps a single
    logical session.
    """

    def __init__(
        self,
        settings: ClientSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        token_store: Optional[TokenStore] = None,
        listener_factory: Optional[Callable[..., OAuthCallbackListener]] = None,
        browser_opener: Optional[BrowserOpener] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings
        self._logger = get_logger(__name__, logger)
        host = settings.base_url

        http = HttpClientFactory(
            timeout_seconds=settings.request_timeout_seconds, transport=transport
        )
        if token_store is None:
            cipher = (
                TokenCacheCipher(secret=settings.token_encryption_secret)
                if settings.token_encryption_secret
                else None
            )
            token_store = TokenStore(settings.token_cache_path, cipher=cipher, logger=logger)
        self.token_store = token_store

        oauth_client = DatasphereOAuthClient(http, clock=clock, logger=logger)
        csrf_client = CsrfClient(host, http, logger=logger)

        self.session = SessionManager(
            host=host,
            http=http,
            oauth_client=oauth_client,
            csrf_client=csrf_client,
            token_store=token_store,
            tokens=settings.tokens,
            clock=clock,
            logger=logger,
        )

        login_kwargs: Dict[str, Any] = {}
        if listener_factory is not None:
            login_kwargs["listener_factory"] = listener_factory
        if browser_opener is not None:
            login_kwargs["browser_opener"] = browser_opener
        self._login_flow = LoginFlow(
            settings=settings,
            oauth_client=oauth_client,
            csrf_client=csrf_client,
            token_store=token_store,
            clock=clock,
            logger=logger,
            **login_kwargs,
        )

        self.views = ResourceEngine(self.session, space=settings.space, kind=VIEW, logger=logger)
        self.local_tables = ResourceEngine(
            self.session, space=settings.space, kind=LOCAL_TABLE, logger=logger
        )
        self.replication_flows = ReplicationFlowEngine(
            self.session,
            space=settings.space,
            kind=REPLICATION_FLOW,
            dependency_engine=self.local_tables,
            logger=logger,
        )
        self._engines: Dict[str, ResourceEngine] = {
            engine.kind.name: engine
            for engine in (self.views, self.local_tables, self.replication_flows)
        }

    async def __aenter__(self) -> "DatasphereClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Drop the in-memory session; cached tokens stay on disk."""
        self.session.clear()

    async def login(self) -> OAuthTokenSet:
        """Establish a session from cache, refresh, or the browser flow."""
        result = await self._login_flow.login()
        self.session.install(result.tokens, result.csrf)
        self._logger.info("Logged in to %s", self.settings.base_url)
        return result.tokens

    def logout(self) -> bool:
        """Forget the session and remove cached tokens for this host."""
        self.session.clear()
        return self.token_store.delete(self.settings.base_url)

    def engine(self, kind_name: str) -> ResourceEngine:
        return self._engines[get_resource_kind(kind_name).name]

    async def object_exists(self, kind_name: str, name: str) -> bool:
        return await self.engine(kind_name).exists(name)

    async def raw_request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        content: Optional[bytes] = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send any request through the auth + CSRF pipeline."""
        return await self.session.request(
            method, path, params=params, headers=headers, content=content, json=json
        )


def create_client(settings: Optional[ClientSettings] = None, **kwargs: Any) -> DatasphereClient:
    """Build a client from explicit settings or from the environment."""
    return DatasphereClient(settings or get_settings(), **kwargs)


__all__ = ["DatasphereClient", "create_client"]
