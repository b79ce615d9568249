"""
Local redirect listener for the OAuth authorization-code flow.

A one-route FastAPI app is served by uvicorn on ``localhost:<port>`` until a
valid callback arrives, the callback fails, or the caller gives up.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Awaitable, Callable, Optional, Union

import uvicorn
from fastapi import FastAPI
from fastapi.responses import HTMLResponse, PlainTextResponse

from datasphere_client.core.errors import (
    AuthenticationError,
    OAuthStateMismatchError,
)
from datasphere_client.core.logging import get_logger
from datasphere_client.schemas.auth import OAuthTokenSet

CodeExchange = Callable[[str], Awaitable[OAuthTokenSet]]
ResultSink = Callable[[Union[OAuthTokenSet, BaseException]], None]

SUCCESS_PAGE = (
    "<html><body><h2>Login successful</h2>"
    "<p>You can close this tab.</p></body></html>"
)


def build_callback_app(
    *,
    expected_state: str,
    exchange: CodeExchange,
    on_result: ResultSink,
) -> FastAPI:
    """Create the ASGI app answering the authorization redirect.

    A request without ``code`` (a favicon probe, a reload) gets a 400 and the
    listener keeps waiting. A state mismatch or a failed exchange ends the flow.
    """
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/")
    async def oauth_callback(code: Optional[str] = None, state: Optional[str] = None):
        if not code:
            return PlainTextResponse("Missing authorization code", status_code=400)

        if state != expected_state:
            on_result(OAuthStateMismatchError("OAuth callback: state mismatch"))
            return PlainTextResponse("Invalid callback - state mismatch", status_code=400)

        try:
            tokens = await exchange(code)
        except AuthenticationError as exc:
            on_result(exc)
            return PlainTextResponse("Token exchange failed", status_code=500)

        on_result(tokens)
        return HTMLResponse(SUCCESS_PAGE)

    return app


class OAuthCallbackListener:
    """Async context manager owning the uvicorn server for one login attempt."""

    _STARTUP_POLL_SECONDS = 0.05

    def __init__(
        self,
        *,
        port: int,
        state: str,
        exchange: CodeExchange,
        bind_host: str = "localhost",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.port = port
        self.redirect_uri = f"http://localhost:{port}"
        self._state = state
        self._exchange = exchange
        self._bind_host = bind_host
        self._logger = get_logger(__name__, logger)
        self._result: Optional[asyncio.Future] = None
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    async def __aenter__(self) -> "OAuthCallbackListener":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _resolve(self, outcome: Union[OAuthTokenSet, BaseException]) -> None:
        if self._result is None or self._result.done():
            return
        if isinstance(outcome, BaseException):
            self._result.set_exception(outcome)
        else:
            self._result.set_result(outcome)

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._result = loop.create_future()

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self._bind_host, self.port))
        except OSError as exc:
            sock.close()
            self._closed = True
            raise AuthenticationError(
                f"Failed to start OAuth callback server on port {self.port}: {exc}"
            ) from exc

        app = build_callback_app(
            expected_state=self._state,
            exchange=self._exchange,
            on_result=self._resolve,
        )
        config = uvicorn.Config(app, log_level="warning", lifespan="off")
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[sock]))

        while not self._server.started:
            if self._task.done():
                await self.close()
                raise AuthenticationError(
                    f"OAuth callback server on port {self.port} stopped during startup"
                )
            await asyncio.sleep(self._STARTUP_POLL_SECONDS)
        self._logger.debug("OAuth callback listener ready at %s", self.redirect_uri)

    async def wait(self) -> OAuthTokenSet:
        """Wait for the callback; raises whatever error ended the flow."""
        if self._result is None:
            raise RuntimeError("Listener has not been started")
        return await asyncio.shield(self._result)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._server is not None:
            self._server.should_exit = True
        if self._task is not None:
            try:
                await self._task
            except Exception as exc:  # pylint: disable=broad-except
                self._logger.debug("OAuth callback server exited with %s", exc)
        if self._result is not None and not self._result.done():
            self._result.cancel()
        self._logger.debug("OAuth callback listener on port %s closed", self.port)


__all__ = ["OAuthCallbackListener", "SUCCESS_PAGE", "build_callback_app"]
