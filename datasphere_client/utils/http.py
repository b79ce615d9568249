"""HTTP utilities shared by the OAuth, CSRF and resource clients."""

from __future__ import annotations

from typing import Mapping, Optional

import httpx

from datasphere_client.core.errors import DatasphereHTTPError


class HttpClientFactory:
    """Build short-lived ``httpx.AsyncClient`` instances with a fixed timeout.

    Every call gets an explicit deadline; ``transport`` lets tests swap in an
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def __call__(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport)


def build_url(host: str, path: str, params: Optional[Mapping[str, str]] = None) -> str:
    """Join the service host with an absolute API path and query flags."""
    url = httpx.URL(host.rstrip("/") + "/" + path.lstrip("/"))
    if params:
        url = url.copy_merge_params(dict(params))
    return str(url)


def collect_cookies(response: httpx.Response) -> str:
    """Fold every ``Set-Cookie`` header into a single ``Cookie`` request header."""
    pairs = [
        raw.split(";", 1)[0].strip()
        for raw in response.headers.get_list("set-cookie")
    ]
    return "; ".join(pair for pair in pairs if pair)


def check_response(response: httpx.Response, operation: str) -> str:
    """Return the body text of a 2xx response, raising otherwise."""
    body = response.text
    if not response.is_success:
        raise DatasphereHTTPError(operation, response.status_code, body)
    return body


__all__ = ["HttpClientFactory", "build_url", "check_response", "collect_cookies"]
