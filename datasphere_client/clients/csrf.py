"""CSRF token acquisition for mutating Datasphere calls."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from datasphere_client.core.errors import CsrfError
from datasphere_client.core.logging import get_logger
from datasphere_client.schemas.auth import CsrfSession
from datasphere_client.utils.http import HttpClientFactory, build_url, collect_cookies


class CsrfClient:
    """Fetch a one-time CSRF token and the session cookies bound to it."""

    CSRF_PATH = "/api/v1/csrf"

    def __init__(
        self,
        host: str,
        http: HttpClientFactory,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._host = host
        self._http = http
        self._logger = get_logger(__name__, logger)

    async def fetch(self, access_token: str) -> CsrfSession:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "X-Csrf-Token": "Fetch",
            "X-Requested-With": "XMLHttpRequest",
        }
        try:
            async with self._http() as client:
                response = await client.head(build_url(self._host, self.CSRF_PATH), headers=headers)
        except httpx.HTTPError as exc:
            raise CsrfError(f"CSRF fetch failed: {exc}") from exc

        if not response.is_success:
            raise CsrfError(
                f"CSRF fetch failed ({response.status_code})",
                status_code=response.status_code,
            )

        token = response.headers.get("x-csrf-token")
        if not token:
            raise CsrfError(
                "No x-csrf-token header in CSRF response",
                status_code=response.status_code,
            )

        cookies = collect_cookies(response)
        self._logger.debug("CSRF token acquired, cookies: %s", "present" if cookies else "none")
        return CsrfSession(csrf_token=token, cookie_header=cookies)


__all__ = ["CsrfClient"]
