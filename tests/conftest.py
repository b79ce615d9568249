"""Pytest configuration shared across the suite."""

from __future__ import annotations

from pathlib import Path

import pytest

try:
    from . import _bootstrap  # noqa: F401
    from .fakes import AUTH_URL, HOST, SPACE, TOKEN_URL
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401
    from fakes import AUTH_URL, HOST, SPACE, TOKEN_URL  # type: ignore

from datasphere_client.core.config import ClientSettings, OAuthSettings


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def oauth_settings() -> OAuthSettings:
    return OAuthSettings(
        client_id="sb-datasphere-client",
        client_secret="client-secret",
        authorization_url=AUTH_URL,
        token_url=TOKEN_URL,
    )


@pytest.fixture
def settings(tmp_path: Path, oauth_settings: OAuthSettings) -> ClientSettings:
    return ClientSettings(
        host=HOST,
        space=SPACE,
        oauth=oauth_settings,
        token_cache_path=tmp_path / "tokens.json",
    )
