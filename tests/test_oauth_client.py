try:
    from . import _bootstrap  # noqa: F401
    from .fakes import NOW, TOKEN_URL
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401
    from fakes import NOW, TOKEN_URL  # type: ignore

from urllib.parse import parse_qs

import httpx
import pytest

from datasphere_client.clients.oauth import DatasphereOAuthClient
from datasphere_client.core.config import OAuthSettings
from datasphere_client.core.errors import OAuthTokenExchangeError
from datasphere_client.utils.http import HttpClientFactory


class RecordingTokenEndpoint:
    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.forms: list[dict[str, str]] = []
        self.content_types: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.forms.append({k: v[0] for k, v in parse_qs(request.content.decode()).items()})
        self.content_types.append(request.headers["content-type"])
        return self.response


def _client(handler) -> DatasphereOAuthClient:
    http = HttpClientFactory(transport=httpx.MockTransport(handler))
    return DatasphereOAuthClient(http, clock=lambda: NOW)


def test_authorization_url_carries_only_code_flow_parameters(oauth_settings: OAuthSettings) -> None:
    url = httpx.URL(DatasphereOAuthClient.build_authorization_url(oauth_settings, "nonce-123"))

    assert url.path == "/oauth/authorize"
    assert dict(url.params) == {
        "response_type": "code",
        "client_id": "sb-datasphere-client",
        "state": "nonce-123",
    }


def test_authorization_url_keeps_existing_query() -> None:
    oauth = OAuthSettings(
        client_id="client",
        client_secret="secret",
        authorization_url="https://auth.example.com/oauth/authorize?tenant=t1",
        token_url="https://auth.example.com/oauth/token",
    )

    url = httpx.URL(DatasphereOAuthClient.build_authorization_url(oauth, "s"))

    assert url.params["tenant"] == "t1"
    assert url.params["state"] == "s"


@pytest.mark.asyncio
async def test_refresh_posts_form_and_computes_expiry() -> None:
    endpoint = RecordingTokenEndpoint(
        httpx.Response(200, json={"access_token": "new-access", "expires_in": 1800})
    )

    access_token, expires_after = await _client(endpoint).refresh_token(
        token_url=TOKEN_URL,
        refresh_token="refresh-token",
        client_id="client",
        client_secret="secret",
    )

    assert access_token == "new-access"
    assert expires_after == NOW + 1800
    assert endpoint.forms == [
        {
            "grant_type": "refresh_token",
            "refresh_token": "refresh-token",
            "client_id": "client",
            "client_secret": "secret",
        }
    ]
    assert endpoint.content_types == ["application/x-www-form-urlencoded"]


@pytest.mark.asyncio
async def test_refresh_failure_carries_status_and_body() -> None:
    endpoint = RecordingTokenEndpoint(httpx.Response(400, text='{"error":"invalid_grant"}'))

    with pytest.raises(OAuthTokenExchangeError) as exc_info:
        await _client(endpoint).refresh_token(
            token_url=TOKEN_URL,
            refresh_token="revoked",
            client_id="client",
            client_secret="secret",
        )

    assert exc_info.value.status_code == 400
    assert "invalid_grant" in exc_info.value.body


@pytest.mark.asyncio
async def test_refresh_rejects_incomplete_payload() -> None:
    endpoint = RecordingTokenEndpoint(httpx.Response(200, json={"token_type": "bearer"}))

    with pytest.raises(OAuthTokenExchangeError):
        await _client(endpoint).refresh_token(
            token_url=TOKEN_URL,
            refresh_token="refresh-token",
            client_id="client",
            client_secret="secret",
        )


@pytest.mark.asyncio
async def test_transport_errors_become_token_exchange_errors() -> None:
    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(OAuthTokenExchangeError):
        await _client(unreachable).refresh_token(
            token_url=TOKEN_URL,
            refresh_token="refresh-token",
            client_id="client",
            client_secret="secret",
        )


@pytest.mark.asyncio
async def test_code_exchange_builds_token_set(oauth_settings: OAuthSettings) -> None:
    endpoint = RecordingTokenEndpoint(
        httpx.Response(
            200,
            json={"access_token": "access", "refresh_token": "refresh", "expires_in": 3600},
        )
    )

    tokens = await _client(endpoint).exchange_authorization_code(
        oauth_settings, "auth-code", redirect_uri="http://localhost:8080"
    )

    assert tokens.access_token == "access"
    assert tokens.refresh_token == "refresh"
    assert tokens.expires_after == NOW + 3600
    assert tokens.token_url == TOKEN_URL
    assert tokens.client_id == "sb-datasphere-client"
    assert endpoint.forms[0] == {
        "grant_type": "authorization_code",
        "code": "auth-code",
        "redirect_uri": "http://localhost:8080",
        "client_id": "sb-datasphere-client",
        "client_secret": "client-secret",
    }


@pytest.mark.asyncio
async def test_code_exchange_rejection_raises(oauth_settings: OAuthSettings) -> None:
    endpoint = RecordingTokenEndpoint(httpx.Response(401, text="unauthorized_client"))

    with pytest.raises(OAuthTokenExchangeError) as exc_info:
        await _client(endpoint).exchange_authorization_code(
            oauth_settings, "auth-code", redirect_uri="http://localhost:8080"
        )

    assert exc_info.value.status_code == 401
    assert exc_info.value.body == "unauthorized_client"
