try:
    from . import _bootstrap  # noqa: F401
    from .fakes import make_tokens
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401
    from fakes import make_tokens  # type: ignore

import asyncio
import socket

import httpx
import pytest

from datasphere_client.clients.callback_server import OAuthCallbackListener, build_callback_app
from datasphere_client.core.errors import (
    AuthenticationError,
    OAuthStateMismatchError,
    OAuthTokenExchangeError,
)


class CallbackRecorder:
    def __init__(self, *, fail_exchange: bool = False) -> None:
        self.fail_exchange = fail_exchange
        self.codes: list[str] = []
        self.results: list[object] = []

    async def exchange(self, code: str):
        self.codes.append(code)
        if self.fail_exchange:
            raise OAuthTokenExchangeError("rejected", status_code=400, body="invalid_grant")
        return make_tokens(access_token=f"token-for-{code}")

    def on_result(self, outcome) -> None:
        self.results.append(outcome)


def _http(recorder: CallbackRecorder) -> httpx.AsyncClient:
    app = build_callback_app(
        expected_state="expected-state",
        exchange=recorder.exchange,
        on_result=recorder.on_result,
    )
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://localhost:8080")


@pytest.mark.anyio
async def test_valid_callback_exchanges_code_and_reports_tokens() -> None:
    recorder = CallbackRecorder()

    async with _http(recorder) as client:
        response = await client.get("/", params={"code": "abc", "state": "expected-state"})

    assert response.status_code == 200
    assert "Login successful" in response.text
    assert recorder.codes == ["abc"]
    assert recorder.results == [make_tokens(access_token="token-for-abc")]


@pytest.mark.anyio
async def test_state_mismatch_is_rejected_without_exchange() -> None:
    recorder = CallbackRecorder()

    async with _http(recorder) as client:
        response = await client.get("/", params={"code": "abc", "state": "forged"})

    assert response.status_code == 400
    assert recorder.codes == []
    (outcome,) = recorder.results
    assert isinstance(outcome, OAuthStateMismatchError)


@pytest.mark.anyio
async def test_missing_state_counts_as_mismatch() -> None:
    recorder = CallbackRecorder()

    async with _http(recorder) as client:
        response = await client.get("/", params={"code": "abc"})

    assert response.status_code == 400
    assert isinstance(recorder.results[0], OAuthStateMismatchError)


@pytest.mark.anyio
async def test_request_without_code_keeps_waiting() -> None:
    recorder = CallbackRecorder()

    async with _http(recorder) as client:
        response = await client.get("/", params={"state": "expected-state"})

    assert response.status_code == 400
    assert response.text == "Missing authorization code"
    assert recorder.results == []


@pytest.mark.anyio
async def test_failed_exchange_is_reported() -> None:
    recorder = CallbackRecorder(fail_exchange=True)

    async with _http(recorder) as client:
        response = await client.get("/", params={"code": "abc", "state": "expected-state"})

    assert response.status_code == 500
    (outcome,) = recorder.results
    assert isinstance(outcome, OAuthTokenExchangeError)
    assert outcome.status_code == 400


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.mark.asyncio
async def test_listener_serves_one_callback_and_closes_once() -> None:
    recorder = CallbackRecorder()
    port = _free_port()
    listener = OAuthCallbackListener(
        port=port, state="expected-state", exchange=recorder.exchange, bind_host="127.0.0.1"
    )

    async with listener:
        assert listener.redirect_uri == f"http://localhost:{port}"
        async with httpx.AsyncClient(trust_env=False) as http:
            favicon = await http.get(f"http://127.0.0.1:{port}/")
            response = await http.get(
                f"http://127.0.0.1:{port}/", params={"code": "abc", "state": "expected-state"}
            )
        tokens = await asyncio.wait_for(listener.wait(), timeout=5)

    assert favicon.status_code == 400
    assert response.status_code == 200
    assert tokens.access_token == "token-for-abc"
    await listener.close()


@pytest.mark.asyncio
async def test_listener_reports_state_mismatch_from_wait() -> None:
    recorder = CallbackRecorder()
    port = _free_port()

    async with OAuthCallbackListener(
        port=port, state="expected-state", exchange=recorder.exchange, bind_host="127.0.0.1"
    ) as listener:
        async with httpx.AsyncClient(trust_env=False) as http:
            await http.get(f"http://127.0.0.1:{port}/", params={"code": "abc", "state": "forged"})
        with pytest.raises(OAuthStateMismatchError):
            await asyncio.wait_for(listener.wait(), timeout=5)


@pytest.mark.asyncio
async def test_listener_on_busy_port_fails_to_start() -> None:
    recorder = CallbackRecorder()
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
        busy.bind(("127.0.0.1", 0))
        busy.listen(1)
        port = busy.getsockname()[1]

        listener = OAuthCallbackListener(
            port=port, state="s", exchange=recorder.exchange, bind_host="127.0.0.1"
        )
        with pytest.raises(AuthenticationError):
            async with listener:
                pass
