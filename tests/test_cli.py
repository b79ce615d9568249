"""Tests for the command-line front end."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

try:
    from . import _bootstrap  # noqa: F401
    from .fakes import NOW, FakeDatasphere, make_tokens
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401
    from fakes import NOW, FakeDatasphere, make_tokens  # type: ignore

from datasphere_client import DatasphereClient
from datasphere_client.core.config import ClientSettings, get_settings
from scripts import datasphere_cli

DOCUMENT = {
    "definitions": {"ZTEST_001": {"kind": "entity", "elements": {}}},
    "version": {"csn": "1.0"},
}


def _client(settings: ClientSettings, service: FakeDatasphere) -> DatasphereClient:
    return DatasphereClient(
        settings.model_copy(update={"tokens": make_tokens()}),
        transport=service.transport(),
        clock=lambda: NOW,
    )


def test_upsert_then_exists_then_delete(
    tmp_path: Path, settings: ClientSettings, capsys: pytest.CaptureFixture[str]
) -> None:
    service = FakeDatasphere()
    document = tmp_path / "objects.json"
    document.write_text(json.dumps(DOCUMENT), encoding="utf-8")
    base = ["--kind", "local-table", "--name", "ZTEST_001"]

    exit_code = datasphere_cli.main(
        ["upsert", *base, "--file", str(document)], client=_client(settings, service)
    )
    assert exit_code == datasphere_cli.EXIT_OK
    assert "local-table ZTEST_001: created" in capsys.readouterr().out

    def run(*argv: str) -> int:
        return datasphere_cli.main(list(argv), client=_client(settings, service))

    assert run("exists", *base) == datasphere_cli.EXIT_OK
    assert run("delete", *base) == datasphere_cli.EXIT_OK
    assert run("exists", *base) == datasphere_cli.EXIT_NOT_FOUND


def test_missing_object_in_file_is_an_operation_error(
    tmp_path: Path, settings: ClientSettings, capsys: pytest.CaptureFixture[str]
) -> None:
    document = tmp_path / "objects.json"
    document.write_text(json.dumps(DOCUMENT), encoding="utf-8")

    exit_code = datasphere_cli.main(
        ["upsert", "--kind", "view", "--name", "V_MISSING", "--file", str(document)],
        client=_client(settings, FakeDatasphere()),
    )

    assert exit_code == datasphere_cli.EXIT_OPERATION_ERROR
    assert 'Object "V_MISSING" not found' in capsys.readouterr().err


def test_run_reports_already_running(
    settings: ClientSettings, capsys: pytest.CaptureFixture[str]
) -> None:
    service = FakeDatasphere()
    service.run_response = httpx.Response(409, text="running")

    exit_code = datasphere_cli.main(["run", "--name", "RF_SALES"], client=_client(settings, service))

    assert exit_code == datasphere_cli.EXIT_OK
    assert "already running" in capsys.readouterr().out


def test_missing_configuration_exits_with_config_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DATASPHERE_HOST", raising=False)
    get_settings.cache_clear()
    try:
        assert datasphere_cli.main(["login"]) == datasphere_cli.EXIT_CONFIG_ERROR
    finally:
        get_settings.cache_clear()


def test_dropped_connection_exits_with_operation_error(
    settings: ClientSettings, capsys: pytest.CaptureFixture[str]
) -> None:
    service = FakeDatasphere()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "DELETE":
            raise httpx.ConnectError("connection reset", request=request)
        return service(request)

    client = DatasphereClient(
        settings.model_copy(update={"tokens": make_tokens()}),
        transport=httpx.MockTransport(handler),
        clock=lambda: NOW,
    )

    exit_code = datasphere_cli.main(["delete", "--kind", "view", "--name", "V1"], client=client)

    assert exit_code == datasphere_cli.EXIT_OPERATION_ERROR
    assert "connection reset" in capsys.readouterr().err
