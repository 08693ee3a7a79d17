"""Shared fixtures for the api-tester test suite."""

from __future__ import annotations

import socket
from pathlib import Path

import pytest

from api_tester import config as config_module
from api_tester.client import TransportError, WireRequest, WireResponse


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the config loader at a temp file and clear env overrides."""
    path = tmp_path / "config.json"
    monkeypatch.setattr(config_module, "CONFIG_FILE", path)
    for name in (
        config_module.ENV_BASE_URL,
        config_module.ENV_API_KEY,
        config_module.ENV_TIMEOUT_MS,
        config_module.ENV_PORT,
        config_module.ENV_HOST,
    ):
        monkeypatch.delenv(name, raising=False)
    return path


class FakeTransport:
    """Records wire requests and replays a canned response or error."""

    def __init__(
        self,
        response: WireResponse | None = None,
        error: TransportError | None = None,
    ) -> None:
        self.response = response or WireResponse(status=200, body=b"{}")
        self.error = error
        self.requests: list[WireRequest] = []

    def __call__(self, wire: WireRequest) -> WireResponse:
        self.requests.append(wire)
        if self.error is not None:
            raise self.error
        return self.response

    @property
    def last(self) -> WireRequest:
        return self.requests[-1]


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()
