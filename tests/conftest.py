from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, List, Optional

import httpx
import pytest
from typer.testing import CliRunner

from sovereign_adapters.config import LEGACY_USE_MOCKS_ENV, SECRETS_PATH_ENV, USE_MOCKS_ENV

CATALOG_YAML = """
- id: example_exchange
  name: Example Exchange
  category: crypto
  base_url: https://api.example.com
  rate_limit_per_minute: 120
  client:
    timeout: 5
  endpoints:
    ticker:
      path: /ticker/${symbol}
      data_path: price
    book:
      path: /book/${symbol}
      method: post
- name: Weather Feed
  category: weather
  base_url: https://weather.example.org
  endpoints:
    current: /current/${city}
"""


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, respond: Optional[Callable[[httpx.Request], httpx.Response]] = None) -> None:
        self.requests: List[httpx.Request] = []
        self._respond = respond or (lambda request: httpx.Response(200, json={}))
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._respond(request)

    @property
    def last_json_body(self) -> Any:
        return json.loads(self.requests[-1].content)


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch, tmp_path):
    monkeypatch.delenv(USE_MOCKS_ENV, raising=False)
    monkeypatch.delenv(LEGACY_USE_MOCKS_ENV, raising=False)
    monkeypatch.setenv(SECRETS_PATH_ENV, str(tmp_path / "missing-secrets.toml"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def transport_factory() -> Callable[..., RecordingTransport]:
    def _factory(respond: Optional[Callable[[httpx.Request], httpx.Response]] = None) -> RecordingTransport:
        return RecordingTransport(respond)

    return _factory


@pytest.fixture()
def catalog_file(tmp_path: Path) -> Path:
    path = tmp_path / "catalog.yaml"
    path.write_text(CATALOG_YAML, encoding="utf-8")
    return path


@pytest.fixture()
def cli_runner() -> CliRunner:
    return CliRunner()
