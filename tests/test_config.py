from __future__ import annotations

from pathlib import Path

import pytest

from sovereign_adapters.config import SECRETS_PATH_ENV, RuntimeOptions, SecretsBundle, load_secrets


@pytest.mark.parametrize(
    ("environ", "expected"),
    [
        ({}, False),
        ({"SOVEREIGN_USE_MOCKS": "true"}, True),
        ({"SOVEREIGN_USE_MOCKS": "1"}, True),
        ({"SOVEREIGN_USE_MOCKS": "off"}, False),
        ({"SOVEREIGN_USE_MOCKS": ""}, False),
        ({"SOVEREIGN_USE_MOCKS": "sometimes"}, False),
        ({"USE_MOCKS": "true"}, True),
        ({"SOVEREIGN_USE_MOCKS": "false", "USE_MOCKS": "true"}, False),
    ],
)
def test_runtime_options_from_env(environ, expected):
    assert RuntimeOptions.from_env(environ).use_mocks is expected


def test_runtime_options_read_process_environment(monkeypatch):
    monkeypatch.setenv("USE_MOCKS", "yes")

    assert RuntimeOptions.from_env().use_mocks is True


def test_load_secrets_from_explicit_path(tmp_path: Path, monkeypatch):
    secrets_file = tmp_path / "custom.toml"
    secrets_file.write_text('[adapters.binance]\napi_key = "k-1"\n\n[adapters.empty]\napi_key = ""\n', encoding="utf-8")
    monkeypatch.setenv(SECRETS_PATH_ENV, str(secrets_file))

    bundle = load_secrets()

    assert bundle.source_path == secrets_file
    assert bundle.api_key_for("binance") == "k-1"
    assert bundle.api_key_for("empty") is None
    assert bundle.api_key_for("unknown") is None


def test_load_secrets_falls_back_to_working_directory(tmp_path: Path):
    secrets_dir = tmp_path / ".secrets"
    secrets_dir.mkdir()
    (secrets_dir / "secret.toml").write_text('[adapters.weather_feed]\napi_key = "w-2"\n', encoding="utf-8")

    bundle = load_secrets()

    assert bundle.source_path == secrets_dir / "secret.toml"
    assert bundle.api_key_for("weather_feed") == "w-2"


def test_load_secrets_strict_requires_a_file(monkeypatch, tmp_path: Path):
    monkeypatch.setattr("sovereign_adapters.config._discover_project_root", lambda: None)

    assert load_secrets().source_path is None
    with pytest.raises(FileNotFoundError):
        load_secrets(strict=True)


def test_adapter_section_tolerates_malformed_tables():
    bundle = SecretsBundle(source_path=None, data={"adapters": "not-a-table"})

    assert bundle.adapter_section("binance") == {}
    assert SecretsBundle(source_path=None, data={"adapters": {"binance": 3}}).api_key_for("binance") is None
