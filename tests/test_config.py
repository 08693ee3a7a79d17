"""Tests for config loading and environment overrides."""

from __future__ import annotations

import json

import pytest

from api_tester.config import (
    DEFAULTS,
    ClientConfig,
    ListenerConfig,
    get_client_config,
    get_listener_config,
    load_config,
)


class TestLoadConfig:
    def test_creates_defaults_when_missing(self, config_file):
        cfg = load_config()
        assert cfg == DEFAULTS
        assert json.loads(config_file.read_text()) == DEFAULTS

    def test_merges_missing_keys(self, config_file):
        config_file.write_text(json.dumps({"apiBaseUrl": "https://x.test"}))
        cfg = load_config()
        assert cfg["apiBaseUrl"] == "https://x.test"
        assert cfg["timeoutMs"] == 30000

    def test_unreadable_file_falls_back(self, config_file):
        config_file.write_text("{not json")
        assert load_config() == DEFAULTS


class TestClientConfig:
    def test_from_file(self, config_file):
        config_file.write_text(json.dumps({
            "apiBaseUrl": "https://x.test/api",
            "apiKey": "k",
            "timeoutMs": 5000,
        }))
        assert get_client_config() == ClientConfig(
            base_url="https://x.test/api", auth_token="k", timeout_ms=5000,
        )

    def test_env_overrides_file(self, config_file, monkeypatch):
        config_file.write_text(json.dumps({"apiBaseUrl": "https://file.test"}))
        monkeypatch.setenv("API_BASE_URL", "https://env.test")
        monkeypatch.setenv("API_KEY", "envkey")
        monkeypatch.setenv("API_TIMEOUT_MS", "1200")

        cfg = get_client_config()

        assert cfg.base_url == "https://env.test"
        assert cfg.auth_token == "envkey"
        assert cfg.timeout_ms == 1200

    def test_empty_token_is_none(self, config_file):
        assert get_client_config().auth_token is None

    @pytest.mark.parametrize("value", ["abc", "-5", "0"])
    def test_bad_timeout_uses_default(self, config_file, monkeypatch, value):
        monkeypatch.setenv("API_TIMEOUT_MS", value)
        assert get_client_config().timeout_ms == 30000

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError):
            ClientConfig(timeout_ms=0)


class TestListenerConfig:
    def test_defaults(self, config_file):
        assert get_listener_config() == ListenerConfig(host="127.0.0.1", port=3000)

    def test_env_port(self, config_file, monkeypatch):
        monkeypatch.setenv("PORT", "4100")
        assert get_listener_config().port == 4100

    def test_out_of_range_port(self, config_file):
        config_file.write_text(json.dumps({"listener": {"port": 70000}}))
        assert get_listener_config().port == 3000
