"""Configuration management for API Tester."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".api-tester"
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULT_TIMEOUT_MS = 30000
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000

DEFAULTS: dict[str, object] = {
    "apiBaseUrl": "",
    "apiKey": "",
    "timeoutMs": DEFAULT_TIMEOUT_MS,
    "listener": {
        "host": DEFAULT_HOST,
        "port": DEFAULT_PORT,
    },
}

# Environment variables win over the config file.
ENV_BASE_URL = "API_BASE_URL"
ENV_API_KEY = "API_KEY"
ENV_TIMEOUT_MS = "API_TIMEOUT_MS"
ENV_PORT = "PORT"
ENV_HOST = "HOST"


@dataclass(frozen=True)
class ClientConfig:
    """Settings shared by every outbound request."""

    base_url: str = ""
    auth_token: str | None = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    def __post_init__(self) -> None:
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")


@dataclass(frozen=True)
class ListenerConfig:
    """Where the local webhook listener binds."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port must be in 0..65535, got {self.port}")


def load_config(path: Path | None = None) -> dict[str, object]:
    """Load config from ~/.api-tester/config.json, creating defaults if missing."""
    config_file = path or CONFIG_FILE
    config_file.parent.mkdir(parents=True, exist_ok=True)

    if not config_file.exists():
        config_file.write_text(json.dumps(DEFAULTS, indent=2) + "\n")
        logger.info("Created default config: %s", config_file)
        return dict(DEFAULTS)

    try:
        data = json.loads(config_file.read_text())
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to read config (%s), using defaults", e)
        return dict(DEFAULTS)

    if not isinstance(data, dict):
        logger.warning("Config %s is not a JSON object, using defaults", config_file)
        return dict(DEFAULTS)

    # Merge with defaults for any missing keys
    merged = dict(DEFAULTS)
    merged.update(data)
    return merged


def _int_setting(name: str, raw: object, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        return int(raw)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        logger.warning("Invalid %s value %r, using %d", name, raw, default)
        return default


def get_client_config(cfg: dict[str, object] | None = None) -> ClientConfig:
    """Build the ClientConfig from the config file and environment."""
    if cfg is None:
        cfg = load_config()

    base_url = os.environ.get(ENV_BASE_URL) or str(cfg.get("apiBaseUrl") or "")
    token = os.environ.get(ENV_API_KEY) or str(cfg.get("apiKey") or "")
    timeout_ms = _int_setting(
        "timeoutMs",
        os.environ.get(ENV_TIMEOUT_MS) or cfg.get("timeoutMs"),
        DEFAULT_TIMEOUT_MS,
    )
    if timeout_ms <= 0:
        logger.warning("timeoutMs must be positive, using %d", DEFAULT_TIMEOUT_MS)
        timeout_ms = DEFAULT_TIMEOUT_MS

    if not base_url:
        logger.warning(
            "No API base URL configured; only absolute URLs can be requested"
        )

    return ClientConfig(
        base_url=base_url,
        auth_token=token or None,
        timeout_ms=timeout_ms,
    )


def get_listener_config(cfg: dict[str, object] | None = None) -> ListenerConfig:
    """Build the ListenerConfig from the config file and environment."""
    if cfg is None:
        cfg = load_config()

    listener = cfg.get("listener")
    if not isinstance(listener, dict):
        listener = {}

    host = os.environ.get(ENV_HOST) or str(listener.get("host") or DEFAULT_HOST)
    port = _int_setting(
        "port",
        os.environ.get(ENV_PORT) or listener.get("port"),
        DEFAULT_PORT,
    )
    if not 0 <= port <= 65535:
        logger.warning("port %d out of range, using %d", port, DEFAULT_PORT)
        port = DEFAULT_PORT

    return ListenerConfig(host=host, port=port)
