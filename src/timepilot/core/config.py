"""Configuration loader for timepilot."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

log = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-3-pro-preview"

DEFAULTS: dict = {
    "home": "~/.timepilot",
    "gateway": {
        "api_key": None,
        "base_url": None,
        "model": DEFAULT_MODEL,
        "temperature": 0.2,
        "history_limit": 12,
        "timeout": 120.0,
    },
    "store": {
        "backend": "sqlite",
        "path": None,
        "document_id": "default",
    },
    "sync": {
        "debounce_seconds": 1.0,
    },
    "api": {
        "host": "127.0.0.1",
        "port": 8430,
        "gateway_url": None,
    },
}

# Environment variables that take precedence over config.yaml
_GATEWAY_ENV = {
    "api_key": "AI_API_KEY",
    "base_url": "AI_BASE_URL",
    "model": "AI_MODEL",
}


def resolve_home() -> Path:
    """Resolve TIMEPILOT_HOME: env var > default ~/.timepilot."""
    env_home = os.environ.get("TIMEPILOT_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return Path("~/.timepilot").expanduser().resolve()


def config_path(home: Path | None = None) -> Path:
    """Return the path to config.yaml."""
    if home is None:
        home = resolve_home()
    return home / "config.yaml"


def load_config(path: Path | None = None, home: Path | None = None) -> dict:
    """Load config.yaml and merge with defaults.

    Args:
        path: Explicit path to config.yaml. If None, uses default location.
        home: Explicit home directory; wins over TIMEPILOT_HOME and the file.

    Returns:
        Merged configuration dict with env overrides applied.
    """
    if path is None:
        path = config_path(home)

    user_config: dict = {}
    if path.exists():
        try:
            raw = path.read_text(encoding="utf-8")
            user_config = yaml.safe_load(raw) or {}
        except Exception:
            log.warning("Failed to read config at %s, using defaults", path, exc_info=True)
        if not isinstance(user_config, dict):
            log.warning("Config at %s is not a mapping, using defaults", path)
            user_config = {}

    merged = _deep_merge(DEFAULTS, user_config)

    if home is None:
        home_str = os.environ.get("TIMEPILOT_HOME") or merged.get("home", "~/.timepilot")
        home = Path(home_str)
    home = home.expanduser().resolve()
    merged["home"] = str(home)

    if not merged["store"].get("path"):
        merged["store"]["path"] = str(home / "state.db")

    gateway = merged["gateway"]
    for key, env_name in _GATEWAY_ENV.items():
        value = os.environ.get(env_name)
        if value:
            gateway[key] = value
    if gateway.get("api_key") == "keyring":
        gateway["api_key"] = _get_api_key("ai_api_key")

    return merged


def _get_api_key(service: str) -> str | None:
    """Retrieve an API key from the system keyring."""
    try:
        import keyring

        return keyring.get_password("timepilot", service)
    except Exception:
        log.debug("Keyring lookup failed for %s", service, exc_info=True)
        return None


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = {
        key: dict(value) if isinstance(value, dict) else value
        for key, value in base.items()
    }
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
