"""Shared fixtures for timepilot tests."""

import pytest


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    """Keep the real environment's gateway settings and home out of tests."""
    for name in ("AI_API_KEY", "AI_BASE_URL", "AI_MODEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TIMEPILOT_HOME", str(tmp_path / "home"))
