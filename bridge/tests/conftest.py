"""
Shared test fixtures for the telemetry bridge tests.

All bridge env vars are cleaned before each test and the working directory
is moved to tmp_path so no .env file is picked up by BridgeSettings.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest
from bridge.src.models import Reading

# All BridgeSettings environment variable names, used for cleanup.
_ALL_BRIDGE_ENV_VARS = (
    "SERIAL_PATH",
    "SERIAL_BAUD",
    "AI_BASE_URL",
    "ENRICH_TIMEOUT_MS",
    "RECONNECT_DELAY_S",
    "DATA_DIR",
    "HOST",
    "PORT",
    "HISTORY_DEFAULT_MAX",
    "HISTORY_MAX_CAP",
    "CORS_ORIGINS",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_bridge_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove all bridge env vars and isolate from .env files before each test."""
    for var in _ALL_BRIDGE_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set every BridgeSettings environment variable.

    Returns the dict of env var names to values for assertion convenience.
    """
    env = {
        "SERIAL_PATH": "/dev/ttyACM0",
        "SERIAL_BAUD": "115200",
        "AI_BASE_URL": "http://scorer.local:8000",
        "ENRICH_TIMEOUT_MS": "750",
        "RECONNECT_DELAY_S": "5",
        "DATA_DIR": "/var/lib/bridge",
        "HOST": "127.0.0.1",
        "PORT": "4100",
        "HISTORY_DEFAULT_MAX": "1000",
        "HISTORY_MAX_CAP": "2000",
        "CORS_ORIGINS": '["http://dashboard.local"]',
        "LOG_LEVEL": "debug",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def make_reading():
    """Factory for Readings with sensible defaults."""

    def _make(
        ts: datetime | None = None,
        ph: float = 7.2,
        dissolved_oxygen: float = 6.5,
        temperature_c: float | None = 24.5,
        **extra: object,
    ) -> Reading:
        if ts is None:
            ts = datetime(2026, 10, 19, 12, 0, 0, tzinfo=UTC)
        return Reading(
            timestamp=ts,
            ph=ph,
            dissolved_oxygen=dissolved_oxygen,
            temperature_c=temperature_c,
            **extra,
        )

    return _make
