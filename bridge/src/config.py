"""
Bridge configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All values come from environment variables or a .env file; every field has
a default so the bridge starts with zero configuration on a laptop with an
Arduino plugged in.

CHANGELOG:
- 2026-10-19: Keep model_config last, after the validators (STORY-012)
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class BridgeSettings(BaseSettings):
    """Telemetry bridge configuration.

    Attributes:
        serial_path: Serial port to open, or ``auto`` to pick one from the
            enumerated ports.
        serial_baud: Serial baud rate.
        ai_base_url: Base URL of the scoring service (``/predict``).
        enrich_timeout_ms: Hard timeout for one scoring request.
        reconnect_delay_s: Fixed delay before re-opening a lost link.
        data_dir: Directory holding the daily JSONL partitions.
        host: HTTP listen address.
        port: HTTP listen port.
        history_default_max: Result cap used when ``/history`` gets no ``max``.
        history_max_cap: Hard upper bound for ``/history`` results.
        cors_origins: Origins allowed to call the REST endpoints.
        log_level: Root log level.
    """

    serial_path: str = "auto"
    serial_baud: int = 9600
    ai_base_url: str = "http://localhost:8000"
    enrich_timeout_ms: int = 600
    reconnect_delay_s: float = 10.0
    data_dir: str = "./data"
    host: str = "0.0.0.0"
    port: int = 4000
    history_default_max: int = 5000
    history_max_cap: int = 10000
    cors_origins: list[str] = ["*"]
    log_level: str = "INFO"

    @property
    def enrich_timeout_s(self) -> float:
        return self.enrich_timeout_ms / 1000.0

    @field_validator("serial_path")
    @classmethod
    def serial_path_must_not_be_blank(cls, v: str) -> str:
        """Strip whitespace; a blank value means auto-detection."""
        v = v.strip()
        return v or "auto"

    @field_validator("serial_baud")
    @classmethod
    def serial_baud_must_be_positive(cls, v: int) -> int:
        """Validate baud rate is positive."""
        if v <= 0:
            raise ValueError("SERIAL_BAUD must be > 0")
        return v

    @field_validator("ai_base_url")
    @classmethod
    def ai_base_url_must_be_http(cls, v: str) -> str:
        """Validate the scoring URL scheme and drop any trailing slash."""
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("AI_BASE_URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("enrich_timeout_ms")
    @classmethod
    def enrich_timeout_must_be_bounded(cls, v: int) -> int:
        """Validate enrichment timeout is between 1 ms and 60 s."""
        if v < 1 or v > 60000:
            raise ValueError("ENRICH_TIMEOUT_MS must be between 1 and 60000")
        return v

    @field_validator("reconnect_delay_s")
    @classmethod
    def reconnect_delay_must_be_positive(cls, v: float) -> float:
        """Validate reconnect delay is positive."""
        if v <= 0:
            raise ValueError("RECONNECT_DELAY_S must be > 0")
        return v

    @field_validator("port")
    @classmethod
    def port_must_be_valid(cls, v: int) -> int:
        """Validate HTTP port is in valid range."""
        if v < 1 or v > 65535:
            raise ValueError("PORT must be between 1 and 65535")
        return v

    @field_validator("history_default_max", "history_max_cap")
    @classmethod
    def history_limits_must_be_positive(cls, v: int) -> int:
        """Validate history limits are positive."""
        if v < 1:
            raise ValueError("history limits must be >= 1")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_upper(cls, v: str) -> str:
        return v.strip().upper() or "INFO"

    @model_validator(mode="after")
    def _default_max_within_cap(self) -> "BridgeSettings":
        """Reject a default history size above the hard cap."""
        if self.history_default_max > self.history_max_cap:
            raise ValueError("HISTORY_DEFAULT_MAX must be <= HISTORY_MAX_CAP")
        return self

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
