"""
Entrypoint for the telemetry bridge process.

Loads BridgeSettings, configures structured JSON logging, logs a config
summary, and serves the FastAPI application (REST + WebSocket) with
uvicorn. Serial ingestion runs inside the application lifespan, so
SIGTERM/SIGINT handled by uvicorn stops the link and flushes queued
readings to disk before exit.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-010)

TODO:
- None
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import uvicorn

if TYPE_CHECKING:
    from bridge.src.config import BridgeSettings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the bridge.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: BridgeSettings) -> None:
    """Log a config summary at startup."""
    logger.info(
        "Bridge starting with config: "
        "serial_path=%s, serial_baud=%s, ai_base_url=%s, "
        "enrich_timeout_ms=%s, reconnect_delay_s=%s, data_dir=%s, "
        "host=%s, port=%s, history_default_max=%s, history_max_cap=%s",
        settings.serial_path,
        settings.serial_baud,
        settings.ai_base_url,
        settings.enrich_timeout_ms,
        settings.reconnect_delay_s,
        settings.data_dir,
        settings.host,
        settings.port,
        settings.history_default_max,
        settings.history_max_cap,
    )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    """Synchronous entrypoint for the bridge."""
    from bridge.src.api.app import create_app
    from bridge.src.config import BridgeSettings

    settings = BridgeSettings()
    configure_logging(settings.log_level)
    log_config_summary(settings)

    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
