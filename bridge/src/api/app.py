"""
FastAPI application factory for the telemetry bridge.

The lifespan builds (or receives) the Bridge runtime, starts serial
ingestion, and stops it on shutdown so queued readings are flushed to the
partition log. REST endpoints get permissive CORS for GET so a browser
dashboard on another origin can call them.

CHANGELOG:
- 2026-10-19: Register live, history, ports and health routers (STORY-010)
- 2026-10-19: Initial creation (STORY-010)
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bridge.src.api.health import router as health_router
from bridge.src.api.history import router as history_router
from bridge.src.api.live import router as live_router
from bridge.src.api.ports import router as ports_router
from bridge.src.config import BridgeSettings
from bridge.src.runtime import Bridge

logger = logging.getLogger(__name__)


def create_app(
    settings: BridgeSettings | None = None,
    *,
    bridge: Bridge | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration; loaded from the environment when omitted.
        bridge: Pre-built runtime (tests inject one with fake components).
            Built from *settings* when omitted.

    Returns:
        FastAPI: The configured application.
    """
    if settings is None:
        settings = bridge.settings if bridge is not None else BridgeSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Start ingestion on startup, flush and stop it on shutdown."""
        runtime = bridge if bridge is not None else Bridge(settings)
        app.state.bridge = runtime
        await runtime.start()
        logger.info("Telemetry bridge API ready")
        try:
            yield
        finally:
            logger.info("Telemetry bridge API shutting down")
            await runtime.stop()

    app = FastAPI(
        title="Aquaculture Telemetry Bridge",
        description="Serial sensor ingestion with live fan-out and daily JSONL history.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.include_router(health_router)
    app.include_router(history_router)
    app.include_router(ports_router)
    app.include_router(live_router)

    @app.get("/")
    async def root() -> dict:
        """Root health check endpoint."""
        return {"status": "ok"}

    return app
