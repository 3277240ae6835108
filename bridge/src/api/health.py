"""
Health check endpoint for the bridge.

GET /health returns ``{"status": "ok"}`` plus the serial link state, the
number of live subscribers and the timestamp of the last dispatched
reading. Intended for container HEALTHCHECK and quick diagnostics.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-011)

TODO:
- None
"""

from typing import Any

from fastapi import APIRouter

from bridge.src.api.deps import BridgeDep

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(bridge: BridgeDep) -> dict[str, Any]:
    """Return liveness plus link status.

    Returns:
        dict: ``status``, ``serial``, ``subscribers`` and ``last_reading_at``.
    """
    last = bridge.pipeline.last_reading_at
    return {
        "status": "ok",
        "serial": bridge.connection.state.value,
        "subscribers": bridge.broadcaster.subscriber_count,
        "last_reading_at": last.isoformat() if last is not None else None,
    }
