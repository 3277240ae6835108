"""
GET /ports endpoint listing visible serial ports, for diagnostics.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-005)

TODO:
- None
"""

import asyncio
from typing import Any

from fastapi import APIRouter

from bridge.src.api.deps import BridgeDep

router = APIRouter(tags=["ports"])


@router.get("/ports")
async def get_ports(bridge: BridgeDep) -> list[dict[str, Any]]:
    """Return one descriptive record per visible serial port."""
    ports = await asyncio.to_thread(bridge.lister)
    return [port.model_dump() for port in ports]
