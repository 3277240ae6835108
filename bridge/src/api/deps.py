"""
FastAPI dependency providers.

The Bridge runtime is created by the application lifespan and stored on
``app.state.bridge``; route handlers receive it through Depends().

CHANGELOG:
- 2026-10-19: Initial creation (STORY-010)
"""

from typing import Annotated

from fastapi import Depends, Request

from bridge.src.runtime import Bridge


def get_bridge(request: Request) -> Bridge:
    """Return the running Bridge for this application."""
    return request.app.state.bridge


# Usage in route handlers:
#   async def my_route(bridge: BridgeDep): ...
BridgeDep = Annotated[Bridge, Depends(get_bridge)]
