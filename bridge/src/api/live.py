"""
WebSocket live channel at /ws.

Each connected client becomes a Broadcaster subscriber and receives JSON
frames ``{"event": <name>, "data": <payload>}``:

- ``serial:status`` with ``{"status": "connected" | "disconnected"}``; one
  is sent immediately on join with the current link state.
- ``telemetry`` and ``telemetry:update`` with an enriched reading.

Messages sent by the client are ignored. The subscription is removed as
soon as the client disconnects.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-006)

TODO:
- None
"""

import asyncio
import contextlib
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from bridge.src.broadcaster import Subscription
from bridge.src.models import ConnectionState, LiveEvent

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])


async def _pump(websocket: WebSocket, subscription: Subscription) -> None:
    """Forward subscription events to the client until cancelled."""
    while True:
        event = await subscription.get()
        await websocket.send_json(event.model_dump())


async def _drain(websocket: WebSocket) -> None:
    """Consume client frames until the client disconnects."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws")
async def live(websocket: WebSocket) -> None:
    """Stream live telemetry and link status to one client."""
    bridge = websocket.app.state.bridge
    await websocket.accept()
    subscription = bridge.broadcaster.subscribe()
    try:
        state = bridge.connection.state
        if state is not ConnectionState.connected:
            state = ConnectionState.disconnected
        await websocket.send_json(LiveEvent.status(state).model_dump())

        sender = asyncio.create_task(_pump(websocket, subscription))
        receiver = asyncio.create_task(_drain(websocket))
        done, pending = await asyncio.wait(
            {sender, receiver}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect):
                await task
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("Live channel closed with error: %s", exc)
    except WebSocketDisconnect:
        pass
    finally:
        bridge.broadcaster.unsubscribe(subscription)
