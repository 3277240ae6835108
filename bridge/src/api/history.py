"""
GET /history endpoint for stored readings.

Returns readings from the day-partitioned log as a JSON array in ascending
timestamp order. The window comes from ``range`` (24h, 1w, 1m; default 24h)
unless ``from``/``to`` are given; ``max`` defaults to HISTORY_DEFAULT_MAX
and is capped at HISTORY_MAX_CAP.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-008)

TODO:
- None
"""

import logging
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Query

from bridge.src.api.deps import BridgeDep
from bridge.src.errors import QueryError
from bridge.src.history import DEFAULT_RANGE

logger = logging.getLogger(__name__)

router = APIRouter(tags=["history"])


@router.get("/history")
async def get_history(
    bridge: BridgeDep,
    range_key: Annotated[
        str, Query(alias="range", description="Look-back window: 24h, 1w or 1m.")
    ] = DEFAULT_RANGE,
    start: Annotated[
        datetime | None, Query(alias="from", description="Inclusive ISO-8601 start.")
    ] = None,
    end: Annotated[
        datetime | None, Query(alias="to", description="Inclusive ISO-8601 end.")
    ] = None,
    max_count: Annotated[
        int | None, Query(alias="max", description="Maximum number of readings.")
    ] = None,
) -> list[dict[str, Any]]:
    """Return stored readings for a time window, oldest first.

    Raises:
        HTTPException: 422 if the range, bounds or max are invalid.
    """
    try:
        rows = await bridge.history.query(
            range_key=range_key,
            start=start,
            end=end,
            max_count=max_count,
        )
    except QueryError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return [row.to_wire() for row in rows]
