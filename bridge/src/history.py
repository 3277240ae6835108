"""
History query service over the partitioned reading log.

Resolves a symbolic range (``24h``, ``1w``, ``1m``) or explicit bounds into a
concrete ``[start, end]`` window, clamps the requested result count to a
hard cap, and returns the log's range scan as-is. RANGE_WINDOWS maps the
range keywords to their look-back duration.

CHANGELOG:
- 2026-10-19: Reject bounds that cannot be expressed in UTC (STORY-012)
- 2026-10-19: Initial creation (STORY-008)

TODO:
- None
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from bridge.src.errors import QueryError

if TYPE_CHECKING:
    from bridge.src.models import Reading
    from bridge.src.partition_log import PartitionedLog

logger = logging.getLogger(__name__)

RANGE_WINDOWS: dict[str, timedelta] = {
    "24h": timedelta(hours=24),
    "1w": timedelta(days=7),
    "1m": timedelta(days=30),
}
DEFAULT_RANGE = "24h"

DEFAULT_MAX_RESULTS = 5000
MAX_RESULTS_CAP = 10000


@dataclass(frozen=True)
class HistoryWindow:
    """A fully resolved history query.

    Attributes:
        start: Inclusive lower bound (UTC).
        end: Inclusive upper bound (UTC).
        max_count: Result cap after clamping.
    """

    start: datetime
    end: datetime
    max_count: int


def _as_utc(value: datetime) -> datetime:
    """Convert to UTC; naive values are taken as UTC.

    Raises:
        QueryError: If *value* cannot be expressed in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    try:
        return value.astimezone(UTC)
    except OverflowError as exc:
        raise QueryError(f"'{value.isoformat()}' is outside the supported date range") from exc


def resolve_window(
    *,
    range_key: str = DEFAULT_RANGE,
    start: datetime | None = None,
    end: datetime | None = None,
    max_count: int | None = None,
    now: datetime | None = None,
    default_max: int = DEFAULT_MAX_RESULTS,
    max_cap: int = MAX_RESULTS_CAP,
) -> HistoryWindow:
    """Turn query parameters into a concrete window.

    Explicit ``start``/``end`` override the range keyword; ``end`` defaults
    to *now*. Naive datetimes are taken as UTC.

    Raises:
        QueryError: On an unknown range keyword, a negative count, a bound
            outside the supported date range, or a window whose start lies
            after its end.
    """
    window = RANGE_WINDOWS.get(range_key)
    if window is None:
        raise QueryError(
            f"Invalid range '{range_key}'. Must be one of: {sorted(RANGE_WINDOWS)}."
        )
    if max_count is not None and max_count < 0:
        raise QueryError("max must be >= 0")

    now = _as_utc(now) if now is not None else datetime.now(tz=UTC)
    resolved_end = _as_utc(end) if end is not None else now
    resolved_start = _as_utc(start) if start is not None else now - window
    if resolved_start > resolved_end:
        raise QueryError("'from' must not be after 'to'")

    requested = default_max if max_count is None else max_count
    return HistoryWindow(
        start=resolved_start,
        end=resolved_end,
        max_count=min(max_cap, requested),
    )


class HistoryService:
    """Serves bounded range reads from a :class:`PartitionedLog`.

    Args:
        log: The reading log to query.
        default_max: Result cap when the caller gives none.
        max_cap: Hard upper bound on results per query.
    """

    def __init__(
        self,
        log: PartitionedLog,
        *,
        default_max: int = DEFAULT_MAX_RESULTS,
        max_cap: int = MAX_RESULTS_CAP,
    ) -> None:
        self._log = log
        self._default_max = default_max
        self._max_cap = max_cap

    async def query(
        self,
        *,
        range_key: str = DEFAULT_RANGE,
        start: datetime | None = None,
        end: datetime | None = None,
        max_count: int | None = None,
        now: datetime | None = None,
    ) -> list[Reading]:
        """Resolve the window and return matching readings, oldest first.

        Raises:
            QueryError: If the parameters are invalid.
        """
        window = resolve_window(
            range_key=range_key,
            start=start,
            end=end,
            max_count=max_count,
            now=now,
            default_max=self._default_max,
            max_cap=self._max_cap,
        )
        rows = await self._log.read_range(window.start, window.end, window.max_count)
        logger.debug(
            "History query: start=%s end=%s max=%d rows=%d",
            window.start.isoformat(),
            window.end.isoformat(),
            window.max_count,
            len(rows),
        )
        return rows
