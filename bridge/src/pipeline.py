"""
Ordered ingestion pipeline: raw line -> Reading -> enrich -> fan-out + log.

``submit`` is called by the connection task for every complete serial
line. It decodes and normalizes the line synchronously, starts the
enrichment request as its own task, and queues ``(reading, task)`` on an
ordered channel. A single dispatcher task takes entries off the channel
in arrival order, waits for each entry's enrichment to resolve, then
publishes the reading to live subscribers and appends it to the log.

Enrichment requests may therefore overlap, but live delivery and log
order always follow the arrival order of the raw lines.

CHANGELOG:
- 2026-10-19: Drop lines whose normalization fails unexpectedly (STORY-012)
- 2026-10-19: Also emit legacy telemetry:update events (STORY-009)
- 2026-10-19: Initial creation (STORY-009)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from bridge.src.errors import ValidationRejected
from bridge.src.models import TELEMETRY_UPDATE_EVENT, LiveEvent, Reading
from bridge.src.normalizer import decode_line, normalize

if TYPE_CHECKING:
    from bridge.src.broadcaster import Broadcaster
    from bridge.src.enricher import Enricher
    from bridge.src.partition_log import PartitionedLog

logger = logging.getLogger(__name__)

DEFAULT_PENDING_SIZE = 1000


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class IngestPipeline:
    """Turns serial lines into enriched, ordered, persisted readings.

    Args:
        enricher: Scoring-service client.
        broadcaster: Live fan-out hub.
        log: Partitioned reading log.
        clock: Ingestion clock, used for readings without a timestamp.
        pending_size: Maximum readings awaiting dispatch before new lines
            are dropped.
    """

    def __init__(
        self,
        *,
        enricher: Enricher,
        broadcaster: Broadcaster,
        log: PartitionedLog,
        clock: Callable[[], datetime] = _utc_now,
        pending_size: int = DEFAULT_PENDING_SIZE,
    ) -> None:
        self._enricher = enricher
        self._broadcaster = broadcaster
        self._log = log
        self._clock = clock
        self._pending: asyncio.Queue[tuple[Reading, asyncio.Task[Reading]]] = (
            asyncio.Queue(maxsize=pending_size)
        )
        self._dispatcher: asyncio.Task[None] | None = None
        self.last_reading_at: datetime | None = None

    async def start(self) -> None:
        if self._dispatcher is None:
            self._dispatcher = asyncio.create_task(self._run(), name="ingest-dispatcher")

    async def stop(self) -> None:
        """Dispatch everything already submitted, then stop."""
        if self._dispatcher is None:
            return
        await self.drain()
        self._dispatcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._dispatcher
        self._dispatcher = None

    async def drain(self) -> None:
        """Wait until every submitted reading has been dispatched."""
        await self._pending.join()

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def submit(self, line: str) -> bool:
        """Accept one raw serial line.

        Malformed or incomplete lines are dropped without side effects.

        Returns:
            True if the line produced a reading that was queued.
        """
        try:
            raw = decode_line(line)
            reading = normalize(raw, now=self._clock())
        except ValidationRejected as exc:
            logger.debug("Dropped serial line: %s", exc)
            return False
        except Exception:
            logger.error("Unexpected error normalizing line %r", line[:80], exc_info=True)
            return False

        if reading is None:
            logger.debug("Dropped serial line without pH/DO: %r", line[:80])
            return False

        task = asyncio.create_task(self._enricher.enrich(reading))
        try:
            self._pending.put_nowait((reading, task))
        except asyncio.QueueFull:
            task.cancel()
            logger.warning("Ingest backlog full, dropping reading at %s", reading.timestamp)
            return False
        return True

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        while True:
            reading, task = await self._pending.get()
            try:
                try:
                    enriched = await task
                except Exception:
                    logger.error("Enrichment task failed", exc_info=True)
                    enriched = reading
                self._dispatch(enriched)
            except Exception:
                logger.error("Dispatch error", exc_info=True)
            finally:
                self._pending.task_done()

    def _dispatch(self, reading: Reading) -> None:
        self._broadcaster.publish(LiveEvent.telemetry(reading))
        self._broadcaster.publish(LiveEvent.telemetry(reading, event=TELEMETRY_UPDATE_EVENT))
        self._log.append(reading)
        self.last_reading_at = reading.timestamp
        logger.info(
            "Reading pH=%.2f do=%.2f temp=%s quality=%s",
            reading.ph,
            reading.dissolved_oxygen,
            reading.temperature_c,
            reading.quality_score,
        )
