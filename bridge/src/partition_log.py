"""
Append-only JSONL log of readings, partitioned by calendar day.

Each reading is written as one JSON line to ``<root>/YYYY-MM-DD.jsonl``,
where the date is the reading's timestamp in the partition timezone
(the host's local zone unless one is given). Partitions are never
rewritten or compacted.

Operations:
- append(reading): queue a reading for the single writer task (never blocks).
- flush(): wait until every queued reading has been written or dropped.
- read_range(start, end, max_count): bounded, chronologically sorted scan.
- partition_path(day): file backing one day.
- partition_days(first, last): partition dates present on disk.

Writes go through one background writer task, so appends to a file are
strictly sequential. A failed write is logged and that record is lost;
ingestion is never blocked or failed by persistence. Range reads run in
a worker thread, visit only the partition files present on disk, skip
malformed lines, and stop early once ``max_count`` matches have been
collected.

Supports async context manager protocol for clean resource management.

CHANGELOG:
- 2026-10-19: Scan only partitions on disk; tolerate out-of-range bounds (STORY-012)
- 2026-10-19: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import date, datetime, tzinfo
from pathlib import Path

from pydantic import ValidationError

from bridge.src.errors import PersistenceFailure
from bridge.src.models import Reading

logger = logging.getLogger(__name__)

PARTITION_SUFFIX = ".jsonl"
DEFAULT_WRITE_QUEUE_SIZE = 10000


class PartitionedLog:
    """Day-partitioned JSONL store with a single background writer.

    Args:
        root: Directory holding the partition files. Created on first use.
        tz: Timezone defining the day boundary. ``None`` uses the host's
            local timezone.
        queue_size: Maximum number of readings waiting to be written.

    Usage::

        async with PartitionedLog("./data") as log:
            log.append(reading)
            await log.flush()
            rows = await log.read_range(start, end, 100)
    """

    def __init__(
        self,
        root: str | Path,
        *,
        tz: tzinfo | None = None,
        queue_size: int = DEFAULT_WRITE_QUEUE_SIZE,
    ) -> None:
        self._root = Path(root)
        self._tz = tz
        self._queue: asyncio.Queue[Reading] = asyncio.Queue(maxsize=queue_size)
        self._writer: asyncio.Task[None] | None = None

    @property
    def root(self) -> Path:
        return self._root

    async def start(self) -> None:
        """Create the root directory and start the writer task."""
        self._root.mkdir(parents=True, exist_ok=True)
        if self._writer is None:
            self._writer = asyncio.create_task(self._write_loop(), name="partition-writer")

    async def stop(self) -> None:
        """Write out everything already queued, then stop the writer task."""
        if self._writer is None:
            return
        await self.flush()
        self._writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._writer
        self._writer = None

    async def __aenter__(self) -> PartitionedLog:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Partition layout
    # ------------------------------------------------------------------

    def partition_date(self, ts: datetime) -> date:
        """Calendar date of *ts* in the partition timezone."""
        return ts.astimezone(self._tz).date()

    def partition_path(self, day: date) -> Path:
        return self._root / f"{day.isoformat()}{PARTITION_SUFFIX}"

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append(self, reading: Reading) -> None:
        """Queue *reading* for appending. Never blocks and never raises.

        If the write queue is full the reading is dropped and logged.
        """
        try:
            self._queue.put_nowait(reading)
        except asyncio.QueueFull:
            logger.error(
                "Partition write queue full, dropping reading at %s",
                reading.timestamp.isoformat(),
            )

    async def flush(self) -> None:
        """Wait until every queued reading has been handled."""
        if self._writer is None:
            return
        await self._queue.join()

    async def _write_loop(self) -> None:
        while True:
            reading = await self._queue.get()
            try:
                await asyncio.to_thread(self._write, reading)
            except PersistenceFailure:
                logger.error("Failed to persist reading", exc_info=True)
            finally:
                self._queue.task_done()

    def _write(self, reading: Reading) -> None:
        """Append one line to the reading's partition file.

        Raises:
            PersistenceFailure: If the directory or file cannot be written.
        """
        try:
            path = self.partition_path(self.partition_date(reading.timestamp))
        except OverflowError as exc:
            raise PersistenceFailure(
                f"no partition for {reading.timestamp.isoformat()}: {exc}"
            ) from exc
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as fh:
                fh.write(reading.to_json_line() + "\n")
        except OSError as exc:
            raise PersistenceFailure(f"cannot append to {path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def read_range(
        self, start: datetime, end: datetime, max_count: int
    ) -> list[Reading]:
        """Return up to *max_count* readings with ``start <= timestamp <= end``.

        Partitions are scanned day by day in ascending order and the scan
        stops as soon as *max_count* matches are collected. The result is
        sorted ascending by timestamp.

        Args:
            start: Inclusive lower bound (timezone-aware).
            end: Inclusive upper bound (timezone-aware).
            max_count: Maximum number of readings; ``0`` returns ``[]``.

        Returns:
            Readings in non-decreasing timestamp order.
        """
        if max_count <= 0 or start > end:
            return []
        return await asyncio.to_thread(self._scan, start, end, max_count)

    def _scan(self, start: datetime, end: datetime, max_count: int) -> list[Reading]:
        results: list[Reading] = []
        first = self._bound_date(start, date.min)
        last = self._bound_date(end, date.max)
        for day in self.partition_days(first, last):
            if self._scan_file(self.partition_path(day), start, end, max_count, results):
                break
        results.sort(key=lambda r: r.timestamp)
        return results

    def partition_days(self, first: date, last: date) -> list[date]:
        """Dates of the partition files on disk from *first* to *last*, ascending.

        Files whose name is not a ``YYYY-MM-DD`` partition name are ignored.
        """
        days: list[date] = []
        if not self._root.is_dir():
            return days
        for path in self._root.glob(f"*{PARTITION_SUFFIX}"):
            stem = path.name[: -len(PARTITION_SUFFIX)]
            try:
                day = date.fromisoformat(stem)
            except ValueError:
                continue
            if day.isoformat() == stem and first <= day <= last:
                days.append(day)
        days.sort()
        return days

    def _bound_date(self, ts: datetime, fallback: date) -> date:
        # Instants at the edge of the datetime range may not convert.
        try:
            return self.partition_date(ts)
        except OverflowError:
            return fallback

    @staticmethod
    def _scan_file(
        path: Path,
        start: datetime,
        end: datetime,
        max_count: int,
        results: list[Reading],
    ) -> bool:
        """Collect matching readings from one partition.

        Returns:
            True once *results* holds *max_count* readings.
        """
        try:
            fh = path.open("r", encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Skipping unreadable partition %s: %s", path, exc)
            return False
        with fh:
            for line in fh:
                line = line.strip()
                if not line:
                    continue
                try:
                    reading = Reading.from_json_line(line)
                except ValidationError:
                    continue
                if start <= reading.timestamp <= end:
                    results.append(reading)
                    if len(results) >= max_count:
                        return True
        return False
