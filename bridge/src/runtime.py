"""
Bridge runtime: builds the ingestion components and runs them together.

The Bridge wires the partition log, enricher, broadcaster, ingestion
pipeline, connection manager and history service from one BridgeSettings
instance, and starts/stops them in dependency order:

- start: log writer -> pipeline dispatcher -> serial connection.
- stop: serial connection -> pipeline drain -> log flush -> HTTP client.

Components can be injected so tests can run the whole bridge against a
fake serial link and a mocked scoring service.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-010)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from bridge.src.broadcaster import Broadcaster
from bridge.src.connection import ConnectionManager, LinkOpener, PortLister
from bridge.src.enricher import Enricher
from bridge.src.history import HistoryService
from bridge.src.partition_log import PartitionedLog
from bridge.src.pipeline import IngestPipeline
from bridge.src.ports import list_ports, open_serial_link

if TYPE_CHECKING:
    from datetime import tzinfo

    import httpx

    from bridge.src.config import BridgeSettings

logger = logging.getLogger(__name__)


class Bridge:
    """All long-lived ingestion components of one process.

    Args:
        settings: Loaded bridge configuration.
        opener: Serial link opener (defaults to pyserial-asyncio).
        lister: Port enumerator (defaults to pyserial).
        http_client: Optional HTTP client for the scoring service.
        partition_tz: Day boundary timezone for the log (host local if None).
    """

    def __init__(
        self,
        settings: BridgeSettings,
        *,
        opener: LinkOpener = open_serial_link,
        lister: PortLister = list_ports,
        http_client: httpx.AsyncClient | None = None,
        partition_tz: tzinfo | None = None,
    ) -> None:
        self.settings = settings
        self.lister = lister
        self.broadcaster = Broadcaster()
        self.log = PartitionedLog(settings.data_dir, tz=partition_tz)
        self.enricher = Enricher(
            settings.ai_base_url,
            timeout_s=settings.enrich_timeout_s,
            client=http_client,
        )
        self.pipeline = IngestPipeline(
            enricher=self.enricher,
            broadcaster=self.broadcaster,
            log=self.log,
        )
        self.connection = ConnectionManager(
            sink=self.pipeline,
            broadcaster=self.broadcaster,
            serial_path=settings.serial_path,
            baudrate=settings.serial_baud,
            reconnect_delay_s=settings.reconnect_delay_s,
            opener=opener,
            lister=lister,
        )
        self.history = HistoryService(
            self.log,
            default_max=settings.history_default_max,
            max_cap=settings.history_max_cap,
        )

    async def start(self) -> None:
        """Start the log writer, dispatcher and serial connection."""
        await self.log.start()
        await self.pipeline.start()
        await self._log_port_census()
        await self.connection.start()
        logger.info("Bridge started (data_dir=%s)", self.log.root)

    async def stop(self) -> None:
        """Stop reading, flush pending readings and release resources."""
        await self.connection.stop()
        await self.pipeline.stop()
        await self.log.stop()
        await self.enricher.close()
        logger.info("Bridge stopped")

    async def _log_port_census(self) -> None:
        ports = await asyncio.to_thread(self.lister)
        if not ports:
            logger.warning("No serial ports detected")
        else:
            logger.info("Detected %d serial port(s)", len(ports))
