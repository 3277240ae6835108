"""
Serial link lifecycle: open, read lines, reconnect after a fixed delay.

The ConnectionManager owns the one serial link of the process and cycles
``disconnected -> connecting -> connected -> disconnected`` until stopped:

- An explicit SERIAL_PATH is opened directly (after Windows COM fix-up);
  ``auto`` enumerates ports and picks the likeliest sensor board.
- Once open, every complete newline-terminated line is handed to the
  line sink (the ingestion pipeline).
- Any open failure, read error or end of stream publishes a
  ``disconnected`` status and schedules exactly one reconnect attempt
  after ``reconnect_delay_s``. At most one retry timer is ever pending; a
  timer firing while a link is already up does nothing.

Never propagates link errors to its caller; everything is logged and
retried until ``stop()``.

CHANGELOG:
- 2026-10-19: End the session on unexpected open or read errors so a retry is armed (STORY-012)
- 2026-10-19: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol

from bridge.src.errors import LinkFailure, NoDeviceFound
from bridge.src.models import ConnectionState, LiveEvent
from bridge.src.ports import (
    PortInfo,
    list_ports,
    normalize_port_path,
    open_serial_link,
    select_port,
)

if TYPE_CHECKING:
    from bridge.src.broadcaster import Broadcaster

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

RECONNECT_DELAY_S: float = 10.0
"""Fixed delay before re-opening a lost or failed link."""

AUTO_PATH = "auto"


class Link(Protocol):
    path: str

    async def readline(self) -> bytes: ...

    async def close(self) -> None: ...


class LineSink(Protocol):
    def submit(self, line: str) -> bool: ...


LinkOpener = Callable[[str, int], Awaitable[Link]]
PortLister = Callable[[], list[PortInfo]]


class ConnectionManager:
    """Owns the serial link and its reconnect timer.

    Args:
        sink: Receives every complete line read from the link.
        broadcaster: Receives ``serial:status`` events.
        serial_path: Port to open, or ``auto`` for detection.
        baudrate: Serial baud rate.
        reconnect_delay_s: Delay before a reconnect attempt.
        opener: Coroutine function opening a link (injectable for tests).
        lister: Function enumerating ports (injectable for tests).
        platform: Platform name for port-name fix-ups (defaults to
            ``sys.platform``).
    """

    def __init__(
        self,
        *,
        sink: LineSink,
        broadcaster: Broadcaster,
        serial_path: str = AUTO_PATH,
        baudrate: int = 9600,
        reconnect_delay_s: float = RECONNECT_DELAY_S,
        opener: LinkOpener = open_serial_link,
        lister: PortLister = list_ports,
        platform: str | None = None,
    ) -> None:
        self._sink = sink
        self._broadcaster = broadcaster
        self._serial_path = serial_path
        self._baudrate = baudrate
        self._reconnect_delay_s = reconnect_delay_s
        self._opener = opener
        self._lister = lister
        self._platform = platform

        self._state = ConnectionState.disconnected
        self._running = False
        self._session: asyncio.Task[None] | None = None
        self._retry: asyncio.TimerHandle | None = None
        self._link: Link | None = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def pending_retries(self) -> int:
        """Number of armed reconnect timers (0 or 1)."""
        return 0 if self._retry is None else 1

    @property
    def link_path(self) -> str | None:
        return self._link.path if self._link is not None else None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Begin connecting in the background. Returns immediately."""
        if self._running:
            return
        self._running = True
        self._spawn_session()

    async def stop(self) -> None:
        """Cancel any pending retry, close the link and stop reading."""
        self._running = False
        if self._retry is not None:
            self._retry.cancel()
            self._retry = None
        if self._session is not None:
            self._session.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._session
            self._session = None
        self._state = ConnectionState.disconnected

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def _spawn_session(self) -> None:
        if self._session is not None and not self._session.done():
            return
        self._session = asyncio.create_task(self._run_session(), name="serial-session")

    async def _run_session(self) -> None:
        self._state = ConnectionState.connecting
        try:
            link = await self._open()
        except (NoDeviceFound, LinkFailure) as exc:
            logger.error("Serial open failed: %s", exc)
            logger.error(
                "Hints: close any other serial monitor, check the port name, "
                "and check baud=%d",
                self._baudrate,
            )
            self._handle_disconnect()
            return
        except Exception:
            logger.error("Unexpected error opening serial link", exc_info=True)
            self._handle_disconnect()
            return

        self._link = link
        self._set_state(ConnectionState.connected)
        logger.info("Serial link open on %s @ %d", link.path, self._baudrate)
        try:
            await self._read_lines(link)
        except LinkFailure as exc:
            logger.error("Serial error: %s", exc)
        except Exception:
            logger.error("Unexpected error on serial link", exc_info=True)
        finally:
            self._link = None
            await link.close()
        logger.info("Serial link closed")
        self._handle_disconnect()

    async def _open(self) -> Link:
        """Resolve the port path and open it.

        Raises:
            NoDeviceFound: Auto mode found no ports.
            LinkFailure: The port could not be opened.
        """
        if self._serial_path.lower() != AUTO_PATH:
            path = normalize_port_path(self._serial_path, self._platform)
            logger.info(
                "Opening explicit port %s => %s @ %d",
                self._serial_path,
                path,
                self._baudrate,
            )
        else:
            ports = await asyncio.to_thread(self._lister)
            for port in ports:
                logger.info(
                    "Available port %s manufacturer=%s vendor_id=%s product_id=%s",
                    port.path,
                    port.manufacturer,
                    port.vendor_id,
                    port.product_id,
                )
            chosen = select_port(ports)
            path = normalize_port_path(chosen.path, self._platform)
            logger.info("Auto-picked port %s => %s", chosen.path, path)
        return await self._opener(path, self._baudrate)

    async def _read_lines(self, link: Link) -> None:
        """Feed complete lines to the sink until the stream ends."""
        while True:
            raw = await link.readline()
            if not raw or not raw.endswith(b"\n"):
                # End of stream; a trailing partial line is discarded.
                return
            line = raw.decode("utf-8", errors="replace").strip()
            if line:
                self._sink.submit(line)

    # ------------------------------------------------------------------
    # State and retry
    # ------------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        self._state = state
        self._broadcaster.publish(LiveEvent.status(state))

    def _handle_disconnect(self) -> None:
        if not self._running:
            self._state = ConnectionState.disconnected
            return
        self._set_state(ConnectionState.disconnected)
        self._schedule_retry()

    def _schedule_retry(self) -> None:
        if not self._running or self._retry is not None:
            return
        loop = asyncio.get_running_loop()
        self._retry = loop.call_later(self._reconnect_delay_s, self._fire_retry)
        logger.info("Reconnect scheduled in %.1fs", self._reconnect_delay_s)

    def _fire_retry(self) -> None:
        self._retry = None
        if not self._running or self._state is ConnectionState.connected:
            return
        self._spawn_session()
