"""
Serial port discovery, selection and opening.

Wraps pyserial's port enumeration into PortInfo records, picks the most
likely sensor board when no explicit port is configured, fixes up Windows
``COMn`` names, and opens a port as an asyncio stream via pyserial-asyncio.

Board detection matches USB vendor ids of the usual Arduino-compatible
USB-serial chips, or well-known substrings in the port metadata. When
nothing matches, the first enumerated port is used.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
import re
import sys

import serial
import serial_asyncio
from pydantic import BaseModel
from serial.tools import list_ports as serial_list_ports

from bridge.src.errors import LinkFailure, NoDeviceFound

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Device fingerprint
# ---------------------------------------------------------------------------

KNOWN_VENDOR_IDS: frozenset[str] = frozenset(
    {
        "2341",  # Arduino
        "2a03",  # Arduino (arduino.org)
        "1a86",  # WCH (CH340/CH341)
        "10c4",  # Silicon Labs (CP210x)
        "0403",  # FTDI
    }
)

_FINGERPRINT_RE = re.compile(
    r"arduino|wch|usb|ch340|silabs|ftdi|usb-serial|uno|mega|nano",
    re.IGNORECASE,
)

_WINDOWS_COM_RE = re.compile(r"^COM(\d+)$", re.IGNORECASE)
_WINDOWS_COM_EXTENDED_FROM = 10


class PortInfo(BaseModel):
    """Descriptive record for one visible serial port.

    Attributes:
        path: Device path (``/dev/ttyACM0``, ``COM3`` ...).
        manufacturer: USB manufacturer string, if reported.
        vendor_id: USB vendor id as 4-digit lowercase hex, if reported.
        product_id: USB product id as 4-digit lowercase hex, if reported.
        serial_number: USB serial number, if reported.
        description: Human-readable description.
        hwid: Hardware id string (PnP id on Windows).
    """

    path: str
    manufacturer: str | None = None
    vendor_id: str | None = None
    product_id: str | None = None
    serial_number: str | None = None
    description: str | None = None
    hwid: str | None = None

    def fingerprint_text(self) -> str:
        parts = (
            self.manufacturer,
            self.vendor_id,
            self.product_id,
            self.path,
            self.description,
            self.hwid,
        )
        return " ".join(p for p in parts if p)


def _hex_id(value: int | None) -> str | None:
    return f"{value:04x}" if value is not None else None


def list_ports() -> list[PortInfo]:
    """Enumerate visible serial ports.

    Enumeration errors are logged and yield an empty list.
    """
    try:
        found = serial_list_ports.comports()
    except Exception:
        logger.error("Serial port enumeration failed", exc_info=True)
        return []
    return [
        PortInfo(
            path=p.device,
            manufacturer=p.manufacturer,
            vendor_id=_hex_id(p.vid),
            product_id=_hex_id(p.pid),
            serial_number=p.serial_number,
            description=p.description,
            hwid=p.hwid,
        )
        for p in found
    ]


def is_known_device(port: PortInfo) -> bool:
    """Return True if *port* looks like a supported sensor board."""
    if port.vendor_id is not None and port.vendor_id.lower() in KNOWN_VENDOR_IDS:
        return True
    return bool(_FINGERPRINT_RE.search(port.fingerprint_text()))


def select_port(ports: list[PortInfo]) -> PortInfo:
    """Pick the first known device, else the first port.

    Raises:
        NoDeviceFound: If *ports* is empty.
    """
    if not ports:
        raise NoDeviceFound("No serial device found. Set SERIAL_PATH=COM3 or /dev/ttyACM0")
    for port in ports:
        if is_known_device(port):
            return port
    return ports[0]


def normalize_port_path(path: str, platform: str | None = None) -> str:
    """Apply platform addressing rules to a port name.

    Windows only accepts ``COM10`` and above in the ``\\\\.\\COM10`` form;
    ``COM1``-``COM9`` and all other platforms are returned unchanged.
    """
    if platform is None:
        platform = sys.platform
    if platform != "win32":
        return path
    match = _WINDOWS_COM_RE.match(path.strip())
    if match is None:
        return path
    number = int(match.group(1))
    if number >= _WINDOWS_COM_EXTENDED_FROM:
        return f"\\\\.\\COM{number}"
    return path


# ---------------------------------------------------------------------------
# Link
# ---------------------------------------------------------------------------


class SerialLink:
    """An open serial port exposed as a line reader."""

    def __init__(
        self,
        path: str,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        self.path = path
        self._reader = reader
        self._writer = writer

    async def readline(self) -> bytes:
        """Read one line including its newline; ``b""`` at end of stream.

        Raises:
            LinkFailure: If the port reports an error.
        """
        try:
            return await self._reader.readline()
        except (serial.SerialException, OSError, ValueError) as exc:
            raise LinkFailure(f"read failed on {self.path}: {exc}") from exc

    async def close(self) -> None:
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (serial.SerialException, OSError) as exc:
            logger.debug("Error while closing %s: %s", self.path, exc)


async def open_serial_link(path: str, baudrate: int) -> SerialLink:
    """Open *path* at *baudrate* as an asyncio line stream.

    Raises:
        LinkFailure: If the port is busy, missing, or not permitted.
    """
    try:
        reader, writer = await serial_asyncio.open_serial_connection(
            url=path, baudrate=baudrate
        )
    except (serial.SerialException, OSError, ValueError) as exc:
        raise LinkFailure(f"cannot open {path}: {exc}") from exc
    return SerialLink(path, reader, writer)
