"""
Pydantic models for normalized water-quality readings and live events.

Defines the Reading model (one sensor sample plus optional enrichment),
the ConnectionState enum for the serial link, and the LiveEvent envelope
pushed to WebSocket subscribers.

Readings use snake_case attribute names in Python and the wire names the
sensor firmware and dashboard already speak (``pH``, ``do_mg_l``,
``temp_c``, ``quality_ai`` ...) as aliases. The same wire form is written
to the partition log and sent to live subscribers.

CHANGELOG:
- 2026-10-19: Add LiveEvent envelope for the WebSocket channel (STORY-006)
- 2026-10-19: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

TELEMETRY_EVENT = "telemetry"
TELEMETRY_UPDATE_EVENT = "telemetry:update"
STATUS_EVENT = "serial:status"

FiniteFloat = Annotated[float, Field(allow_inf_nan=False)]


class ConnectionState(str, Enum):
    """Serial link lifecycle states."""

    disconnected = "disconnected"
    connecting = "connecting"
    connected = "connected"


class Reading(BaseModel):
    """A single normalized water-quality sample.

    Readings are immutable once built. Enrichment produces a copy with
    ``quality_score`` / ``status_label`` added; sensor fields are never
    changed after normalization.

    Attributes:
        timestamp: Sample instant (timezone-aware).
        ph: pH value, 0-14.
        dissolved_oxygen: Dissolved oxygen in mg/L, 0-30.
        temperature_c: Water temperature in degrees Celsius, or ``None``
            when the probe reported nothing usable.
        fish_health: Optional fish health index, 0-100.
        quality_score: Optional quality score from the scoring service.
        status_label: Optional status label from the scoring service.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: AwareDatetime
    ph: float = Field(alias="pH", ge=0, le=14, allow_inf_nan=False)
    dissolved_oxygen: float = Field(alias="do_mg_l", ge=0, le=30, allow_inf_nan=False)
    temperature_c: FiniteFloat | None = Field(default=None, alias="temp_c")
    fish_health: Annotated[float, Field(ge=0, le=100, allow_inf_nan=False)] | None = None
    quality_score: FiniteFloat | None = Field(default=None, alias="quality_ai")
    status_label: str | None = Field(default=None, alias="status_ai")

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready wire form.

        Optional fields are omitted when absent, except ``temp_c`` which is
        always present and ``null`` when the temperature is unknown.
        """
        payload = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        payload.setdefault("temp_c", None)
        return payload

    def to_json_line(self) -> str:
        """Serialize to a single JSON line (no trailing newline)."""
        return json.dumps(self.to_wire(), separators=(",", ":"))

    @classmethod
    def from_json_line(cls, line: str) -> Reading:
        """Parse one partition-log line.

        Raises:
            pydantic.ValidationError: If the line is not a valid Reading.
        """
        return cls.model_validate_json(line)


class LiveEvent(BaseModel):
    """Envelope for one event pushed to live subscribers.

    Serialized as ``{"event": <name>, "data": <payload>}``.
    """

    model_config = ConfigDict(frozen=True)

    event: str
    data: dict[str, Any]

    @classmethod
    def telemetry(cls, reading: Reading, *, event: str = TELEMETRY_EVENT) -> LiveEvent:
        return cls(event=event, data=reading.to_wire())

    @classmethod
    def status(cls, state: ConnectionState) -> LiveEvent:
        return cls(event=STATUS_EVENT, data={"status": state.value})
