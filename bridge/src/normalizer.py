"""
Pure normalizer that converts a decoded sensor message into a Reading.

Sensor firmware revisions disagree on key names (``pH`` vs ``ph``, ``do``
vs ``do_mg_l`` ...), so every field is resolved through an ordered alias
list: the first alias holding a finite number (or numeric string) wins.

- pH and dissolved oxygen are mandatory; without both the message is
  rejected (``None``).
- Temperature is optional and becomes ``None`` (unknown) when missing.
- Present values are clamped into their physical range rather than
  rejected, since probe noise is expected.
- The message timestamp is kept when it parses as an ISO-8601 instant,
  otherwise the ingestion time is used.

The normalizer performs no I/O. The ingestion clock is injectable via
``now`` so callers and tests control the fallback timestamp.

CHANGELOG:
- 2026-10-19: Fall back to ingestion time for timestamps outside the UTC range (STORY-012)
- 2026-10-19: Add decode_line for raw serial lines (STORY-005)
- 2026-10-19: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from bridge.src.errors import ValidationRejected
from bridge.src.models import Reading

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Alias lists and physical ranges
# ---------------------------------------------------------------------------

PH_KEYS: tuple[str, ...] = ("pH", "ph", "PH")
DO_KEYS: tuple[str, ...] = ("do_mg_l", "do", "DO", "dox")
TEMP_KEYS: tuple[str, ...] = ("temp_c", "temp", "temperature")
FISH_HEALTH_KEYS: tuple[str, ...] = ("fish_health", "health")

PH_RANGE: tuple[float, float] = (0.0, 14.0)
DO_RANGE: tuple[float, float] = (0.0, 30.0)
"""Dissolved oxygen bounds in mg/L (generous upper bound)."""
FISH_HEALTH_RANGE: tuple[float, float] = (0.0, 100.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _coerce_number(value: Any) -> float | None:
    """Return *value* as a finite float, or ``None`` if it is not one.

    Accepts ints, floats and numeric strings (surrounding whitespace is
    ignored). Booleans are not numbers here.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def pick_number(raw: Mapping[str, Any], keys: Sequence[str]) -> float | None:
    """Return the first finite number found under any of *keys*, in order."""
    for key in keys:
        number = _coerce_number(raw.get(key))
        if number is not None:
            return number
    return None


def clamp(value: float, bounds: tuple[float, float]) -> float:
    lo, hi = bounds
    return min(hi, max(lo, value))


def _resolve_timestamp(value: Any, now: datetime) -> datetime:
    """Parse an ISO-8601 instant, falling back to *now*.

    A trailing ``Z`` is accepted; naive timestamps are taken as UTC. An
    instant that cannot be expressed in UTC (e.g. ``0001-01-01T00:00+05:00``)
    also falls back to *now*.
    """
    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str) and value.strip():
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        else:
            return now
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed.astimezone(UTC)
    except (ValueError, OverflowError):
        return now


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def decode_line(line: str) -> dict[str, Any]:
    """Decode one raw serial line into a JSON object.

    Raises:
        ValidationRejected: If the line is not a JSON object.
    """
    try:
        decoded = json.loads(line)
    except ValueError as exc:
        raise ValidationRejected(f"not JSON: {line[:80]!r}") from exc
    if not isinstance(decoded, dict):
        raise ValidationRejected(f"not a JSON object: {line[:80]!r}")
    return decoded


def normalize(raw: Any, *, now: datetime | None = None) -> Reading | None:
    """Convert a decoded sensor message into a validated Reading.

    Args:
        raw: Decoded message; anything that is not a mapping is rejected.
        now: Ingestion time used when the message carries no usable
            timestamp. Defaults to the current UTC time.

    Returns:
        A :class:`Reading`, or ``None`` when pH or dissolved oxygen is
        missing or not finite.
    """
    if not isinstance(raw, Mapping):
        return None

    ph = pick_number(raw, PH_KEYS)
    dissolved_oxygen = pick_number(raw, DO_KEYS)
    if ph is None or dissolved_oxygen is None:
        return None

    temperature = pick_number(raw, TEMP_KEYS)
    fish_health = pick_number(raw, FISH_HEALTH_KEYS)

    if now is None:
        now = datetime.now(tz=UTC)

    return Reading(
        timestamp=_resolve_timestamp(raw.get("timestamp"), now),
        ph=clamp(ph, PH_RANGE),
        dissolved_oxygen=clamp(dissolved_oxygen, DO_RANGE),
        temperature_c=temperature,
        fish_health=clamp(fish_health, FISH_HEALTH_RANGE)
        if fish_health is not None
        else None,
    )
