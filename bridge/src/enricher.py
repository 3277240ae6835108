"""
Best-effort HTTP client for the water-quality scoring service.

POSTs the three core physical fields of a Reading to ``{ai_base_url}/predict``
and merges ``quality_ai`` / ``status_ai`` from the response into a copy of
the Reading. The whole request, including reading the response body, is
bounded by a hard timeout (600 ms by default).

Enrichment never fails the caller: on timeout, network error, non-2xx
status or an unusable body the original Reading is returned unchanged and
the next Reading is tried afresh (no per-message retry).

CHANGELOG:
- 2026-10-19: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any

import httpx

from bridge.src.errors import EnrichmentUnavailable
from bridge.src.models import Reading

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S: float = 0.6
"""Hard enrichment budget per reading, measured from request issuance."""

PREDICT_PATH = "/predict"


class Enricher:
    """Scoring-service client with a hard per-request timeout.

    Holds one :class:`httpx.AsyncClient` for the lifetime of the bridge.
    A client may be injected (tests pass one built on
    :class:`httpx.MockTransport`); an injected client is not closed by
    :meth:`close`.

    Args:
        base_url: Base URL of the scoring service.
        timeout_s: Hard timeout in seconds for one enrichment attempt.
        client: Optional pre-built async HTTP client.

    Usage::

        async with Enricher("http://localhost:8000") as enricher:
            reading = await enricher.enrich(reading)
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}{PREDICT_PATH}"
        self._timeout_s = timeout_s
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    @property
    def url(self) -> str:
        return self._url

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> Enricher:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def enrich(self, reading: Reading) -> Reading:
        """Return *reading* augmented with the service's score, if any.

        Never raises: every failure degrades to returning *reading* as-is.
        """
        try:
            async with asyncio.timeout(self._timeout_s):
                body = await self._predict(reading)
        except TimeoutError:
            logger.debug("Enrichment timed out after %.3fs", self._timeout_s)
            return reading
        except EnrichmentUnavailable as exc:
            logger.debug("Enrichment unavailable: %s", exc)
            return reading

        update = _extract_enrichment(body)
        if not update:
            return reading
        return reading.model_copy(update=update)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _predict(self, reading: Reading) -> Any:
        """POST the reading and return the decoded JSON body.

        Raises:
            EnrichmentUnavailable: On network error, non-2xx status or a
                body that is not JSON.
        """
        payload = {
            "pH": reading.ph,
            "temp_c": reading.temperature_c,
            "do_mg_l": reading.dissolved_oxygen,
        }
        try:
            response = await self._client.post(self._url, json=payload)
        except httpx.TimeoutException as exc:
            raise EnrichmentUnavailable(f"timeout: {exc}") from exc
        except httpx.HTTPError as exc:
            raise EnrichmentUnavailable(f"network error: {exc}") from exc

        if not response.is_success:
            raise EnrichmentUnavailable(f"HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise EnrichmentUnavailable("response body is not JSON") from exc


def _extract_enrichment(body: Any) -> dict[str, Any]:
    """Pick the recognised, correctly typed fields out of a response body."""
    if not isinstance(body, dict):
        return {}
    update: dict[str, Any] = {}
    quality = body.get("quality_ai")
    if (
        isinstance(quality, int | float)
        and not isinstance(quality, bool)
        and math.isfinite(quality)
    ):
        update["quality_score"] = float(quality)
    status = body.get("status_ai")
    if isinstance(status, str) and status:
        update["status_label"] = status
    return update
