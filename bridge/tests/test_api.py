"""
Tests for the HTTP and WebSocket surface.

Builds the app around a Bridge with a failing serial opener, a fixed port
list and a mocked scoring service, then drives it with FastAPI's
TestClient (which runs the lifespan).

Tests verify:
- GET /health reports status, link state and subscriber count.
- GET /history returns stored readings oldest first, honours from/to and
  max, and answers 422 with a detail message for invalid parameters.
- Calendar-edge from/to bounds answer 200 or 422, never 500.
- GET /ports returns snake_case port records.
- /ws sends the current link status on join, then forwards published
  events.
- CORS headers are present for cross-origin GETs.

CHANGELOG:
- 2026-10-19: Cover calendar-edge history bounds (STORY-012)
- 2026-10-19: Initial creation (STORY-010)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import httpx
import pytest
from bridge.src.api.app import create_app
from bridge.src.config import BridgeSettings
from bridge.src.errors import LinkFailure
from bridge.src.models import LiveEvent, Reading
from bridge.src.ports import PortInfo
from bridge.src.runtime import Bridge
from fastapi.testclient import TestClient

PORTS = [
    PortInfo(
        path="/dev/ttyACM0",
        manufacturer="Arduino (www.arduino.cc)",
        vendor_id="2341",
        product_id="0043",
        serial_number="85036",
        description="Arduino Uno",
        hwid="USB VID:PID=2341:0043",
    )
]

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


async def _failing_opener(path: str, baudrate: int):
    raise LinkFailure(f"cannot open {path}: busy")


def _scorer(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"quality_ai": 88.0, "status_ai": "good"})


def _seed(data_dir: Path, *readings: Reading) -> None:
    data_dir.mkdir(parents=True, exist_ok=True)
    for reading in readings:
        day = reading.timestamp.astimezone(UTC).date().isoformat()
        with (data_dir / f"{day}.jsonl").open("a", encoding="utf-8") as fh:
            fh.write(reading.to_json_line() + "\n")


@pytest.fixture()
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture()
def bridge(data_dir: Path) -> Bridge:
    settings = BridgeSettings(
        serial_path="/dev/ttyACM0",
        data_dir=str(data_dir),
        reconnect_delay_s=60,
        history_default_max=100,
        history_max_cap=200,
    )
    return Bridge(
        settings,
        opener=_failing_opener,
        lister=lambda: list(PORTS),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(_scorer)),
        partition_tz=UTC,
    )


@pytest.fixture()
def client(bridge: Bridge) -> Iterator[TestClient]:
    with TestClient(create_app(bridge=bridge)) as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# /health and /
# ---------------------------------------------------------------------------


class TestHealth:
    def test_root(self, client: TestClient) -> None:
        assert client.get("/").json() == {"status": "ok"}

    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["serial"] in {"connecting", "disconnected"}
        assert body["subscribers"] == 0
        assert body["last_reading_at"] is None

    def test_cors_header(self, client: TestClient) -> None:
        response = client.get("/health", headers={"Origin": "http://dashboard.local"})
        assert response.headers["access-control-allow-origin"] == "*"


# ---------------------------------------------------------------------------
# /history
# ---------------------------------------------------------------------------


class TestHistory:
    """Range reads over the seeded partition files."""

    def test_explicit_window(self, client: TestClient, data_dir: Path, make_reading) -> None:
        _seed(
            data_dir,
            make_reading(ts=datetime(2026, 10, 18, 10, 0, tzinfo=UTC), ph=6.9),
            make_reading(ts=datetime(2026, 10, 19, 10, 0, tzinfo=UTC), ph=7.1),
            make_reading(ts=datetime(2026, 10, 19, 9, 0, tzinfo=UTC), ph=7.0),
        )

        response = client.get(
            "/history",
            params={"from": "2026-10-19T00:00:00Z", "to": "2026-10-19T23:59:59Z"},
        )

        assert response.status_code == 200
        rows = response.json()
        assert [r["pH"] for r in rows] == [7.0, 7.1]
        assert rows[0]["timestamp"] == "2026-10-19T09:00:00Z"
        assert rows[0]["temp_c"] == 24.5

    def test_max_limits_rows(self, client: TestClient, data_dir: Path, make_reading) -> None:
        base = datetime(2026, 10, 19, 0, 0, tzinfo=UTC)
        _seed(data_dir, *(make_reading(ts=base + timedelta(minutes=i)) for i in range(5)))

        response = client.get(
            "/history",
            params={"from": "2026-10-19T00:00:00Z", "to": "2026-10-19T01:00:00Z", "max": 2},
        )

        assert len(response.json()) == 2

    def test_max_zero_returns_empty(
        self, client: TestClient, data_dir: Path, make_reading
    ) -> None:
        _seed(data_dir, make_reading(ts=datetime.now(tz=UTC) - timedelta(minutes=5)))
        assert client.get("/history", params={"max": 0}).json() == []

    def test_default_range_is_last_24h(
        self, client: TestClient, data_dir: Path, make_reading
    ) -> None:
        now = datetime.now(tz=UTC).replace(microsecond=0)
        _seed(
            data_dir,
            make_reading(ts=now - timedelta(hours=30), ph=6.0),
            make_reading(ts=now - timedelta(hours=1), ph=7.0),
        )

        rows = client.get("/history").json()

        assert [r["pH"] for r in rows] == [7.0]

    def test_week_range(self, client: TestClient, data_dir: Path, make_reading) -> None:
        now = datetime.now(tz=UTC).replace(microsecond=0)
        _seed(
            data_dir,
            make_reading(ts=now - timedelta(days=3), ph=6.5),
            make_reading(ts=now - timedelta(days=10), ph=6.0),
        )

        rows = client.get("/history", params={"range": "1w"}).json()

        assert [r["pH"] for r in rows] == [6.5]

    def test_empty_store(self, client: TestClient) -> None:
        response = client.get("/history")
        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.parametrize(
        ("params", "fragment"),
        [
            ({"range": "2d"}, "Invalid range"),
            ({"max": -1}, "max must be >= 0"),
            (
                {"from": "2026-10-19T12:00:00Z", "to": "2026-10-19T11:00:00Z"},
                "must not be after",
            ),
        ],
    )
    def test_invalid_parameters(
        self, client: TestClient, params: dict, fragment: str
    ) -> None:
        response = client.get("/history", params=params)
        assert response.status_code == 422
        assert fragment in response.json()["detail"]

    def test_end_of_calendar_window(self, client: TestClient) -> None:
        response = client.get(
            "/history",
            params={"from": "9999-12-30T00:00:00Z", "to": "9999-12-31T23:59:59Z"},
        )
        assert response.status_code == 200
        assert response.json() == []

    def test_start_of_calendar_window(
        self, client: TestClient, data_dir: Path, make_reading
    ) -> None:
        _seed(data_dir, make_reading(ts=datetime(2026, 1, 1, 9, 0, tzinfo=UTC)))

        response = client.get(
            "/history", params={"from": "0001-01-02T00:00:00Z", "max": 1}
        )

        assert response.status_code == 200
        assert [r["pH"] for r in response.json()] == [7.2]

    def test_bound_outside_utc_range(self, client: TestClient) -> None:
        response = client.get("/history", params={"from": "0001-01-01T00:00:00+05:00"})
        assert response.status_code == 422

    def test_unparseable_datetime(self, client: TestClient) -> None:
        response = client.get("/history", params={"from": "yesterday"})
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# /ports
# ---------------------------------------------------------------------------


class TestPorts:
    def test_lists_ports(self, client: TestClient) -> None:
        response = client.get("/ports")
        assert response.status_code == 200
        assert response.json() == [
            {
                "path": "/dev/ttyACM0",
                "manufacturer": "Arduino (www.arduino.cc)",
                "vendor_id": "2341",
                "product_id": "0043",
                "serial_number": "85036",
                "description": "Arduino Uno",
                "hwid": "USB VID:PID=2341:0043",
            }
        ]


# ---------------------------------------------------------------------------
# /ws
# ---------------------------------------------------------------------------


class TestLiveChannel:
    """WebSocket subscribers see status on join and published events."""

    def test_status_snapshot_then_events(
        self, client: TestClient, bridge: Bridge, make_reading
    ) -> None:
        reading = make_reading(quality_score=88.0, status_label="good")

        with client.websocket_connect("/ws") as ws:
            first = ws.receive_json()
            assert first == {"event": "serial:status", "data": {"status": "disconnected"}}
            assert bridge.broadcaster.subscriber_count == 1

            client.portal.call(bridge.broadcaster.publish, LiveEvent.telemetry(reading))
            message = ws.receive_json()

        assert message["event"] == "telemetry"
        assert message["data"]["pH"] == 7.2
        assert message["data"]["quality_ai"] == 88.0
        assert message["data"]["status_ai"] == "good"
