"""
Serial telemetry bridge for aquaculture water-quality sensors.

Reads newline-delimited JSON readings from a USB/serial sensor board,
normalizes and enriches them, pushes them to live WebSocket subscribers and
appends them to a day-partitioned JSONL log served over HTTP.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""
