"""HTTP and WebSocket surface of the telemetry bridge."""
