"""
Exception hierarchy for the telemetry bridge.

None of these are fatal to the process. Each one is caught at the seam
that owns the recovery:

- ValidationRejected: raw line dropped by the ingestion pipeline.
- NoDeviceFound / LinkFailure: ConnectionManager schedules a reconnect.
- EnrichmentUnavailable: Enricher returns the reading unmodified.
- PersistenceFailure: PartitionedLog writer logs and drops the record.
- QueryError: history router answers with an error response.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-002)

TODO:
- None
"""


class BridgeError(Exception):
    """Base class for all bridge errors."""


class ValidationRejected(BridgeError):
    """Raw input was malformed or lacked a mandatory field."""


class NoDeviceFound(BridgeError):
    """Port enumeration returned no candidates and no explicit path was set."""


class LinkFailure(BridgeError):
    """Opening, reading or closing the serial link failed."""


class EnrichmentUnavailable(BridgeError):
    """The scoring service timed out or answered with an unusable response."""


class PersistenceFailure(BridgeError):
    """Appending a record to a partition file failed."""


class QueryError(BridgeError):
    """History query parameters were invalid."""
