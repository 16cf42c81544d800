"""Observability primitives for gateway event streams.

Every event a gateway publishes can be mirrored into a durable record:
- with both the event's own timestamp and the time it was recorded
- correlated by client order id across the ack and push paths
- persisted by a sink (DuckDB by default) off the event loop
"""

from .models import ObservabilityRecord
from .recorder import ObservabilityRecorder
from .sinks import DuckDBObservabilitySink, InMemoryObservabilitySink, ObservabilitySink

__all__ = [
    "DuckDBObservabilitySink",
    "InMemoryObservabilitySink",
    "ObservabilityRecord",
    "ObservabilityRecorder",
    "ObservabilitySink",
]
