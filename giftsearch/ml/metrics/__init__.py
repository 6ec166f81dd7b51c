"""
Metrics Module
Per-query telemetry records and sinks.
"""

from .recorder import MetricsRecorder, QueryMetrics, generate_query_id
from .sinks import InMemoryTelemetrySink, LoggingTelemetrySink, TelemetrySink

__all__ = [
    "MetricsRecorder",
    "QueryMetrics",
    "generate_query_id",
    "InMemoryTelemetrySink",
    "LoggingTelemetrySink",
    "TelemetrySink",
]
