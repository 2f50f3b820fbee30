"""
Data models package.

Contains:
- Request/response snapshots handed over by the middleware
- Telemetry record models posted to the collector
"""

from .snapshot import ExceptionInfo, RequestSnapshot, ResponseSnapshot
from .telemetry import ErrorEntry, StaticFields, TelemetryRecord

__all__ = [
    # Snapshots
    "ExceptionInfo",
    "RequestSnapshot",
    "ResponseSnapshot",

    # Telemetry record
    "ErrorEntry",
    "StaticFields",
    "TelemetryRecord",
]
