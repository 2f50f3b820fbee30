"""
Prometheus metrics for the reporter.

In-memory counters only; the host scrapes them through its /metrics route.
"""

from typing import Optional

import structlog
from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram, Info

from ..models.telemetry import SDK_NAME, SDK_VERSION

logger = structlog.get_logger(__name__)


class MetricsCollector:
    """Reporter metrics, registered on ``registry`` (the default registry if omitted)."""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else REGISTRY

        self.sdk_info = Info(
            "apitrail_sdk",
            "APITrail reporter information",
            registry=self.registry,
        )
        self.sdk_info.info({"version": SDK_VERSION, "sdk": SDK_NAME})

        self.reports_total = Counter(
            "apitrail_reports_total",
            "Telemetry reports by outcome",
            ["outcome"],
            registry=self.registry,
        )

        self.reports_skipped_total = Counter(
            "apitrail_reports_skipped_total",
            "Telemetry reports skipped by the dispatch gate",
            ["reason"],
            registry=self.registry,
        )

        self.report_duration = Histogram(
            "apitrail_report_duration_seconds",
            "Collector request duration in seconds",
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
            registry=self.registry,
        )

        self.payload_size_bytes = Histogram(
            "apitrail_payload_size_bytes",
            "Serialized telemetry record size in bytes",
            buckets=[512, 1024, 4096, 16384, 65536, 262144, 1048576],
            registry=self.registry,
        )

    def record_skip(self, reason: str) -> None:
        self.reports_total.labels(outcome="skipped").inc()
        self.reports_skipped_total.labels(reason=reason).inc()

    def record_send(self, success: bool, duration_seconds: float, payload_bytes: int) -> None:
        self.reports_total.labels(outcome="sent" if success else "failed").inc()
        self.report_duration.observe(duration_seconds)
        self.payload_size_bytes.observe(payload_bytes)


# Global collector on the default registry
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Get or create the global metrics collector."""
    global _metrics_collector

    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
        logger.info("Metrics collector initialized")

    return _metrics_collector
