"""
Prometheus metrics endpoint.

Exposes the reporter metrics in Prometheus text format for scraping.
"""

import structlog
from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="""
    Prometheus metrics endpoint in standard text format.

    **Key Metrics:**
    - apitrail_reports_total{outcome} - Reports sent, failed or skipped
    - apitrail_reports_skipped_total{reason} - Skips by gate reason
    - apitrail_report_duration_seconds - Collector request latency
    - apitrail_payload_size_bytes - Serialized record size
    """,
)
async def get_metrics(request: Request) -> Response:
    """Return reporter metrics in Prometheus text format."""
    metrics_collector = getattr(request.app.state, 'metrics', None)

    if not metrics_collector:
        logger.warning("Metrics collector not initialized")
        return Response(
            content="# Metrics collector not initialized\n",
            media_type=CONTENT_TYPE_LATEST,
        )

    metrics_data = generate_latest(metrics_collector.registry)
    logger.debug("Metrics scraped", size_bytes=len(metrics_data))

    return Response(
        content=metrics_data,
        media_type=CONTENT_TYPE_LATEST,
    )
