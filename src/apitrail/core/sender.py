"""
Sender for posting telemetry records to the collector.

One POST per record, bounded by a short total timeout. Failures are
logged and reported back as a ``SendResult``; they are never raised.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Optional

import aiohttp
import structlog

from ..config import APITrailSettings
from ..models.telemetry import SDK_VERSION, TelemetryRecord
from .exceptions import TransportError

logger = structlog.get_logger(__name__)


@dataclass
class SendResult:
    """Result of a send operation."""
    success: bool
    status_code: Optional[int] = None
    duration_seconds: float = 0.0
    payload_bytes: int = 0
    error_message: Optional[str] = None


def _key_hint(api_key: str) -> str:
    return api_key[:8] + "..." if api_key else ""


class TelemetrySender:
    """Posts telemetry records to the collector endpoint."""

    def __init__(self, settings: APITrailSettings) -> None:
        self.settings = settings

    async def send(self, record: TelemetryRecord) -> SendResult:
        body = record.to_json()
        payload_bytes = len(body)
        started = time.monotonic()

        try:
            status = await self._post(body, record.api_key)
        except TransportError as e:
            logger.warning(
                "Telemetry send failed",
                endpoint=self.settings.endpoint_url,
                api_key=_key_hint(record.api_key),
                error=str(e),
                error_type=e.details.get("error_type"),
            )
            return SendResult(
                success=False,
                duration_seconds=time.monotonic() - started,
                payload_bytes=payload_bytes,
                error_message=str(e),
            )

        duration = time.monotonic() - started
        logger.debug(
            "Telemetry sent",
            endpoint=self.settings.endpoint_url,
            status=status,
            duration_seconds=round(duration, 4),
        )
        return SendResult(
            success=200 <= status < 300,
            status_code=status,
            duration_seconds=duration,
            payload_bytes=payload_bytes,
        )

    async def _post(self, body: bytes, api_key: str) -> int:
        headers = {
            "x-api-key": api_key or "",
            "Content-Type": "application/json",
            "User-Agent": f"apitrail/{SDK_VERSION}",
        }
        timeout = aiohttp.ClientTimeout(total=self.settings.timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    self.settings.endpoint_url,
                    data=body,
                    headers=headers,
                ) as response:
                    return response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(
                f"Collector unreachable: {e or type(e).__name__}",
                details={"error_type": type(e).__name__},
            ) from e
