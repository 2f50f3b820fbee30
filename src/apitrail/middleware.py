"""
ASGI middleware that reports every request to the collector.

Response bodies are relayed to the client chunk by chunk and collected on
the side, so streaming responses keep streaming. The report runs as a
background task once the last chunk has been sent. When deferred reporting
is disabled and the process is not a long-lived worker, it runs inline
right after the last chunk instead.

Unhandled exceptions are reported inline: the host renders the error
response outside this middleware, so the report is awaited before the
exception is re-raised and the collector timeout precedes the 500.
"""

import json
import time
from typing import Any, AsyncIterator, Callable, List, Optional, Tuple
from urllib.parse import parse_qsl

import structlog
from fastapi import Request, Response
from starlette.background import BackgroundTask
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import StreamingResponse

from .core.reporter import TelemetryReporter
from .core.timing import RuntimeMode
from .models.snapshot import ExceptionInfo, RequestSnapshot, ResponseSnapshot

logger = structlog.get_logger(__name__)


def _decode_headers(raw_headers: List[Tuple[bytes, bytes]]) -> List[Tuple[str, str]]:
    return [
        (name.decode("latin-1"), value.decode("latin-1"))
        for name, value in raw_headers
    ]


def parse_body_fields(content_type: str, body: bytes) -> Any:
    """Extract submitted fields from a JSON or urlencoded body."""
    if not body:
        return {}

    media_type = content_type.split(";")[0].strip().lower()
    if media_type == "application/json" or media_type.endswith("+json"):
        try:
            parsed = json.loads(body)
        except ValueError:
            return {}
        return parsed if isinstance(parsed, (dict, list)) else {}

    if media_type == "application/x-www-form-urlencoded":
        return dict(parse_qsl(body.decode("latin-1"), keep_blank_values=True))

    return {}


def snapshot_request(request: Request, body: bytes, started_at: float) -> RequestSnapshot:
    """Capture the request fields the reporter needs."""
    scope = request.scope
    server_addr = scope.get("server")
    asgi_version = (scope.get("asgi") or {}).get("version", "3.0")
    http_version = scope.get("http_version")

    server = {
        "SERVER_ADDR": server_addr[0] if server_addr else None,
        "SERVER_SOFTWARE": f"ASGI/{asgi_version}",
        "SERVER_SIGNATURE": None,
        "SERVER_PROTOCOL": f"HTTP/{http_version}" if http_version else None,
        "HTTP_ACCEPT_ENCODING": request.headers.get("accept-encoding"),
        "HTTP_USER_AGENT": request.headers.get("user-agent"),
        "REQUEST_TIME_FLOAT": started_at,
    }

    return RequestSnapshot(
        method=request.method,
        url=str(request.url.replace(query="")),
        client_ip=request.client.host if request.client else None,
        server=server,
        headers=_decode_headers(request.headers.raw),
        body_fields=parse_body_fields(request.headers.get("content-type", ""), body),
    )


def attach_exception(request: Request, exc: BaseException) -> None:
    """
    Record an exception turned into a response by an exception handler.

    The report for this request then carries it as an error entry instead
    of the response body.
    """
    request.state.unhandled_exception = ExceptionInfo.from_exception(exc)


class APITrailMiddleware(BaseHTTPMiddleware):
    """Reports each request/response cycle without affecting the response."""

    def __init__(
        self,
        app: Any,
        reporter: Optional[TelemetryReporter] = None,
        deferred: bool = True,
    ) -> None:
        super().__init__(app)
        self.reporter = reporter or TelemetryReporter()
        self.deferred = deferred

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started_at = time.time()
        mode = self.reporter.runtime_mode()
        if mode is RuntimeMode.LONG_LIVED_WORKER:
            self.reporter.start_cache.record_start(started_at)

        request.state.unhandled_exception = None
        body = await request.body()
        request_snapshot = snapshot_request(request, body, started_at)

        try:
            response = await call_next(request)
        except Exception as exc:
            # The host renders the error response; report it and re-raise
            await self.report_safely(
                request_snapshot,
                ResponseSnapshot(status_code=500, exception=ExceptionInfo.from_exception(exc)),
                mode,
            )
            raise

        deferred = self.deferred or mode is RuntimeMode.LONG_LIVED_WORKER
        chunks: List[bytes] = []

        async def finish_report() -> None:
            response_snapshot = ResponseSnapshot(
                status_code=response.status_code,
                headers=_decode_headers(response.raw_headers),
                body=b"".join(chunks),
                exception=request.state.unhandled_exception,
            )
            await self.report_safely(request_snapshot, response_snapshot, mode)

        async def relay_body() -> AsyncIterator[bytes]:
            async for chunk in response.body_iterator:
                chunks.append(chunk)
                yield chunk
            if not deferred:
                await finish_report()

        relayed = StreamingResponse(relay_body(), status_code=response.status_code)
        relayed.raw_headers = response.raw_headers
        if deferred:
            relayed.background = BackgroundTask(finish_report)

        return relayed

    async def report_safely(
        self,
        request: RequestSnapshot,
        response: ResponseSnapshot,
        mode: Optional[RuntimeMode] = None,
    ) -> None:
        """Run the reporter, logging and discarding any failure."""
        try:
            outcome = await self.reporter.report(request, response, mode)
        except Exception as e:
            logger.error(
                "Telemetry report failed",
                method=request.method,
                url=request.url,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return

        logger.debug(
            "Telemetry report finished",
            state=outcome.state.value,
            reason=outcome.reason.value if outcome.reason else None,
        )
