"""
Payload assembler.

Builds a ``TelemetryRecord`` from request/response snapshots. Static
fields are captured once at construction; everything request-specific
is pulled from the snapshots exactly once per report and every header
and body map is routed through the masking engine.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from ..config import Settings, get_settings
from ..models.snapshot import RequestSnapshot, ResponseSnapshot
from ..models.telemetry import (
    TIMESTAMP_FORMAT,
    ErrorEntry,
    LanguageInfo,
    RequestFields,
    RequestInfo,
    ResponseInfo,
    ServerInfo,
    StaticFields,
    TelemetryRecord,
)
from .masking import MaskingEngine, first_header_values
from .runtime import describe_os, interpreter_version, resolve_config_flag

logger = structlog.get_logger(__name__)


def build_static_fields(settings: Settings) -> StaticFields:
    """Resolve the process-wide part of the record."""
    return StaticFields(
        api_key=settings.apitrail.api_key,
        project_id=settings.apitrail.project_id,
        timezone=settings.app.timezone,
        os=describe_os(),
        language=LanguageInfo(
            version=interpreter_version(),
            expose_errors=resolve_config_flag(settings.apitrail.expose_errors),
            display_errors=resolve_config_flag(settings.apitrail.display_errors),
        ),
    )


def decode_body(body: bytes) -> Any:
    """
    Decode a response body for reporting.

    JSON bodies are parsed; anything else is passed through as text.
    """
    if not body:
        return None

    text = body.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text


def _request_timestamp(started_at: Any) -> str:
    moment = None
    if started_at is not None:
        try:
            moment = datetime.fromtimestamp(float(started_at), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            moment = None
    if moment is None:
        moment = datetime.now(timezone.utc)
    return moment.strftime(TIMESTAMP_FORMAT)


def _server_value(request: RequestSnapshot, name: str) -> Optional[str]:
    value = request.server.get(name)
    return None if value is None else str(value)


class PayloadAssembler:
    """Assembles telemetry records for one reporter."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        masking_engine: Optional[MaskingEngine] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.masking = masking_engine or MaskingEngine(self.settings.apitrail.masked_fields)
        self.static = build_static_fields(self.settings)

        logger.debug(
            "Payload assembler initialized",
            os=self.static.os.name,
            language_version=self.static.language.version,
        )

    def assemble(
        self,
        request: RequestSnapshot,
        response: ResponseSnapshot,
        load_time: float = 0.0,
    ) -> TelemetryRecord:
        fields = RequestFields(
            server=self._server_info(request),
            request=self._request_info(request),
            response=ResponseInfo(
                headers=self.masking.mask(first_header_values(response.headers)),
                code=response.status_code,
                load_time=load_time,
            ),
        )

        if response.exception is None:
            fields.response.body = self._response_body(response.body)
            fields.response.size = len(response.body)
        else:
            fields.errors.append(
                ErrorEntry(
                    message=response.exception.message,
                    file=response.exception.file,
                    line=response.exception.line,
                )
            )

        return TelemetryRecord.combine(self.static, fields)

    def _server_info(self, request: RequestSnapshot) -> ServerInfo:
        return ServerInfo(
            ip=_server_value(request, "SERVER_ADDR"),
            software=_server_value(request, "SERVER_SOFTWARE"),
            signature=_server_value(request, "SERVER_SIGNATURE"),
            protocol=_server_value(request, "SERVER_PROTOCOL"),
            encoding=_server_value(request, "HTTP_ACCEPT_ENCODING"),
        )

    def _request_info(self, request: RequestSnapshot) -> RequestInfo:
        return RequestInfo(
            timestamp=_request_timestamp(request.server.get("REQUEST_TIME_FLOAT")),
            ip=request.client_ip,
            url=request.url,
            user_agent=_server_value(request, "HTTP_USER_AGENT"),
            method=request.method,
            headers=self.masking.mask(first_header_values(request.headers)),
            body=self.masking.mask(request.body_fields),
        )

    def _response_body(self, body: bytes) -> Any:
        decoded = decode_body(body)
        if isinstance(decoded, (dict, list)):
            return self.masking.mask(decoded)
        return decoded
