"""
Telemetry record models.

The record is split into static fields, resolved once per reporter, and
per-request fields, built fresh for every report. ``TelemetryRecord``
combines both into the document posted to the collector.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

SDK_NAME = "fastapi"
SDK_VERSION = "0.1.0"
LANGUAGE_NAME = "python"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

ERROR_SOURCE = "onException"
ERROR_TYPE = "UNHANDLED_EXCEPTION"


class OSInfo(BaseModel):
    """Operating system of the host."""

    name: Optional[str] = None
    release: Optional[str] = None
    architecture: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class LanguageInfo(BaseModel):
    """Interpreter metadata."""

    name: str = LANGUAGE_NAME
    version: str
    expose_errors: Optional[str] = None
    display_errors: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class ServerInfo(BaseModel):
    ip: Optional[str] = None
    timezone: Optional[str] = None
    os: OSInfo = Field(default_factory=OSInfo)
    software: Optional[str] = None
    signature: Optional[str] = None
    protocol: Optional[str] = None
    encoding: Optional[str] = None


class RequestInfo(BaseModel):
    timestamp: str
    ip: Optional[str] = None
    url: Optional[str] = None
    user_agent: Optional[str] = None
    method: Optional[str] = None
    headers: Dict[str, Any] = Field(default_factory=dict)
    body: Any = Field(default_factory=dict)


class ResponseInfo(BaseModel):
    headers: Dict[str, Any] = Field(default_factory=dict)
    code: Optional[int] = None
    size: Optional[int] = None
    load_time: float = 0.0
    body: Any = None


class ErrorEntry(BaseModel):
    """An unhandled exception raised while the request was handled."""

    source: str = ERROR_SOURCE
    type: str = ERROR_TYPE
    message: str
    file: Optional[str] = None
    line: Optional[int] = None


class StaticFields(BaseModel):
    """Fields resolved once, independent of any request."""

    api_key: str = ""
    project_id: str = ""
    sdk: str = SDK_NAME
    version: str = SDK_VERSION
    timezone: Optional[str] = None
    os: OSInfo
    language: LanguageInfo

    model_config = ConfigDict(frozen=True)


class RequestFields(BaseModel):
    """Fields captured for a single request/response cycle."""

    server: ServerInfo
    request: RequestInfo
    response: ResponseInfo
    errors: List[ErrorEntry] = Field(default_factory=list)


class TelemetryData(BaseModel):
    server: ServerInfo
    language: LanguageInfo
    request: RequestInfo
    response: ResponseInfo
    errors: List[ErrorEntry] = Field(default_factory=list)


class TelemetryRecord(BaseModel):
    """The document posted to the collector."""

    api_key: str
    project_id: str
    version: str
    sdk: str
    data: TelemetryData

    @classmethod
    def combine(cls, static: StaticFields, fields: RequestFields) -> "TelemetryRecord":
        server = fields.server.model_copy(
            update={"timezone": static.timezone, "os": static.os}
        )
        return cls(
            api_key=static.api_key,
            project_id=static.project_id,
            version=static.version,
            sdk=static.sdk,
            data=TelemetryData(
                server=server,
                language=static.language,
                request=fields.request,
                response=fields.response,
                errors=list(fields.errors),
            ),
        )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_json(self) -> bytes:
        """The exact bytes posted to the collector."""
        return self.model_dump_json().encode("utf-8")
