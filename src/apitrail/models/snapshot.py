"""
Framework-neutral views of the request and response.

The middleware fills these from Starlette objects; everything downstream
works on the snapshots only.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class ExceptionInfo:
    """Message and origin of an unhandled exception."""
    message: str
    file: Optional[str] = None
    line: Optional[int] = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ExceptionInfo":
        tb = exc.__traceback__
        if tb is None:
            return cls(message=str(exc))

        # The innermost frame is where the exception was raised
        while tb.tb_next is not None:
            tb = tb.tb_next

        return cls(
            message=str(exc),
            file=tb.tb_frame.f_code.co_filename,
            line=tb.tb_lineno,
        )


@dataclass
class RequestSnapshot:
    """
    Request data as seen by the reporter.

    ``server`` follows CGI naming (SERVER_ADDR, HTTP_USER_AGENT,
    REQUEST_TIME_FLOAT, ...).
    """
    method: str
    url: str
    client_ip: Optional[str] = None
    server: Dict[str, Any] = field(default_factory=dict)
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body_fields: Any = field(default_factory=dict)


@dataclass
class ResponseSnapshot:
    """Response data as seen by the reporter."""
    status_code: int
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    exception: Optional[ExceptionInfo] = None
