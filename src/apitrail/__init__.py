"""
APITrail - request telemetry for FastAPI / Starlette applications.

Captures request, response, server and language metadata for every
request, masks sensitive fields, and ships the report to an
API-monitoring collector once the response has been sent.
"""

__version__ = "0.1.0"

from .middleware import APITrailMiddleware, attach_exception

__all__ = ["APITrailMiddleware", "attach_exception"]
