"""
Example host application.

Sets up a FastAPI app with structured logging, the APITrail middleware
and the metrics route. Real hosts wire the middleware the same way.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.apitrail.api import metrics_router
from src.apitrail.config import Settings, get_settings
from src.apitrail.core.metrics import get_metrics_collector
from src.apitrail.core.reporter import TelemetryReporter
from src.apitrail.middleware import APITrailMiddleware


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structured logging for the application."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
    )

    # aiohttp logs every connection problem on its own
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def create_lifespan_handler(settings: Settings) -> Any:
    """Create a lifespan handler with access to settings."""
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger = structlog.get_logger(__name__)
        logger.info(
            "Starting APITrail example app",
            version=app.version,
            environment=settings.app.env,
        )
        try:
            yield
        finally:
            logger.info("APITrail example app stopped")

    return lifespan


def create_app(
    settings: Optional[Settings] = None,
    reporter: Optional[TelemetryReporter] = None,
    deferred: bool = True,
) -> FastAPI:
    """
    Create and configure the example application.

    Tests pass their own settings and reporter; otherwise both come from
    the cached configuration.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="APITrail",
        description="Request telemetry reporter example",
        version="0.1.0",
        lifespan=create_lifespan_handler(settings),
    )

    metrics = get_metrics_collector()
    app.state.metrics = metrics

    if reporter is None:
        reporter = TelemetryReporter(settings=settings, metrics=metrics)

    app.add_middleware(APITrailMiddleware, reporter=reporter, deferred=deferred)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger = structlog.get_logger(__name__)
        logger.error(
            "Unexpected exception occurred",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    app.include_router(metrics_router, tags=["metrics"])

    @app.get("/", include_in_schema=False)
    async def root() -> Dict[str, str]:
        """Root endpoint with service information."""
        return {
            "service": "APITrail",
            "version": app.version,
            "environment": settings.app.env,
        }

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.apitrail.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8080,
        log_level=get_settings().log_level.lower(),
    )
