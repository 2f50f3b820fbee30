"""
Shared test helpers: settings builders, a recording sender and an example app.
"""

import asyncio
from typing import Any, AsyncIterator, Dict, List

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from src.apitrail.config import APITrailSettings, AppSettings, Settings
from src.apitrail.core.reporter import TelemetryReporter
from src.apitrail.core.sender import SendResult, TelemetrySender
from src.apitrail.main import create_app
from src.apitrail.middleware import attach_exception


def make_settings(env: str = "production", **overrides: Any) -> Settings:
    """Build settings without touching the environment-backed cache."""
    reporting: Dict[str, Any] = {
        "api_key": "test_api_key_1234567890abc",
        "project_id": "test_project",
        "endpoint_url": "http://collector.invalid/",
    }
    reporting.update(overrides)
    return Settings(
        log_level="DEBUG",
        apitrail=APITrailSettings(**reporting),
        app=AppSettings(env=env, timezone="Europe/Zagreb"),
    )


class RecordingSender(TelemetrySender):
    """Sender that keeps records instead of posting them."""

    def __init__(self, settings: APITrailSettings) -> None:
        super().__init__(settings)
        self.records: List[Any] = []

    async def send(self, record: Any) -> SendResult:
        self.records.append(record)
        return SendResult(success=True, status_code=200, payload_bytes=len(record.to_json()))


class ItemNotFound(LookupError):
    """Raised by the example app and rendered by an exception handler."""


def build_test_app(settings: Settings, reporter: TelemetryReporter, deferred: bool = True) -> FastAPI:
    """Example app with a few routes exercising the middleware."""
    app = create_app(settings=settings, reporter=reporter, deferred=deferred)

    @app.exception_handler(ItemNotFound)
    async def item_not_found_handler(request: Request, exc: ItemNotFound) -> JSONResponse:
        attach_exception(request, exc)
        return JSONResponse(status_code=404, content={"error": "not_found"})

    @app.post("/login")
    async def login(request: Request) -> Dict[str, Any]:
        body = await request.json()
        return {
            "user": body.get("user"),
            "api_key": "sk_live_returned_key",
            "session": {"token_secret": "abc", "ttl": 3600},
        }

    @app.get("/text")
    async def text() -> PlainTextResponse:
        return PlainTextResponse("plain response", headers={"X-Secret": "hidden"})

    @app.get("/sleep/{milliseconds}")
    async def sleep(milliseconds: int) -> Dict[str, int]:
        await asyncio.sleep(milliseconds / 1000)
        return {"slept": milliseconds}

    @app.get("/chunks")
    async def chunks() -> StreamingResponse:
        async def generate() -> AsyncIterator[bytes]:
            for part in (b'{"password": ', b'"hunter2", ', b'"n": 3}'):
                yield part

        return StreamingResponse(generate(), media_type="application/json")

    @app.get("/boom")
    async def boom() -> None:
        raise RuntimeError("boom")

    @app.get("/missing")
    async def missing() -> None:
        raise ItemNotFound("item 7 not found")

    return app
