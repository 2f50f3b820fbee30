"""
Pytest configuration and shared fixtures.

Contains common settings, snapshots and a recording sender so tests never
reach a real collector.
"""

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry

from src.apitrail.config import Settings
from src.apitrail.core.metrics import MetricsCollector
from src.apitrail.core.reporter import TelemetryReporter
from src.apitrail.core.timing import RuntimeMode, StartTimeCache
from src.apitrail.models.snapshot import RequestSnapshot, ResponseSnapshot

from tests.support import RecordingSender, build_test_app, make_settings


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def recording_sender(settings: Settings) -> RecordingSender:
    return RecordingSender(settings.apitrail)


@pytest.fixture
def reporter(settings: Settings, recording_sender: RecordingSender, metrics: MetricsCollector) -> TelemetryReporter:
    return TelemetryReporter(
        settings=settings,
        sender=recording_sender,
        metrics=metrics,
        runtime_mode=RuntimeMode.TRADITIONAL,
        start_cache=StartTimeCache(),
    )


@pytest.fixture
def test_client(settings: Settings, reporter: TelemetryReporter) -> Generator[TestClient, None, None]:
    """TestClient around the example app, with server exceptions rendered as 500s."""
    app = build_test_app(settings, reporter)
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client


@pytest.fixture
def request_snapshot() -> RequestSnapshot:
    """Request with sensitive headers and body fields."""
    return RequestSnapshot(
        method="POST",
        url="http://testserver/orders",
        client_ip="203.0.113.9",
        server={
            "SERVER_ADDR": "10.0.0.5",
            "SERVER_SOFTWARE": "ASGI/3.0",
            "SERVER_PROTOCOL": "HTTP/1.1",
            "HTTP_ACCEPT_ENCODING": "gzip, deflate",
            "HTTP_USER_AGENT": "pytest-agent/1.0",
            "REQUEST_TIME_FLOAT": 1700000000.25,
        },
        headers=[
            ("authorization", "Bearer abc123"),
            ("accept", "application/json"),
            ("accept", "text/plain"),
            ("x-api_key", "header-key"),
        ],
        body_fields={
            "user": {"name": "bob", "password": "hunter2"},
            "card_number": "4111111111111111",
            "amount": 12,
        },
    )


@pytest.fixture
def response_snapshot() -> ResponseSnapshot:
    return ResponseSnapshot(
        status_code=201,
        headers=[("content-type", "application/json"), ("set-cookie", "a=1"), ("set-cookie", "b=2")],
        body=b'{"id": 7, "secret": "s3cr3t"}',
    )
