"""
Telemetry reporter.

Runs the per-request dispatch sequence:
1. Dispatch gate (credentials, ignored environments)
2. Timing resolution
3. Payload assembly and masking
4. One bounded send to the collector

Per request the state moves IDLE -> ELIGIBLE -> SENT, or IDLE -> SKIPPED.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog

from ..config import Settings, get_settings
from ..models.snapshot import RequestSnapshot, ResponseSnapshot
from ..models.telemetry import TelemetryRecord
from .assembler import PayloadAssembler
from .gate import DispatchGate, SkipReason
from .metrics import MetricsCollector
from .sender import SendResult, TelemetrySender
from .timing import RuntimeMode, StartTimeCache, TimingResolver, detect_runtime_mode, get_start_time_cache

logger = structlog.get_logger(__name__)


class DispatchState(str, Enum):
    IDLE = "idle"
    ELIGIBLE = "eligible"
    SENT = "sent"
    SKIPPED = "skipped"


@dataclass
class DispatchOutcome:
    """What happened to one request's report."""
    state: DispatchState
    reason: Optional[SkipReason] = None
    record: Optional[TelemetryRecord] = None
    result: Optional[SendResult] = None


class TelemetryReporter:
    """
    Reports one request/response cycle to the collector.

    Collaborators are injectable; by default they are built from the
    cached settings.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        assembler: Optional[PayloadAssembler] = None,
        sender: Optional[TelemetrySender] = None,
        gate: Optional[DispatchGate] = None,
        metrics: Optional[MetricsCollector] = None,
        runtime_mode: Optional[RuntimeMode] = None,
        start_cache: Optional[StartTimeCache] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.assembler = assembler or PayloadAssembler(self.settings)
        self.sender = sender or TelemetrySender(self.settings.apitrail)
        self.gate = gate or DispatchGate(self.settings)
        self.metrics = metrics
        self.start_cache = start_cache or get_start_time_cache()
        self._runtime_mode = runtime_mode

        logger.info(
            "Telemetry reporter initialized",
            endpoint=self.settings.apitrail.endpoint_url,
            project_id=self.settings.apitrail.project_id,
            environment=self.settings.app.env,
        )

    def runtime_mode(self) -> RuntimeMode:
        """Resolve the runtime mode, preferring an injected one."""
        if self._runtime_mode is not None:
            return self._runtime_mode
        return detect_runtime_mode(self.settings.apitrail.worker_marker)

    async def report(
        self,
        request: RequestSnapshot,
        response: ResponseSnapshot,
        mode: Optional[RuntimeMode] = None,
    ) -> DispatchOutcome:
        decision = self.gate.evaluate()
        if not decision.eligible:
            if self.metrics and decision.reason:
                self.metrics.record_skip(decision.reason.value)
            return DispatchOutcome(state=DispatchState.SKIPPED, reason=decision.reason)

        state = DispatchState.ELIGIBLE
        timing = TimingResolver(
            mode=mode or self.runtime_mode(),
            cache=self.start_cache,
            request_started_at=request.server.get("REQUEST_TIME_FLOAT"),
        )
        record = self.assembler.assemble(request, response, load_time=timing.elapsed_seconds())

        logger.debug(
            "Dispatching telemetry record",
            state=state.value,
            method=request.method,
            url=request.url,
            status_code=response.status_code,
            errors=len(record.data.errors),
        )

        result = await self.sender.send(record)
        if self.metrics:
            self.metrics.record_send(result.success, result.duration_seconds, result.payload_bytes)

        return DispatchOutcome(state=DispatchState.SENT, record=record, result=result)
