"""
Request timing under the two supported runtime models.

A traditional server hands each request its own start stamp. A long-lived
worker serves many requests from one process, so the host stores the start
stamp in a cache at the beginning of each request instead. The cache is
scoped to the request task, so overlapping requests keep their own stamps.
"""

import os
import time
from contextvars import ContextVar
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

import structlog

logger = structlog.get_logger(__name__)

START_CACHE_KEY = "apitrail_start"


class RuntimeMode(str, Enum):
    """How the host process serves requests."""

    TRADITIONAL = "traditional"
    LONG_LIVED_WORKER = "long_lived_worker"


def detect_runtime_mode(marker: str, environ: Optional[Mapping[str, str]] = None) -> RuntimeMode:
    """Resolve the runtime mode from the presence of an environment marker."""
    if environ is None:
        environ = os.environ

    if marker and marker in environ:
        return RuntimeMode.LONG_LIVED_WORKER
    return RuntimeMode.TRADITIONAL


class StartTimeCache:
    """
    Start stamps for worker-mode requests.

    An asyncio worker interleaves requests, so stamps live in a context
    variable: each request task sees the stamp it recorded itself.
    """

    def __init__(self) -> None:
        self._stamps: ContextVar[Dict[str, float]] = ContextVar(
            f"apitrail_start_stamps_{id(self)}", default={}
        )

    def get(self, key: str) -> Optional[float]:
        return self._stamps.get().get(key)

    def put(self, key: str, value: float) -> None:
        # Copy on write; the default dict is shared by every context
        stamps = dict(self._stamps.get())
        stamps[key] = value
        self._stamps.set(stamps)

    def record_start(self, started_at: Optional[float] = None) -> None:
        """Stamp the start of the current request."""
        self.put(START_CACHE_KEY, time.time() if started_at is None else started_at)


class TimingResolver:
    """
    Computes the elapsed processing time of one request.

    Never raises: missing or malformed start stamps resolve to 0.0.
    """

    def __init__(
        self,
        mode: RuntimeMode,
        cache: Optional[StartTimeCache] = None,
        request_started_at: Any = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.mode = mode
        self.cache = cache
        self.request_started_at = request_started_at
        self.clock = clock

    def elapsed_seconds(self) -> float:
        if self.mode is RuntimeMode.LONG_LIVED_WORKER:
            started_at = self.cache.get(START_CACHE_KEY) if self.cache is not None else None
            return self._since(started_at)

        if self.request_started_at is not None:
            return self._since(self.request_started_at)

        return 0.0

    def _since(self, started_at: Any) -> float:
        if started_at is None:
            return 0.0
        try:
            return float(self.clock()) - float(started_at)
        except (TypeError, ValueError):
            logger.debug("Unusable request start stamp", started_at=repr(started_at))
            return 0.0


# Global cache shared by every request served by this process
_start_time_cache: Optional[StartTimeCache] = None


def get_start_time_cache() -> StartTimeCache:
    """Get or create the process-wide start time cache."""
    global _start_time_cache

    if _start_time_cache is None:
        _start_time_cache = StartTimeCache()

    return _start_time_cache
