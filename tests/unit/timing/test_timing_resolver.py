"""
Tests for request timing under both runtime models.
"""

import asyncio
import contextvars

import pytest

from src.apitrail.core.timing import (
    START_CACHE_KEY,
    RuntimeMode,
    StartTimeCache,
    TimingResolver,
    detect_runtime_mode,
    get_start_time_cache,
)


def fixed_clock() -> float:
    return 1000.5


class TestRuntimeModeDetection:
    """Test worker detection from the environment marker."""

    def test_marker_present_means_worker(self) -> None:
        environ = {"APITRAIL_WORKER_MODE": "1"}
        assert detect_runtime_mode("APITRAIL_WORKER_MODE", environ) is RuntimeMode.LONG_LIVED_WORKER

    def test_marker_present_with_empty_value_still_worker(self) -> None:
        assert detect_runtime_mode("WORKER", {"WORKER": ""}) is RuntimeMode.LONG_LIVED_WORKER

    def test_marker_absent_means_traditional(self) -> None:
        assert detect_runtime_mode("APITRAIL_WORKER_MODE", {}) is RuntimeMode.TRADITIONAL

    def test_empty_marker_name_is_traditional(self) -> None:
        assert detect_runtime_mode("", {"": "x"}) is RuntimeMode.TRADITIONAL

    def test_reads_process_environment_by_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APITRAIL_TEST_MARKER", "on")
        assert detect_runtime_mode("APITRAIL_TEST_MARKER") is RuntimeMode.LONG_LIVED_WORKER


class TestTimingResolver:
    """Test elapsed time resolution."""

    def test_traditional_uses_request_start(self) -> None:
        resolver = TimingResolver(RuntimeMode.TRADITIONAL, request_started_at=1000.0, clock=fixed_clock)
        assert resolver.elapsed_seconds() == pytest.approx(0.5)

    def test_worker_uses_cached_start(self) -> None:
        cache = StartTimeCache()
        cache.record_start(999.5)
        resolver = TimingResolver(
            RuntimeMode.LONG_LIVED_WORKER,
            cache=cache,
            request_started_at=1.0,
            clock=fixed_clock,
        )
        assert resolver.elapsed_seconds() == pytest.approx(1.0)

    def test_no_inputs_returns_zero(self) -> None:
        """Test the fallback is exactly 0.0."""
        resolver = TimingResolver(RuntimeMode.TRADITIONAL, clock=fixed_clock)
        assert resolver.elapsed_seconds() == 0.0

    def test_worker_without_cached_start_returns_zero(self) -> None:
        resolver = TimingResolver(RuntimeMode.LONG_LIVED_WORKER, cache=StartTimeCache(), clock=fixed_clock)
        assert resolver.elapsed_seconds() == 0.0

    def test_worker_without_cache_returns_zero(self) -> None:
        resolver = TimingResolver(RuntimeMode.LONG_LIVED_WORKER, clock=fixed_clock)
        assert resolver.elapsed_seconds() == 0.0

    def test_malformed_start_returns_zero(self) -> None:
        """Test unusable stamps never raise."""
        resolver = TimingResolver(RuntimeMode.TRADITIONAL, request_started_at="yesterday", clock=fixed_clock)
        assert resolver.elapsed_seconds() == 0.0

    def test_string_start_is_parsed(self) -> None:
        resolver = TimingResolver(RuntimeMode.TRADITIONAL, request_started_at="1000.25", clock=fixed_clock)
        assert resolver.elapsed_seconds() == pytest.approx(0.25)


class TestStartTimeCache:
    """Test the worker start cache."""

    def test_record_start_stores_under_fixed_key(self) -> None:
        cache = StartTimeCache()
        cache.record_start(42.0)
        assert cache.get(START_CACHE_KEY) == 42.0

    def test_record_start_defaults_to_now(self) -> None:
        cache = StartTimeCache()
        cache.record_start()
        assert cache.get(START_CACHE_KEY) is not None

    def test_global_cache_is_shared(self) -> None:
        assert get_start_time_cache() is get_start_time_cache()

    def test_stamp_is_scoped_to_its_context(self) -> None:
        cache = StartTimeCache()
        cache.record_start(10.0)

        other = contextvars.copy_context()
        other.run(cache.record_start, 20.0)

        assert cache.get(START_CACHE_KEY) == 10.0
        assert other.run(cache.get, START_CACHE_KEY) == 20.0

    def test_fresh_context_has_no_stamp(self) -> None:
        cache = StartTimeCache()
        assert contextvars.Context().run(cache.get, START_CACHE_KEY) is None

    @pytest.mark.asyncio
    async def test_interleaved_tasks_keep_their_own_stamp(self) -> None:
        cache = StartTimeCache()
        later_started = asyncio.Event()

        async def early() -> float:
            cache.record_start(1.0)
            await later_started.wait()
            return cache.get(START_CACHE_KEY)

        async def later() -> float:
            cache.record_start(2.0)
            later_started.set()
            return cache.get(START_CACHE_KEY)

        assert await asyncio.gather(early(), later()) == [1.0, 2.0]
