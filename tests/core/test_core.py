"""
Tests for the core infrastructure: clock, exceptions and metrics.
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from core.clock import MockClock, SystemClock, from_iso8601, to_iso8601
from core.exceptions import (
    CollectionError,
    ConfigurationError,
    DependencyError,
    ErrorClassification,
    QuorumError,
    RiskAssessmentError,
    Severity,
    ValidationError,
)
from core.metrics import MetricsRegistry


# ============================================================
# CLOCK TESTS
# ============================================================

class TestClock:
    """Tests for the clock abstraction."""

    def test_system_clock_is_utc(self):
        now = SystemClock().now()
        assert now.tzinfo is not None
        assert now.utcoffset() == timedelta(0)

    def test_mock_clock_advances_wall_and_monotonic(self):
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        clock = MockClock(start)

        clock.advance(30)
        clock.advance(minutes=1)

        assert clock.now() == start + timedelta(seconds=90)
        assert clock.monotonic() == pytest.approx(90.0)

    def test_mock_clock_set_time_leaves_monotonic(self):
        clock = MockClock(datetime(2025, 1, 1, tzinfo=timezone.utc))
        clock.set_time(datetime(2030, 1, 1))

        assert clock.now().year == 2030
        assert clock.now().tzinfo is not None
        assert clock.monotonic() == 0.0

    def test_iso_roundtrip(self):
        moment = datetime(2025, 1, 28, 12, 30, tzinfo=timezone.utc)
        assert from_iso8601(to_iso8601(moment)) == moment


# ============================================================
# EXCEPTION TESTS
# ============================================================

class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_all_errors_share_base(self):
        for error in (
            CollectionError("x"),
            QuorumError("x"),
            ValidationError("x"),
            DependencyError("x"),
            ConfigurationError("x"),
        ):
            assert isinstance(error, RiskAssessmentError)

    def test_collection_error_is_non_fatal(self):
        error = CollectionError("feed down", source_name="reuters")

        assert not error.is_fatal
        assert error.classification == ErrorClassification.TRANSIENT
        assert error.context["source_name"] == "reuters"

    def test_non_transient_collection_error(self):
        error = CollectionError("bad payload", transient=False)

        assert not error.transient
        assert error.classification == ErrorClassification.RECOVERABLE

    def test_quorum_error_is_fatal(self):
        error = QuorumError("none succeeded", succeeded=0, required=1, failed_sources=["a", "b"])

        assert error.is_fatal
        assert error.severity == Severity.HIGH
        assert error.failed_sources == ["a", "b"]

    def test_to_dict_includes_cause(self):
        cause = KeyError("weights")
        error = ValidationError("bad weights", field="weights", value=0.97, cause=cause)
        data = error.to_dict()

        assert data["type"] == "ValidationError"
        assert data["context"]["field"] == "weights"
        assert data["context"]["cause_type"] == "KeyError"
        assert data["cause"] is not None

    def test_log_format(self):
        error = DependencyError("store down", dependency="baseline_store")
        line = error.to_log_format()

        assert line.startswith("[MEDIUM] DependencyError: store down")
        assert "dependency=baseline_store" in line


# ============================================================
# METRICS TESTS
# ============================================================

class TestMetricsRegistry:
    """Tests for the metrics registry."""

    def test_recording_before_start_is_noop(self):
        registry = MetricsRegistry()
        registry.increment("collection.attempts")

        assert registry.counter("collection.attempts") == 0.0
        assert not registry.is_running

    def test_counters_are_keyed_by_labels(self, metrics):
        metrics.increment("collection.attempts", labels={"source": "a"})
        metrics.increment("collection.attempts", labels={"source": "a"})
        metrics.increment("collection.attempts", labels={"source": "b"})

        assert metrics.counter("collection.attempts", labels={"source": "a"}) == 2
        assert metrics.counter("collection.attempts", labels={"source": "b"}) == 1
        assert metrics.counter("collection.attempts") == 0

    def test_gauges_and_timings(self, metrics):
        metrics.set_gauge("collection.data_points", 12)
        for value in (10.0, 20.0, 30.0):
            metrics.observe("collection.latency_ms", value)

        summary = metrics.timing("collection.latency_ms")
        assert metrics.gauge("collection.data_points") == 12
        assert summary["count"] == 3
        assert summary["avg_ms"] == pytest.approx(20.0)
        assert summary["max_ms"] == 30.0

    def test_shutdown_returns_snapshot_and_stops(self, metrics):
        metrics.increment("assessment.assembled")
        snapshot = metrics.shutdown()

        assert snapshot["counters"]["assessment.assembled"] == 1
        assert not metrics.is_running
        metrics.increment("assessment.assembled")
        assert metrics.counter("assessment.assembled") == 1

    def test_thread_safe_increments(self, metrics):
        def work():
            for _ in range(1000):
                metrics.increment("hits")

        threads = [threading.Thread(target=work) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert metrics.counter("hits") == 4000
