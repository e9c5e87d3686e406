"""
Core Module - Metrics Registry.

============================================================
RESPONSIBILITY
============================================================
Process-scoped registry for operational metrics.

- Counters (attempts, successes, failures, retries, cache hits)
- Gauges (last run values)
- Timings (latency samples, bounded)

The registry is created once by the entry point, started and
shut down explicitly, and injected into the orchestrator,
analyzers and pipeline. Nothing reaches for a global instance.

============================================================
THREAD SAFETY
============================================================
All mutations happen under a single RLock, so the registry can
be shared between the event loop and worker threads.

============================================================
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, Optional, Tuple

from core.clock import ClockProtocol, SystemClock


logger = logging.getLogger(__name__)


MetricKey = Tuple[str, Tuple[Tuple[str, str], ...]]


def _key(name: str, labels: Optional[Dict[str, str]] = None) -> MetricKey:
    return name, tuple(sorted((labels or {}).items()))


def _format_key(key: MetricKey) -> str:
    name, labels = key
    if not labels:
        return name
    label_str = ",".join(f"{k}={v}" for k, v in labels)
    return f"{name}{{{label_str}}}"


# =============================================================
# TIMING SERIES
# =============================================================


@dataclass
class TimingSeries:
    """Rolling window of timing samples in milliseconds."""
    max_samples: int = 1000
    samples: Deque[float] = field(default_factory=deque)

    def __post_init__(self) -> None:
        self.samples = deque(maxlen=self.max_samples)

    def add(self, value_ms: float) -> None:
        self.samples.append(value_ms)

    def summary(self) -> Dict[str, float]:
        if not self.samples:
            return {"count": 0, "avg_ms": 0.0, "max_ms": 0.0, "p95_ms": 0.0}

        ordered = sorted(self.samples)
        p95_index = min(len(ordered) - 1, int(len(ordered) * 0.95))
        return {
            "count": len(ordered),
            "avg_ms": sum(ordered) / len(ordered),
            "max_ms": ordered[-1],
            "p95_ms": ordered[p95_index],
        }


# =============================================================
# METRICS REGISTRY
# =============================================================


class MetricsRegistry:
    """
    Thread-safe registry of counters, gauges and timings.

    Recording while the registry is not started is a no-op, so a
    component can always be handed a registry without checking.
    """

    def __init__(
        self,
        max_timing_samples: int = 1000,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._max_timing_samples = max_timing_samples
        self._clock = clock or SystemClock()
        self._counters: Dict[MetricKey, float] = {}
        self._gauges: Dict[MetricKey, float] = {}
        self._timings: Dict[MetricKey, TimingSeries] = {}
        self._lock = threading.RLock()
        self._started_at: Optional[datetime] = None

    # =========================================================
    # LIFECYCLE
    # =========================================================

    def start(self) -> None:
        """Start accepting metrics."""
        with self._lock:
            if self._started_at is None:
                self._started_at = self._clock.now()
                logger.debug("MetricsRegistry started")

    def shutdown(self) -> Dict[str, Any]:
        """Stop accepting metrics and return the final snapshot."""
        with self._lock:
            final = self.snapshot()
            self._started_at = None
            logger.debug(f"MetricsRegistry shut down ({len(self._counters)} counters)")
            return final

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._started_at is not None

    # =========================================================
    # RECORD METHODS
    # =========================================================

    def increment(
        self,
        name: str,
        value: float = 1.0,
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        """Increment a counter."""
        with self._lock:
            if self._started_at is None:
                return
            key = _key(name, labels)
            self._counters[key] = self._counters.get(key, 0.0) + value

    def set_gauge(
        self,
        name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        """Set a gauge to an absolute value."""
        with self._lock:
            if self._started_at is None:
                return
            self._gauges[_key(name, labels)] = value

    def observe(
        self,
        name: str,
        value_ms: float,
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        """Record a timing sample."""
        with self._lock:
            if self._started_at is None:
                return
            key = _key(name, labels)
            series = self._timings.get(key)
            if series is None:
                series = TimingSeries(max_samples=self._max_timing_samples)
                self._timings[key] = series
            series.add(value_ms)

    # =========================================================
    # QUERY METHODS
    # =========================================================

    def counter(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        with self._lock:
            return self._counters.get(_key(name, labels), 0.0)

    def gauge(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        with self._lock:
            return self._gauges.get(_key(name, labels))

    def timing(self, name: str, labels: Optional[Dict[str, str]] = None) -> Dict[str, float]:
        with self._lock:
            series = self._timings.get(_key(name, labels))
            return series.summary() if series else TimingSeries().summary()

    def snapshot(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        with self._lock:
            return {
                "started_at": self._started_at.isoformat() if self._started_at else None,
                "counters": {_format_key(k): v for k, v in self._counters.items()},
                "gauges": {_format_key(k): v for k, v in self._gauges.items()},
                "timings": {_format_key(k): s.summary() for k, s in self._timings.items()},
            }

    def clear(self) -> None:
        """Clear all metrics."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._timings.clear()


__all__ = [
    "MetricsRegistry",
    "TimingSeries",
]
