"""
Shared fixtures for the risk assessment tests.

Fake collectors, sample data points and an in-memory SQLite
session factory.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import pytest

from core.clock import MockClock
from core.metrics import MetricsRegistry
from data_sources.models import AggregatedData, DataCategory, DataPoint


FIXED_TIME = datetime(2025, 1, 28, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================
# FAKE COLLECTOR
# ============================================================

class FakeCollector:
    """
    Scripted collector.

    `script` is consumed one entry per call: an exception is raised,
    anything else is returned as the call's points. Once exhausted,
    `points` is returned.
    """

    def __init__(
        self,
        name: str,
        points: Optional[List[DataPoint]] = None,
        script: Optional[Sequence[Any]] = None,
        delay: float = 0.0,
        reliability: float = 0.8,
        category: DataCategory = DataCategory.NEWS_MEDIA,
        rate_limit: Optional[int] = None,
        timeout: float = 5.0,
        query: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._name = name
        self._points = points if points is not None else [make_point(name)]
        self._script = list(script or [])
        self._delay = delay
        self._reliability = reliability
        self._category = category
        self._rate_limit = rate_limit
        self._timeout = timeout
        self._query = query or {}
        self.calls = 0

    async def collect(self) -> List[DataPoint]:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._script:
            step = self._script.pop(0)
            if isinstance(step, BaseException):
                raise step
            return list(step)
        return list(self._points)

    def source_name(self) -> str:
        return self._name

    def reliability_score(self) -> float:
        return self._reliability

    def category(self) -> DataCategory:
        return self._category

    def rate_limit(self) -> Optional[int]:
        return self._rate_limit

    def timeout(self) -> float:
        return self._timeout

    def query_params(self) -> Dict[str, Any]:
        return dict(self._query)


# ============================================================
# SAMPLE DATA
# ============================================================

def make_point(
    source: str,
    content: Optional[str] = None,
    reliability: float = 0.8,
    category: DataCategory = DataCategory.NEWS_MEDIA,
    title: Optional[str] = None,
    collected_at: datetime = FIXED_TIME,
    **kwargs: Any,
) -> DataPoint:
    return DataPoint(
        source=source,
        content=content or f"Report from {source} on regional security developments",
        category=category,
        reliability=reliability,
        title=title,
        collected_at=collected_at,
        **kwargs,
    )


def make_snapshot(
    points: Sequence[DataPoint],
    sources_succeeded: Optional[int] = None,
    failed_sources: Optional[Dict[str, str]] = None,
) -> AggregatedData:
    if sources_succeeded is None:
        sources_succeeded = len({p.source for p in points})
    return AggregatedData(
        data_points=tuple(points),
        collected_at=FIXED_TIME,
        sources_succeeded=sources_succeeded,
        failed_sources=failed_sources or {},
        duration_seconds=1.5,
    )


class RecordingSleep:
    """Async sleep replacement that records delays and returns immediately."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    """Mock clock fixed at a known instant."""
    return MockClock(FIXED_TIME)


@pytest.fixture
def metrics():
    """Started metrics registry."""
    registry = MetricsRegistry()
    registry.start()
    yield registry
    registry.shutdown()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def nuclear_points():
    """Reports that match several nuclear and escalation keywords."""
    return [
        make_point(
            "wire_a",
            "Warhead counts rise as ICBM missile test signals escalation and a nuclear threat",
            reliability=0.9,
            category=DataCategory.NUCLEAR_ARSENAL,
        ),
        make_point(
            "wire_b",
            "Plutonium production expands; officials threaten retaliation after the missile test",
            reliability=0.8,
            category=DataCategory.NUCLEAR_ARSENAL,
        ),
        make_point(
            "wire_c",
            "Strategic forces placed on alert while tactical nuclear deployments are reviewed",
            reliability=0.7,
            category=DataCategory.NEWS_MEDIA,
        ),
        make_point(
            "wire_d",
            "Uranium enrichment resumes at a second site, inspectors report",
            reliability=0.85,
            category=DataCategory.NUCLEAR_ARSENAL,
        ),
    ]


@pytest.fixture
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    from database.engine import create_all_tables, create_database_engine, get_session_factory

    engine = create_database_engine("sqlite:///:memory:")
    create_all_tables(engine)
    yield get_session_factory(engine)
    engine.dispose()
