"""
Tests for the data source layer.

============================================================
PURPOSE
============================================================
1. DataPoint / AggregatedData contracts
2. Collector exceptions and their retry classification
3. Collector type registry
4. RSS and news API normalization

============================================================
"""

from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest

from core.exceptions import ConfigurationError
from data_sources import (
    AggregatedData,
    Collector,
    CollectorRegistry,
    DataCategory,
    DataPoint,
    FetchError,
    NewsApiCollector,
    NormalizationError,
    RateLimitError,
    RssFeedCollector,
    available_collector_types,
    create_collector,
)
from tests.conftest import FIXED_TIME, FakeCollector, make_point


SAMPLE_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>World Security Wire</title>
    <item>
      <title>Missile test reported</title>
      <link>https://example.org/a</link>
      <description>An ICBM missile test was reported near the coast.</description>
      <pubDate>Tue, 28 Jan 2025 10:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Treaty talks resume</title>
      <link>https://example.org/b</link>
      <description>Arms control negotiators met again.</description>
    </item>
    <item>
      <title></title>
      <link>https://example.org/c</link>
    </item>
  </channel>
</rss>
"""


# ============================================================
# MODEL TESTS
# ============================================================

class TestDataPoint:
    """Tests for the DataPoint contract."""

    def test_reliability_is_clamped(self):
        assert make_point("a", reliability=1.7).reliability == 1.0
        assert make_point("a", reliability=-0.2).reliability == 0.0

    def test_is_immutable(self):
        point = make_point("a", metadata={"k": "v"})

        with pytest.raises(FrozenInstanceError):
            point.content = "changed"
        with pytest.raises(TypeError):
            point.metadata["k"] = "other"

    def test_capped_reliability(self):
        point = make_point("a", reliability=0.9, metadata={"k": "v"})

        capped = point.capped_reliability(0.4)

        assert capped.reliability == 0.4
        assert capped.id == point.id
        assert dict(capped.metadata) == {"k": "v"}
        assert point.capped_reliability(0.95) is point

    def test_text_joins_title_and_content(self):
        point = make_point("a", content="Body text", title="Headline")
        assert "Headline" in point.text
        assert "Body text" in point.text

    def test_dict_roundtrip(self):
        point = make_point(
            "a",
            title="Headline",
            url="https://example.org",
            published_at=datetime(2025, 1, 27, tzinfo=timezone.utc),
            metadata={"feed_title": "Wire"},
        )
        restored = DataPoint.from_dict(point.to_dict())

        assert restored == point
        assert dict(restored.metadata) == {"feed_title": "Wire"}


class TestAggregatedData:
    """Tests for the aggregated snapshot."""

    def test_source_coverage(self):
        data = AggregatedData(
            data_points=(make_point("a"),),
            collected_at=FIXED_TIME,
            sources_succeeded=4,
            failed_sources={"e": "FetchError: HTTP 503"},
        )
        assert data.source_coverage() == pytest.approx(0.8)

    def test_coverage_with_no_sources(self):
        data = AggregatedData(data_points=(), collected_at=FIXED_TIME, sources_succeeded=0)
        assert data.source_coverage() == 0.0

    def test_filter_and_average(self):
        data = AggregatedData(
            data_points=(
                make_point("a", reliability=0.9, category=DataCategory.NUCLEAR_ARSENAL),
                make_point("b", reliability=0.5, category=DataCategory.NEWS_MEDIA),
            ),
            collected_at=FIXED_TIME,
            sources_succeeded=2,
        )

        nuclear = data.filter_by_category([DataCategory.NUCLEAR_ARSENAL])
        assert [p.source for p in nuclear] == ["a"]
        assert data.average_reliability() == pytest.approx(0.7)

    def test_failed_sources_read_only(self):
        data = AggregatedData(
            data_points=(),
            collected_at=FIXED_TIME,
            sources_succeeded=0,
            failed_sources={"a": "deadline exceeded"},
        )
        with pytest.raises(TypeError):
            data.failed_sources["b"] = "x"


# ============================================================
# EXCEPTION TESTS
# ============================================================

class TestCollectorExceptions:
    """Transient classification drives retries."""

    @pytest.mark.parametrize("status,transient", [
        (None, True),
        (429, True),
        (500, True),
        (503, True),
        (400, False),
        (404, False),
    ])
    def test_fetch_error_transience(self, status, transient):
        error = FetchError("failed", source_name="a", status_code=status)
        assert error.transient is transient

    def test_rate_limit_error(self):
        error = RateLimitError("slow down", source_name="a", retry_after_seconds=12)

        assert error.is_rate_limited()
        assert error.transient
        assert error.to_dict()["retry_after_seconds"] == 12

    def test_normalization_error_never_transient(self):
        error = NormalizationError("bad", source_name="a", raw_data={"x": 1})
        assert not error.transient


# ============================================================
# REGISTRY TESTS
# ============================================================

class TestCollectorRegistry:
    """Tests for collector registration and construction."""

    def test_builtin_types_registered(self):
        types = available_collector_types()
        assert "rss" in types
        assert "news_api" in types

    def test_create_from_config(self):
        registry = CollectorRegistry.from_config([
            {
                "type": "rss",
                "name": "wire",
                "url": "https://example.org/feed",
                "category": "nuclear_arsenal",
                "reliability": 0.9,
                "cache_duration": 600,
            },
            {"type": "rss", "name": "off", "url": "https://example.org/x", "enabled": False},
        ])

        assert registry.list_sources() == ["wire"]
        collector = registry.get("wire")
        assert isinstance(collector, RssFeedCollector)
        assert collector.category() == DataCategory.NUCLEAR_ARSENAL
        assert collector.reliability_score() == 0.9

    def test_unknown_type_rejected(self):
        with pytest.raises(ConfigurationError):
            create_collector("carrier_pigeon", name="x")

    def test_unknown_category_rejected(self):
        with pytest.raises(ConfigurationError):
            create_collector("rss", name="x", url="https://example.org", category="astrology")

    def test_bad_options_rejected(self):
        with pytest.raises(ConfigurationError):
            create_collector("rss", name="x", url="https://example.org", colour="blue")

    def test_entries_need_type_and_name(self):
        with pytest.raises(ConfigurationError):
            CollectorRegistry.from_config([{"name": "x"}])

    def test_protocol_accepts_plain_classes(self):
        registry = CollectorRegistry()
        registry.register(FakeCollector("fake"))

        assert isinstance(FakeCollector("x"), Collector)
        assert "fake" in registry
        assert len(registry) == 1

    def test_register_rejects_non_collectors(self):
        with pytest.raises(ConfigurationError):
            CollectorRegistry().register(object())


# ============================================================
# PROVIDER TESTS
# ============================================================

class TestRssFeedCollector:
    """Tests for RSS normalization."""

    def test_parse_feed(self):
        collector = RssFeedCollector(
            name="wire",
            url="https://example.org/feed",
            category=DataCategory.NUCLEAR_ARSENAL,
            reliability=0.85,
        )
        points = collector.parse(SAMPLE_RSS)

        assert len(points) == 2
        first = points[0]
        assert first.title == "Missile test reported"
        assert "ICBM" in first.content
        assert first.url == "https://example.org/a"
        assert first.published_at == datetime(2025, 1, 28, 10, 0, tzinfo=timezone.utc)
        assert first.category == DataCategory.NUCLEAR_ARSENAL
        assert first.reliability == 0.85
        assert first.metadata["feed_title"] == "World Security Wire"

    def test_ids_are_stable(self):
        collector = RssFeedCollector(name="wire", url="https://example.org/feed")
        first = [p.id for p in collector.parse(SAMPLE_RSS)]
        second = [p.id for p in collector.parse(SAMPLE_RSS)]
        assert first == second

    def test_max_items(self):
        collector = RssFeedCollector(name="wire", url="https://example.org/feed", max_items=1)
        assert len(collector.parse(SAMPLE_RSS)) == 1

    def test_garbage_raises_normalization_error(self):
        collector = RssFeedCollector(name="wire", url="https://example.org/feed")
        with pytest.raises(NormalizationError):
            collector.parse("definitely not a feed <<<")


class TestNewsApiCollector:
    """Tests for news API normalization."""

    def _collector(self):
        return NewsApiCollector(
            name="newsapi",
            url="https://newsapi.org/v2/everything",
            query="nuclear",
            api_key="test-key",
        )

    def test_normalize_articles(self):
        payload = {
            "status": "ok",
            "articles": [
                {
                    "source": {"name": "Wire"},
                    "title": "Sanctions widen",
                    "description": "New sanctions target missile programs.",
                    "url": "https://example.org/s",
                    "publishedAt": "2025-01-28T09:30:00Z",
                },
                {"title": "", "description": ""},
                "not-an-article",
            ],
        }
        points = self._collector().normalize(payload)

        assert len(points) == 1
        assert points[0].published_at == datetime(2025, 1, 28, 9, 30, tzinfo=timezone.utc)
        assert points[0].metadata["publisher"] == "Wire"

    def test_query_params_form_cache_key(self):
        params = self._collector().query_params()
        assert params["q"] == "nuclear"
        assert params["pageSize"] == 50

    def test_missing_articles_raises(self):
        with pytest.raises(NormalizationError):
            self._collector().normalize({"status": "error"})
