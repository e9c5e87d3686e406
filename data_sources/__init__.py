"""
Data Sources Package - Pluggable threat data collector layer.

Features:
- Isolated, replaceable collectors behind one protocol
- Normalized DataPoint output across all sources
- Collector types registered by name, built from configuration

Quick Start:
    from data_sources import CollectorRegistry

    registry = CollectorRegistry.from_config([
        {"type": "rss", "name": "reuters_world", "url": "https://...", "reliability": 0.9},
    ])

Adding New Collectors:
    1. Create a class satisfying the Collector protocol (or extend BaseCollector)
    2. Decorate it with @register_collector_type("my_type")
    3. Reference "my_type" from the sources configuration
"""

from data_sources.base import BaseCollector, Collector
from data_sources.exceptions import (
    CollectionError,
    CollectorTimeoutError,
    FetchError,
    NormalizationError,
    RateLimitError,
)
from data_sources.models import AggregatedData, DataCategory, DataPoint
from data_sources.registry import (
    CollectorRegistry,
    available_collector_types,
    create_collector,
    register_collector_type,
)
from data_sources.providers import NewsApiCollector, RssFeedCollector


__all__ = [
    # Base
    "BaseCollector",
    "Collector",
    # Exceptions
    "CollectionError",
    "CollectorTimeoutError",
    "FetchError",
    "NormalizationError",
    "RateLimitError",
    # Models
    "AggregatedData",
    "DataCategory",
    "DataPoint",
    # Registry
    "CollectorRegistry",
    "available_collector_types",
    "create_collector",
    "register_collector_type",
    # Providers
    "NewsApiCollector",
    "RssFeedCollector",
]
