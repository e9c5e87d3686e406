"""
Data Collection Package.

Concurrent, deadline-bounded collection across all registered
collectors, with caching, rate limiting, retries, deduplication
and quality filtering.
"""

from data_collection.cache import TimedCache
from data_collection.config import CollectionConfig, SourceSettings
from data_collection.deduplication import Deduplicator, DeduplicatorConfig, text_similarity
from data_collection.orchestrator import CollectionOrchestrator, SourceOutcome
from data_collection.quality import ContentFilter, DataQualityScorer, QualityFilter
from data_collection.rate_limiter import RateLimiter, TokenBucket
from data_collection.retry import RetryPolicy


__all__ = [
    "TimedCache",
    "CollectionConfig",
    "SourceSettings",
    "Deduplicator",
    "DeduplicatorConfig",
    "text_similarity",
    "CollectionOrchestrator",
    "SourceOutcome",
    "ContentFilter",
    "DataQualityScorer",
    "QualityFilter",
    "RateLimiter",
    "TokenBucket",
    "RetryPolicy",
]
