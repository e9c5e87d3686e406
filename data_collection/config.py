"""
Data Collection - Configuration.

============================================================
CONFIGURABLE COLLECTION
============================================================

All orchestration parameters are configurable:
- Parallelism and the global deadline
- Retry/backoff
- Deduplication and quality thresholds
- Per-source cache duration and rate limit

Configuration can be loaded from:
- Default values
- Environment variables
- A `collection` section plus the `sources` list of a YAML file

============================================================
"""

import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, Optional
import logging

from core.constants import (
    DEDUPLICATION_THRESHOLD,
    DEFAULT_CACHE_DURATION_SECONDS,
    DEFAULT_COLLECTION_TIMEOUT_SECONDS,
    DEFAULT_PARALLEL_COLLECTORS,
    DEFAULT_RATE_LIMIT_MAX_WAIT_SECONDS,
    MAX_RETRY_ATTEMPTS,
    MIN_DATA_QUALITY_SCORE,
    RETRY_BACKOFF_MULTIPLIER,
    RETRY_BASE_DELAY_SECONDS,
)
from core.exceptions import ConfigurationError
from data_collection.retry import RetryPolicy


logger = logging.getLogger(__name__)


# =============================================================
# PER-SOURCE SETTINGS
# =============================================================


@dataclass
class SourceSettings:
    """
    Orchestrator-side settings of one source.

    `rate_limit` (requests/hour) overrides the collector's own value
    when set.
    """
    cache_duration: float = DEFAULT_CACHE_DURATION_SECONDS
    rate_limit: Optional[int] = None


# =============================================================
# COLLECTION CONFIG
# =============================================================


@dataclass
class CollectionConfig:
    """Complete configuration of one orchestration run."""

    max_parallel_collectors: int = DEFAULT_PARALLEL_COLLECTORS
    collection_timeout: float = DEFAULT_COLLECTION_TIMEOUT_SECONDS

    # Retry
    max_retry_attempts: int = MAX_RETRY_ATTEMPTS
    retry_base_delay: float = RETRY_BASE_DELAY_SECONDS
    retry_multiplier: float = RETRY_BACKOFF_MULTIPLIER
    retry_max_delay: float = 30.0

    # Rate limiting
    rate_limit_max_wait: float = DEFAULT_RATE_LIMIT_MAX_WAIT_SECONDS

    # Post-processing
    similarity_threshold: float = DEDUPLICATION_THRESHOLD
    min_reliability_score: float = MIN_DATA_QUALITY_SCORE
    require_relevance: bool = False
    min_quality_score: Optional[float] = None

    # Quorum
    min_successful_sources: int = 1

    # Cache
    default_cache_duration: float = DEFAULT_CACHE_DURATION_SECONDS
    sources: Dict[str, SourceSettings] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: on the first invalid setting
        """
        if self.max_parallel_collectors < 1:
            raise ConfigurationError(
                "max_parallel_collectors must be at least 1",
                config_key="max_parallel_collectors",
                actual_value=self.max_parallel_collectors,
            )
        if self.collection_timeout <= 0:
            raise ConfigurationError(
                "collection_timeout must be positive",
                config_key="collection_timeout",
                actual_value=self.collection_timeout,
            )
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ConfigurationError(
                "similarity_threshold must be within [0, 1]",
                config_key="similarity_threshold",
                actual_value=self.similarity_threshold,
            )
        if not 0.0 <= self.min_reliability_score <= 1.0:
            raise ConfigurationError(
                "min_reliability_score must be within [0, 1]",
                config_key="min_reliability_score",
                actual_value=self.min_reliability_score,
            )
        if self.min_successful_sources < 0:
            raise ConfigurationError(
                "min_successful_sources must be non-negative",
                config_key="min_successful_sources",
                actual_value=self.min_successful_sources,
            )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_retry_attempts,
            base_delay=self.retry_base_delay,
            multiplier=self.retry_multiplier,
            max_delay=self.retry_max_delay,
        )

    def settings_for(self, source: str) -> SourceSettings:
        """Settings of a source, falling back to the defaults."""
        settings = self.sources.get(source)
        if settings is None:
            return SourceSettings(cache_duration=self.default_cache_duration)
        return settings

    @classmethod
    def from_env(cls) -> "CollectionConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - COLLECTION_MAX_PARALLEL
        - COLLECTION_TIMEOUT
        - COLLECTION_MAX_RETRIES
        - COLLECTION_RETRY_BASE_DELAY
        - COLLECTION_SIMILARITY_THRESHOLD
        - COLLECTION_MIN_RELIABILITY
        - COLLECTION_MIN_SOURCES
        - COLLECTION_CACHE_DURATION
        """
        kwargs: Dict[str, Any] = {}

        if os.getenv("COLLECTION_MAX_PARALLEL"):
            kwargs["max_parallel_collectors"] = int(os.getenv("COLLECTION_MAX_PARALLEL"))
        if os.getenv("COLLECTION_TIMEOUT"):
            kwargs["collection_timeout"] = float(os.getenv("COLLECTION_TIMEOUT"))
        if os.getenv("COLLECTION_MAX_RETRIES"):
            kwargs["max_retry_attempts"] = int(os.getenv("COLLECTION_MAX_RETRIES"))
        if os.getenv("COLLECTION_RETRY_BASE_DELAY"):
            kwargs["retry_base_delay"] = float(os.getenv("COLLECTION_RETRY_BASE_DELAY"))
        if os.getenv("COLLECTION_SIMILARITY_THRESHOLD"):
            kwargs["similarity_threshold"] = float(os.getenv("COLLECTION_SIMILARITY_THRESHOLD"))
        if os.getenv("COLLECTION_MIN_RELIABILITY"):
            kwargs["min_reliability_score"] = float(os.getenv("COLLECTION_MIN_RELIABILITY"))
        if os.getenv("COLLECTION_MIN_SOURCES"):
            kwargs["min_successful_sources"] = int(os.getenv("COLLECTION_MIN_SOURCES"))
        if os.getenv("COLLECTION_CACHE_DURATION"):
            kwargs["default_cache_duration"] = float(os.getenv("COLLECTION_CACHE_DURATION"))

        return cls(**kwargs)

    @classmethod
    def from_dict(
        cls,
        data: Optional[Dict[str, Any]] = None,
        sources: Optional[Iterable[Dict[str, Any]]] = None,
    ) -> "CollectionConfig":
        """
        Build from a `collection` mapping and the `sources` list.

        Unknown keys in `data` raise ConfigurationError.
        """
        data = dict(data or {})
        known = set(cls.__dataclass_fields__) - {"sources"}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown collection settings: {', '.join(sorted(unknown))}",
                config_key="collection",
            )

        default_cache = float(data.get("default_cache_duration", DEFAULT_CACHE_DURATION_SECONDS))
        per_source: Dict[str, SourceSettings] = {}
        for entry in sources or ():
            name = entry.get("name")
            if not name:
                continue
            per_source[name] = SourceSettings(
                cache_duration=float(entry.get("cache_duration", default_cache)),
                rate_limit=entry.get("rate_limit"),
            )

        return cls(sources=per_source, **data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
