"""
Data Source Models - Normalized threat data structures.

Provides strict typing for data point normalization across all collectors.
Everything here is immutable once built; the orchestrator creates one
AggregatedData snapshot per run.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional


class DataCategory(Enum):
    """Category tag a collector attaches to its data points."""
    NEWS_MEDIA = "news_media"
    NUCLEAR_ARSENAL = "nuclear_arsenal"
    REGIONAL_CONFLICT = "regional_conflict"
    DIPLOMATIC_RELATIONS = "diplomatic_relations"
    MILITARY_EXERCISES = "military_exercises"
    TREATY_COMPLIANCE = "treaty_compliance"
    LEADERSHIP_STATEMENTS = "leadership_statements"
    TECHNICAL_INCIDENT = "technical_incident"


def _clamp_unit(value: float) -> float:
    if value != value:  # NaN
        return 0.0
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True)
class DataPoint:
    """
    Normalized data point - STRICT schema.

    All collectors MUST normalize their output to this format.
    Reliability is clamped to [0, 1]; metadata is exposed read-only.
    """
    source: str
    content: str
    category: DataCategory
    reliability: float = 0.5
    title: Optional[str] = None
    url: Optional[str] = None
    published_at: Optional[datetime] = None
    collected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        # frozen: assign through object.__setattr__
        object.__setattr__(self, "reliability", _clamp_unit(self.reliability))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def text(self) -> str:
        """Title and content joined, used for matching and similarity."""
        if self.title:
            return f"{self.title} {self.content}"
        return self.content

    def capped_reliability(self, ceiling: float) -> "DataPoint":
        """Copy whose reliability does not exceed `ceiling` (the source's score)."""
        capped = min(self.reliability, _clamp_unit(ceiling))
        if capped == self.reliability:
            return self
        return replace(self, reliability=capped)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "source": self.source,
            "content": self.content,
            "category": self.category.value,
            "reliability": self.reliability,
            "title": self.title,
            "url": self.url,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "collected_at": self.collected_at.isoformat(),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DataPoint":
        """Create from dictionary."""
        published = data.get("published_at")
        return cls(
            id=data["id"],
            source=data["source"],
            content=data["content"],
            category=DataCategory(data["category"]),
            reliability=data.get("reliability", 0.5),
            title=data.get("title"),
            url=data.get("url"),
            published_at=datetime.fromisoformat(published) if published else None,
            collected_at=datetime.fromisoformat(data["collected_at"]),
            metadata=data.get("metadata") or {},
        )


@dataclass(frozen=True)
class AggregatedData:
    """
    Result of one orchestration run.

    `failed_sources` maps each failed source to the reason it failed;
    `cache_hits` lists sources served from cache.
    """
    data_points: tuple[DataPoint, ...]
    collected_at: datetime
    sources_succeeded: int
    failed_sources: Mapping[str, str] = field(default_factory=dict, hash=False)
    duration_seconds: float = 0.0
    cache_hits: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "data_points", tuple(self.data_points))
        object.__setattr__(self, "failed_sources", MappingProxyType(dict(self.failed_sources)))
        object.__setattr__(self, "cache_hits", tuple(self.cache_hits))

    def __len__(self) -> int:
        return len(self.data_points)

    def filter_by_category(self, categories: Iterable[DataCategory]) -> list[DataPoint]:
        """Get data points tagged with any of the given categories."""
        wanted = set(categories)
        return [dp for dp in self.data_points if dp.category in wanted]

    def average_reliability(self) -> float:
        """Mean reliability across all data points (0.0 when empty)."""
        if not self.data_points:
            return 0.0
        return sum(dp.reliability for dp in self.data_points) / len(self.data_points)

    def source_coverage(self) -> float:
        """Ratio of succeeded sources to attempted sources."""
        attempted = self.sources_succeeded + len(self.failed_sources)
        if attempted == 0:
            return 0.0
        return self.sources_succeeded / attempted

    def to_dict(self) -> dict[str, Any]:
        """Summary for logging and assessment metadata."""
        return {
            "data_point_count": len(self.data_points),
            "collected_at": self.collected_at.isoformat(),
            "sources_succeeded": self.sources_succeeded,
            "failed_sources": dict(self.failed_sources),
            "duration_seconds": self.duration_seconds,
            "cache_hits": list(self.cache_hits),
        }
