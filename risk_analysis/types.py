"""
Risk Analysis - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts shared by the analyzers, the calculation engine
and the assessment assembler.

============================================================
DESIGN PRINCIPLES
============================================================
- All records are immutable
- Enums for discrete state values
- Every probability/score field is clamped to [0, 1]; NaN is
  left in place so validation can reject it downstream

============================================================
RISK CATEGORIES
============================================================
Eight categories with default weights summing to 1.0:

  nuclear_arsenal_changes   0.15
  arms_control_breakdown    0.15
  regional_conflicts        0.20
  leadership_instability    0.10
  technical_incidents       0.15
  communication_failures    0.10
  emerging_tech_risks       0.10
  economic_pressure         0.05

============================================================
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import uuid4

from core.constants import (
    CRITICAL_THRESHOLD_SECONDS,
    HIGH_THRESHOLD_SECONDS,
    MODERATE_THRESHOLD_SECONDS,
    SEVERE_THRESHOLD_SECONDS,
)


def clamp_unit(value: float) -> float:
    """Clamp to [0, 1]; NaN passes through unchanged."""
    value = float(value)
    if math.isnan(value):
        return value
    return max(0.0, min(1.0, value))


# ============================================================
# ENUMS
# ============================================================


class RiskCategory(str, Enum):
    """The eight risk categories evaluated by the analyzers."""

    NUCLEAR_ARSENAL_CHANGES = "nuclear_arsenal_changes"
    ARMS_CONTROL_BREAKDOWN = "arms_control_breakdown"
    REGIONAL_CONFLICTS = "regional_conflicts"
    LEADERSHIP_INSTABILITY = "leadership_instability"
    TECHNICAL_INCIDENTS = "technical_incidents"
    COMMUNICATION_FAILURES = "communication_failures"
    EMERGING_TECH_RISKS = "emerging_tech_risks"
    ECONOMIC_PRESSURE = "economic_pressure"

    @property
    def default_weight(self) -> float:
        return _DEFAULT_WEIGHTS[self]

    @classmethod
    def default_weights(cls) -> Dict["RiskCategory", float]:
        return dict(_DEFAULT_WEIGHTS)

    @property
    def label(self) -> str:
        """Human-readable label for the category."""
        return self.value.replace("_", " ").title()


_DEFAULT_WEIGHTS: Dict[RiskCategory, float] = {
    RiskCategory.NUCLEAR_ARSENAL_CHANGES: 0.15,
    RiskCategory.ARMS_CONTROL_BREAKDOWN: 0.15,
    RiskCategory.REGIONAL_CONFLICTS: 0.20,
    RiskCategory.LEADERSHIP_INSTABILITY: 0.10,
    RiskCategory.TECHNICAL_INCIDENTS: 0.15,
    RiskCategory.COMMUNICATION_FAILURES: 0.10,
    RiskCategory.EMERGING_TECH_RISKS: 0.10,
    RiskCategory.ECONOMIC_PRESSURE: 0.05,
}


class ConfidenceLevel(str, Enum):
    """
    Confidence bands.

    - VERY_LOW:  < 0.40
    - LOW:       0.40 - 0.60
    - MODERATE:  0.60 - 0.80
    - HIGH:      0.80 - 0.95
    - VERY_HIGH: >= 0.95
    """

    VERY_LOW = "very_low"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very_high"

    @classmethod
    def from_score(cls, score: float) -> "ConfidenceLevel":
        if math.isnan(score) or score < 0.40:
            return cls.VERY_LOW
        if score < 0.60:
            return cls.LOW
        if score < 0.80:
            return cls.MODERATE
        if score < 0.95:
            return cls.HIGH
        return cls.VERY_HIGH

    def to_score(self) -> float:
        """Representative value of the band."""
        return _CONFIDENCE_SCORES[self]


_CONFIDENCE_SCORES: Dict[ConfidenceLevel, float] = {
    ConfidenceLevel.VERY_LOW: 0.20,
    ConfidenceLevel.LOW: 0.50,
    ConfidenceLevel.MODERATE: 0.70,
    ConfidenceLevel.HIGH: 0.875,
    ConfidenceLevel.VERY_HIGH: 0.975,
}


class TrendDirection(str, Enum):
    """Direction of change relative to history."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    UNCERTAIN = "uncertain"


class RiskLevel(str, Enum):
    """
    Risk level label from seconds to midnight.

    - CRITICAL: <= 100 s
    - SEVERE:   <= 200 s
    - HIGH:     <= 400 s
    - MODERATE: <= 600 s
    - LOW:      otherwise
    """

    CRITICAL = "critical"
    SEVERE = "severe"
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"

    @classmethod
    def from_seconds(cls, seconds: int) -> "RiskLevel":
        if seconds <= CRITICAL_THRESHOLD_SECONDS:
            return cls.CRITICAL
        if seconds <= SEVERE_THRESHOLD_SECONDS:
            return cls.SEVERE
        if seconds <= HIGH_THRESHOLD_SECONDS:
            return cls.HIGH
        if seconds <= MODERATE_THRESHOLD_SECONDS:
            return cls.MODERATE
        return cls.LOW


# ============================================================
# BASELINES AND AI OUTPUT
# ============================================================


@dataclass(frozen=True)
class HistoricalBaseline:
    """Historical statistics of one category's score."""

    category: RiskCategory
    mean: float = 0.0
    variance: float = 0.0
    sample_count: int = 0
    updated_at: Optional[datetime] = None

    @property
    def std(self) -> float:
        return math.sqrt(max(0.0, self.variance))

    @property
    def has_history(self) -> bool:
        return self.sample_count > 0

    @classmethod
    def empty(cls, category: RiskCategory) -> "HistoricalBaseline":
        return cls(category=category)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "mean": self.mean,
            "variance": self.variance,
            "sample_count": self.sample_count,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class QualitativeIndicator:
    """One indicator reported by the AI collaborator."""

    name: str
    severity: float
    evidence: str = ""
    confidence: float = 0.5

    def __post_init__(self) -> None:
        object.__setattr__(self, "severity", clamp_unit(self.severity))
        object.__setattr__(self, "confidence", clamp_unit(self.confidence))


# ============================================================
# RISK FACTOR
# ============================================================


@dataclass(frozen=True)
class RiskFactor:
    """
    One ranked indicator within a category.

    `contribution` stays 0.0 until the assembler sets it to
    weight[category] * value.
    """

    category: RiskCategory
    name: str
    value: float
    confidence_score: float
    sources: Tuple[str, ...] = ()
    trend: TrendDirection = TrendDirection.UNCERTAIN
    contribution: float = 0.0
    description: str = ""
    id: str = field(default_factory=lambda: str(uuid4()))

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", clamp_unit(self.value))
        object.__setattr__(self, "confidence_score", clamp_unit(self.confidence_score))
        object.__setattr__(self, "sources", tuple(self.sources))

    @property
    def confidence(self) -> ConfidenceLevel:
        return ConfidenceLevel.from_score(self.confidence_score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category.value,
            "name": self.name,
            "value": self.value,
            "confidence": self.confidence.value,
            "confidence_score": self.confidence_score,
            "sources": list(self.sources),
            "trend": self.trend.value,
            "contribution": self.contribution,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RiskFactor":
        return cls(
            id=data["id"],
            category=RiskCategory(data["category"]),
            name=data["name"],
            value=data["value"],
            confidence_score=data["confidence_score"],
            sources=tuple(data.get("sources", ())),
            trend=TrendDirection(data.get("trend", TrendDirection.UNCERTAIN.value)),
            contribution=data.get("contribution", 0.0),
            description=data.get("description", ""),
        )


# ============================================================
# RISK ANALYSIS
# ============================================================


@dataclass(frozen=True)
class RiskAnalysis:
    """
    Output of one category analyzer.

    Factors are ordered by value, highest first.
    """

    category: RiskCategory
    score: float
    confidence_score: float
    factors: Tuple[RiskFactor, ...] = ()
    data_point_count: int = 0
    source_coverage: float = 1.0
    summary: str = ""
    recommendations: Tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False)
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        object.__setattr__(self, "score", clamp_unit(self.score))
        object.__setattr__(self, "confidence_score", clamp_unit(self.confidence_score))
        object.__setattr__(self, "source_coverage", clamp_unit(self.source_coverage))
        object.__setattr__(
            self, "factors", tuple(sorted(self.factors, key=lambda f: (-f.value, f.name)))
        )
        object.__setattr__(self, "recommendations", tuple(self.recommendations))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def confidence(self) -> ConfidenceLevel:
        return ConfidenceLevel.from_score(self.confidence_score)

    @property
    def degraded_dependencies(self) -> List[str]:
        return list(self.metadata.get("degraded_dependencies", ()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "score": self.score,
            "confidence": self.confidence.value,
            "confidence_score": self.confidence_score,
            "factors": [f.to_dict() for f in self.factors],
            "data_point_count": self.data_point_count,
            "source_coverage": self.source_coverage,
            "summary": self.summary,
            "recommendations": list(self.recommendations),
            "metadata": dict(self.metadata),
            "analyzed_at": self.analyzed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RiskAnalysis":
        return cls(
            category=RiskCategory(data["category"]),
            score=data["score"],
            confidence_score=data["confidence_score"],
            factors=tuple(RiskFactor.from_dict(f) for f in data.get("factors", ())),
            data_point_count=data.get("data_point_count", 0),
            source_coverage=data.get("source_coverage", 1.0),
            summary=data.get("summary", ""),
            recommendations=tuple(data.get("recommendations", ())),
            metadata=data.get("metadata") or {},
            analyzed_at=datetime.fromisoformat(data["analyzed_at"]),
        )
