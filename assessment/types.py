"""
Assessment - Type Definitions.

============================================================
PURPOSE
============================================================
The final, immutable RiskAssessment and the phases of the run
that produces it.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple
from uuid import uuid4

from risk_analysis.types import (
    ConfidenceLevel,
    RiskAnalysis,
    RiskFactor,
    RiskLevel,
    TrendDirection,
    clamp_unit,
)
from risk_calculation.monte_carlo import SimulationSummary
from core.constants import MAX_SECONDS_TO_MIDNIGHT


# ============================================================
# PHASES
# ============================================================


class AssessmentPhase(str, Enum):
    """Phases of one assessment run."""

    IDLE = "idle"
    COLLECTING = "collecting"
    ANALYZING = "analyzing"
    CALCULATING = "calculating"
    ASSEMBLED = "assembled"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        return self in (AssessmentPhase.ASSEMBLED, AssessmentPhase.FAILED)


# ============================================================
# RISK ASSESSMENT
# ============================================================


@dataclass(frozen=True)
class RiskAssessment:
    """
    One complete assessment.

    Factors are ordered by contribution, then confidence (both
    descending), then name.
    """

    final_score: float
    weighted_score: float
    seconds_to_midnight: int
    risk_level: RiskLevel
    confidence_score: float
    trend: TrendDirection
    trend_magnitude: float = 0.0
    delta_from_previous: Optional[int] = None
    simulation: Optional[SimulationSummary] = None
    factors: Tuple[RiskFactor, ...] = ()
    analyses: Tuple[RiskAnalysis, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False)
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        object.__setattr__(self, "final_score", clamp_unit(self.final_score))
        object.__setattr__(self, "weighted_score", clamp_unit(self.weighted_score))
        object.__setattr__(self, "confidence_score", clamp_unit(self.confidence_score))
        object.__setattr__(
            self, "seconds_to_midnight", max(0, min(MAX_SECONDS_TO_MIDNIGHT, int(self.seconds_to_midnight)))
        )
        object.__setattr__(self, "factors", tuple(self.factors))
        object.__setattr__(self, "analyses", tuple(self.analyses))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def confidence(self) -> ConfidenceLevel:
        return ConfidenceLevel.from_score(self.confidence_score)

    @property
    def failed_sources(self) -> Dict[str, str]:
        return dict(self.metadata.get("failed_sources", {}))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "final_score": self.final_score,
            "weighted_score": self.weighted_score,
            "seconds_to_midnight": self.seconds_to_midnight,
            "risk_level": self.risk_level.value,
            "confidence": self.confidence.value,
            "confidence_score": self.confidence_score,
            "trend": self.trend.value,
            "trend_magnitude": self.trend_magnitude,
            "delta_from_previous": self.delta_from_previous,
            "simulation": self.simulation.to_dict() if self.simulation else None,
            "factors": [f.to_dict() for f in self.factors],
            "analyses": [a.to_dict() for a in self.analyses],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RiskAssessment":
        simulation = data.get("simulation")
        return cls(
            id=data["id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            final_score=data["final_score"],
            weighted_score=data["weighted_score"],
            seconds_to_midnight=data["seconds_to_midnight"],
            risk_level=RiskLevel(data["risk_level"]),
            confidence_score=data["confidence_score"],
            trend=TrendDirection(data["trend"]),
            trend_magnitude=data.get("trend_magnitude", 0.0),
            delta_from_previous=data.get("delta_from_previous"),
            simulation=SimulationSummary.from_dict(simulation) if simulation else None,
            factors=tuple(RiskFactor.from_dict(f) for f in data.get("factors", ())),
            analyses=tuple(RiskAnalysis.from_dict(a) for a in data.get("analyses", ())),
            metadata=data.get("metadata") or {},
        )
