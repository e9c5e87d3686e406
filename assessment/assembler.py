"""
Assessment - Assembler.

Merges a calculation result and the category analyses into one
RiskAssessment.

- contribution = weight[category] * factor value
- factors sorted by contribution desc, confidence desc, name asc
- the merged list must hold every analysis factor exactly once
"""

import logging
from collections import Counter
from dataclasses import replace
from typing import Any, Iterable, Mapping, Optional, Sequence

from core.clock import ClockProtocol, SystemClock
from core.exceptions import ValidationError
from data_sources.models import AggregatedData
from risk_analysis.types import RiskAnalysis, RiskFactor
from risk_calculation.engine import RiskCalculationResult
from assessment.types import RiskAssessment


logger = logging.getLogger(__name__)


def factor_sort_key(factor: RiskFactor) -> tuple:
    return (-factor.contribution, -factor.confidence_score, factor.name)


class AssessmentAssembler:
    def __init__(self, clock: Optional[ClockProtocol] = None) -> None:
        self._clock = clock or SystemClock()

    def assemble(
        self,
        result: RiskCalculationResult,
        analyses: Iterable[RiskAnalysis],
        aggregated_data: Optional[AggregatedData] = None,
        degraded_dependencies: Sequence[str] = (),
        extra_metadata: Optional[Mapping[str, Any]] = None,
    ) -> RiskAssessment:
        """
        Raises:
            ValidationError: the merged factor list lost or duplicated a factor
        """
        analyses = tuple(analyses)
        factors = []
        for analysis in analyses:
            weight = result.weights.get(analysis.category, 0.0)
            for factor in analysis.factors:
                factors.append(replace(factor, contribution=weight * factor.value))
        factors.sort(key=factor_sort_key)

        expected = Counter(f.id for a in analyses for f in a.factors)
        merged = Counter(f.id for f in factors)
        if merged != expected or any(count != 1 for count in merged.values()):
            raise ValidationError(
                "Assembled factor list does not contain every factor exactly once",
                field="factors",
                value=len(factors),
            )

        degraded = sorted(set(degraded_dependencies).union(
            *(a.degraded_dependencies for a in analyses)
        ))
        metadata = {"degraded_dependencies": degraded}
        if aggregated_data is not None:
            metadata.update({
                "failed_sources": dict(aggregated_data.failed_sources),
                "sources_succeeded": aggregated_data.sources_succeeded,
                "data_point_count": len(aggregated_data),
                "collection_duration_seconds": aggregated_data.duration_seconds,
                "cache_hits": list(aggregated_data.cache_hits),
            })
        metadata["posterior_scores"] = {c.value: s for c, s in result.posterior_scores.items()}
        if extra_metadata:
            metadata.update(extra_metadata)

        assessment = RiskAssessment(
            final_score=result.final_score,
            weighted_score=result.weighted_score,
            seconds_to_midnight=result.seconds_to_midnight,
            risk_level=result.risk_level,
            confidence_score=result.confidence_score,
            trend=result.trend.direction,
            trend_magnitude=result.trend.magnitude,
            delta_from_previous=result.trend.delta_from_previous,
            simulation=result.simulation,
            factors=tuple(factors),
            analyses=analyses,
            metadata=metadata,
            created_at=self._clock.now(),
        )
        logger.info(
            f"Assembled assessment {assessment.id}: {assessment.seconds_to_midnight}s "
            f"({assessment.risk_level.value}), {len(factors)} factors"
        )
        return assessment
