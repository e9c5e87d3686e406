"""
Risk Calculation Engine - Main Orchestrator.

============================================================
PURPOSE
============================================================
Combines the per-category analyses into one overall result.

It orchestrates:
1. Weight and input validation (before anything else)
2. Weighted score
3. Bayesian blending against historical priors
4. Monte Carlo uncertainty
5. Seconds-to-midnight projection and risk level
6. Trend against the look-back window
7. Overall confidence

============================================================
DESIGN PRINCIPLES
============================================================
- Stateless per call
- Never substitutes default data for invalid input
- Every failure is a ValidationError or SimulationError

============================================================
USAGE
============================================================
    engine = RiskCalculationEngine(CalculationConfig(seed=7))
    result = engine.calculate(analyses, baselines=baselines, history=[634, 640])

    print(result.seconds_to_midnight, result.risk_level.value)

============================================================
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence

from core.constants import WEIGHT_SUM_TOLERANCE
from core.exceptions import ValidationError
from risk_analysis.types import (
    ConfidenceLevel,
    HistoricalBaseline,
    RiskAnalysis,
    RiskCategory,
    RiskLevel,
    clamp_unit,
)
from risk_calculation.config import CalculationConfig
from risk_calculation.monte_carlo import MonteCarloSimulator, SimulationSummary
from risk_calculation.projection import seconds_to_midnight
from risk_calculation.trend import TrendAnalyzer, TrendResult


logger = logging.getLogger(__name__)


# ============================================================
# RESULT
# ============================================================


@dataclass(frozen=True)
class RiskCalculationResult:
    """
    Output of one calculation.

    `final_score` is the Bayesian-adjusted score; seconds to midnight
    and the risk level are derived from it.
    """

    weighted_score: float
    final_score: float
    seconds_to_midnight: int
    risk_level: RiskLevel
    confidence_score: float
    trend: TrendResult
    simulation: SimulationSummary
    weights: Dict[RiskCategory, float] = field(default_factory=dict, compare=False)
    category_scores: Dict[RiskCategory, float] = field(default_factory=dict, compare=False)
    posterior_scores: Dict[RiskCategory, float] = field(default_factory=dict, compare=False)

    @property
    def confidence(self) -> ConfidenceLevel:
        return ConfidenceLevel.from_score(self.confidence_score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weighted_score": self.weighted_score,
            "final_score": self.final_score,
            "seconds_to_midnight": self.seconds_to_midnight,
            "risk_level": self.risk_level.value,
            "confidence": self.confidence.value,
            "confidence_score": self.confidence_score,
            "trend": self.trend.to_dict(),
            "simulation": self.simulation.to_dict(),
            "weights": {c.value: w for c, w in self.weights.items()},
            "category_scores": {c.value: s for c, s in self.category_scores.items()},
            "posterior_scores": {c.value: s for c, s in self.posterior_scores.items()},
        }


# ============================================================
# VALIDATION
# ============================================================


def validate_weights(weights: Mapping[RiskCategory, float]) -> None:
    """
    Raises:
        ValidationError: negative, non-finite, or not summing to 1.0
    """
    if not weights:
        raise ValidationError("No category weights configured", field="weights")
    for category, weight in weights.items():
        if weight is None or not math.isfinite(weight) or weight < 0:
            raise ValidationError(
                f"Invalid weight for {category.value}: {weight}",
                field=f"weights.{category.value}",
                value=weight,
            )
    total = sum(weights.values())
    if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
        raise ValidationError(
            f"Category weights sum to {total:.4f}, expected 1.0 +/- {WEIGHT_SUM_TOLERANCE}",
            field="weights",
            value=total,
        )


def validate_analyses(
    analyses: Mapping[RiskCategory, RiskAnalysis],
    weights: Mapping[RiskCategory, float],
) -> None:
    """
    Every weighted category needs exactly one analysis with a finite
    score and confidence in [0, 1].

    Raises:
        ValidationError
    """
    missing = [c.value for c, w in weights.items() if w > 0 and c not in analyses]
    if missing:
        raise ValidationError(
            f"Missing analyses for weighted categories: {', '.join(sorted(missing))}",
            field="analyses",
            value=missing,
        )
    for category, analysis in analyses.items():
        if analysis.category != category:
            raise ValidationError(
                f"Analysis for {analysis.category.value} filed under {category.value}",
                field="analyses",
            )
        for name in ("score", "confidence_score"):
            value = getattr(analysis, name)
            if value is None or not math.isfinite(value) or not 0.0 <= value <= 1.0:
                raise ValidationError(
                    f"Invalid {name} for {category.value}: {value}",
                    field=f"{category.value}.{name}",
                    value=value,
                )


def weighted_score(
    scores: Mapping[RiskCategory, float],
    weights: Mapping[RiskCategory, float],
) -> float:
    """sum(weight[c] * score[c]) over the weighted categories."""
    return clamp_unit(sum(w * scores.get(c, 0.0) for c, w in weights.items()))


def bayesian_posterior(score: float, baseline: Optional[HistoricalBaseline], prior_weight: float) -> float:
    """Blend a score with its historical mean; no history keeps the score."""
    if baseline is None or not baseline.has_history:
        return score
    return clamp_unit(prior_weight * baseline.mean + (1.0 - prior_weight) * score)


# ============================================================
# ENGINE
# ============================================================


class RiskCalculationEngine:
    """Turns category analyses into the overall score and its distribution."""

    def __init__(self, config: Optional[CalculationConfig] = None) -> None:
        self.config = config or CalculationConfig()

    def calculate(
        self,
        analyses: Mapping[RiskCategory, RiskAnalysis],
        weights: Optional[Mapping[RiskCategory, float]] = None,
        config: Optional[CalculationConfig] = None,
        baselines: Optional[Mapping[RiskCategory, HistoricalBaseline]] = None,
        history: Sequence[int] = (),
    ) -> RiskCalculationResult:
        """
        Args:
            analyses: one analysis per weighted category
            weights: overrides the configured weights
            config: overrides the engine configuration for this call
            baselines: per-category priors
            history: previous seconds-to-midnight, oldest first

        Raises:
            ValidationError: invalid weights or analyses
            SimulationError: the simulation cannot produce finite output
        """
        config = config or self.config
        weights = dict(weights if weights is not None else config.weights)
        baselines = baselines or {}

        validate_weights(weights)
        validate_analyses(analyses, weights)

        scores = {c: analyses[c].score for c in weights if c in analyses}
        raw_score = weighted_score(scores, weights)

        posteriors = {
            c: bayesian_posterior(score, baselines.get(c), config.prior_weight)
            for c, score in scores.items()
        }
        final_score = weighted_score(posteriors, weights)

        simulator = MonteCarloSimulator(
            iterations=config.monte_carlo_iterations,
            seed=config.seed,
            workers=config.workers,
            confidence_interval=config.confidence_interval,
            min_concentration=config.min_concentration,
            max_concentration=config.max_concentration,
            mode_bins=config.mode_bins,
        )
        simulation = simulator.simulate(
            posteriors,
            {c: analyses[c].confidence_score for c in posteriors},
            weights,
        )

        seconds = seconds_to_midnight(final_score)
        trend = TrendAnalyzer(
            window=config.trend_window,
            deadband=config.trend_deadband,
            volatility_threshold=config.trend_volatility_threshold,
        ).analyze(seconds, history)

        confidence = self.overall_confidence(analyses, weights, config.confidence_volume_scale)

        result = RiskCalculationResult(
            weighted_score=raw_score,
            final_score=final_score,
            seconds_to_midnight=seconds,
            risk_level=RiskLevel.from_seconds(seconds),
            confidence_score=confidence,
            trend=trend,
            simulation=simulation,
            weights=weights,
            category_scores=scores,
            posterior_scores=posteriors,
        )

        logger.info(
            f"Calculated risk: weighted={raw_score:.4f} adjusted={final_score:.4f} "
            f"seconds={seconds} level={result.risk_level.value} "
            f"confidence={confidence:.2f} trend={trend.direction.value}"
        )
        return result

    @staticmethod
    def overall_confidence(
        analyses: Mapping[RiskCategory, RiskAnalysis],
        weights: Mapping[RiskCategory, float],
        volume_scale: float = 5.0,
    ) -> float:
        """
        Category confidences weighted by weight[c] * n / (n + volume_scale),
        where n is the category's data point count.
        """
        total = 0.0
        norm = 0.0
        for category, weight in weights.items():
            analysis = analyses.get(category)
            if analysis is None or weight <= 0:
                continue
            n = analysis.data_point_count
            w = weight * (n / (n + volume_scale) if n > 0 else 0.0)
            total += w * analysis.confidence_score
            norm += w
        return clamp_unit(total / norm) if norm > 0 else 0.0
