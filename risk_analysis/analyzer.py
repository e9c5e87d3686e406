"""
Risk Analysis - Category Analyzer.

============================================================
PURPOSE
============================================================
Turns one aggregated snapshot into a RiskAnalysis per category.

============================================================
PIPELINE (per category)
============================================================
1. Select data points tagged with a mapped DataCategory, or whose
   text matches the category vocabulary
2. Extract indicators:
   - reporting_volume   min(1, n / volume_saturation)
   - escalation_signals reliability-weighted escalation vocabulary hits
   - threat_relevance   reliability-weighted nuclear/geopolitical hits
   - ai:<name>          qualitative indicators (optional dependency)
3. Adjust each value against the baseline mean
       adjusted = clamp(v + sensitivity * (v - mean))
   and derive its trend (one standard deviation deadband)
4. Category score = confidence-weighted mean of indicator values
5. Category confidence = blend(indicator confidence, source diversity,
   volume) * source coverage, penalized for missing optional
   dependencies, capped when data volume is low

Analyzers never write to the baseline store.

============================================================
"""

import asyncio
import logging
import math
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from core.clock import ClockProtocol, SystemClock
from core.exceptions import DependencyError
from core.metrics import MetricsRegistry
from data_collection.quality import ContentFilter
from data_sources.models import AggregatedData, DataPoint
from risk_analysis.ai_client import AIAnalysisClient, AIAnalysisResult
from risk_analysis.baseline import BaselineStore
from risk_analysis.config import AnalysisConfig
from risk_analysis.types import (
    HistoricalBaseline,
    RiskAnalysis,
    RiskCategory,
    RiskFactor,
    TrendDirection,
    clamp_unit,
)


logger = logging.getLogger(__name__)

AI_DEPENDENCY = "ai_analysis"
BASELINE_DEPENDENCY = "baseline_store"


# ============================================================
# HELPERS
# ============================================================


@dataclass(frozen=True)
class _Indicator:
    name: str
    value: float
    confidence: float
    description: str = ""


def baseline_adjust(value: float, baseline: HistoricalBaseline, sensitivity: float) -> float:
    """Push a value away from the historical mean by `sensitivity`."""
    if not baseline.has_history:
        return clamp_unit(value)
    return clamp_unit(value + sensitivity * (value - baseline.mean))


def baseline_trend(value: float, baseline: HistoricalBaseline) -> TrendDirection:
    """Direction versus the baseline mean, one standard deviation deadband."""
    if not baseline.has_history:
        return TrendDirection.UNCERTAIN
    delta = value - baseline.mean
    if abs(delta) <= baseline.std:
        return TrendDirection.STABLE
    return TrendDirection.INCREASING if delta > 0 else TrendDirection.DECREASING


def _weighted_mean(pairs: Iterable[Tuple[float, float]]) -> float:
    """Mean of values weighted by weights, 0.0 when all weights are 0."""
    total_weight = 0.0
    total = 0.0
    for weight, value in pairs:
        total_weight += weight
        total += weight * value
    return total / total_weight if total_weight > 0 else 0.0


async def load_baselines(
    store: BaselineStore,
    categories: Sequence[RiskCategory],
    required: bool = False,
) -> Tuple[Dict[RiskCategory, HistoricalBaseline], List[str]]:
    """
    Read each category's baseline once.

    Returns:
        (baselines, degraded dependency names)

    Raises:
        DependencyError: the store failed and is required
    """
    baselines: Dict[RiskCategory, HistoricalBaseline] = {}
    degraded: List[str] = []
    for category in categories:
        try:
            baselines[category] = await store.get_baseline(category)
        except DependencyError as e:
            if required:
                raise
            logger.warning(f"[{category.value}] Baseline unavailable, continuing without history: {e.message}")
            baselines[category] = HistoricalBaseline.empty(category)
            if BASELINE_DEPENDENCY not in degraded:
                degraded.append(BASELINE_DEPENDENCY)
    return baselines, degraded


# ============================================================
# ANALYZER
# ============================================================


class RiskAnalyzer:
    """
    Category analyzer.

    Holds no per-run state, so one instance can analyze every
    category concurrently.
    """

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        ai_client: Optional[AIAnalysisClient] = None,
        content_filter: Optional[ContentFilter] = None,
        metrics: Optional[MetricsRegistry] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._config = config or AnalysisConfig()
        self._ai_client = ai_client
        self._filter = content_filter or ContentFilter()
        self._metrics = metrics or MetricsRegistry()
        self._clock = clock or SystemClock()

        self._category_patterns: Dict[RiskCategory, List[re.Pattern]] = {
            category: [re.compile(rf"\b{re.escape(k)}\b", re.IGNORECASE) for k in keywords]
            for category, keywords in self._config.category_keywords.items()
        }
        self._escalation_patterns = [
            re.compile(rf"\b{re.escape(k)}\w*", re.IGNORECASE)
            for k in self._config.escalation_keywords
        ]

    @property
    def config(self) -> AnalysisConfig:
        return self._config

    # =========================================================
    # SELECTION
    # =========================================================

    def select_points(self, category: RiskCategory, data: AggregatedData) -> List[DataPoint]:
        """Points tagged for the category or matching its vocabulary."""
        tagged = set(self._config.category_sources.get(category, ()))
        patterns = self._category_patterns.get(category, [])
        return [
            point for point in data.data_points
            if point.category in tagged or any(p.search(point.text) for p in patterns)
        ]

    # =========================================================
    # PUBLIC API
    # =========================================================

    async def analyze(
        self,
        category: RiskCategory,
        aggregated_data: AggregatedData,
        baseline: Optional[HistoricalBaseline] = None,
        degraded_dependencies: Sequence[str] = (),
    ) -> RiskAnalysis:
        """
        Analyze one category.

        Raises:
            DependencyError: the AI collaborator failed and is required
        """
        started = self._clock.monotonic()
        baseline = baseline or HistoricalBaseline.empty(category)
        degraded = list(degraded_dependencies)
        coverage = aggregated_data.source_coverage()
        points = self.select_points(category, aggregated_data)
        n = len(points)

        if n == 0:
            logger.info(f"[{category.value}] No matching data points")
            return RiskAnalysis(
                category=category,
                score=0.0,
                confidence_score=0.0,
                data_point_count=0,
                source_coverage=coverage,
                summary=f"No reports matched {category.label}",
                metadata={"degraded_dependencies": degraded, "has_history": baseline.has_history},
                analyzed_at=self._clock.now(),
            )

        sources = tuple(sorted({p.source for p in points}))
        volume_confidence = 1.0 - math.exp(-n / self._config.confidence_volume_scale)
        indicators = self._quantitative_indicators(points, volume_confidence)

        ai_result = await self._ai_analysis(category, points, degraded)
        if ai_result is not None:
            indicators.extend(self._qualitative_indicators(ai_result, n))

        factors = [
            RiskFactor(
                category=category,
                name=ind.name,
                value=baseline_adjust(ind.value, baseline, self._config.baseline_sensitivity),
                confidence_score=ind.confidence,
                sources=sources,
                trend=baseline_trend(ind.value, baseline),
                description=ind.description,
            )
            for ind in indicators
        ]

        score = _weighted_mean((f.confidence_score, f.value) for f in factors)
        if all(f.confidence_score == 0 for f in factors):
            score = sum(f.value for f in factors) / len(factors)

        confidence = self._category_confidence(factors, sources, volume_confidence, coverage, degraded, n)

        summary = ai_result.summary if ai_result and ai_result.summary else self._summary(category, factors, n, sources)
        analysis = RiskAnalysis(
            category=category,
            score=score,
            confidence_score=confidence,
            factors=tuple(factors),
            data_point_count=n,
            source_coverage=coverage,
            summary=summary,
            recommendations=ai_result.recommendations if ai_result else (),
            metadata={
                "degraded_dependencies": degraded,
                "has_history": baseline.has_history,
                "baseline_mean": baseline.mean,
                "source_count": len(sources),
            },
            analyzed_at=self._clock.now(),
        )

        elapsed_ms = (self._clock.monotonic() - started) * 1000
        self._metrics.observe("analysis.duration_ms", elapsed_ms, labels={"category": category.value})
        logger.info(
            f"[{category.value}] score={analysis.score:.3f} "
            f"confidence={analysis.confidence_score:.2f} ({analysis.confidence.value}) "
            f"from {n} points, {len(sources)} sources"
        )
        return analysis

    async def analyze_all(
        self,
        categories: Iterable[RiskCategory],
        aggregated_data: AggregatedData,
        baseline_store: BaselineStore,
    ) -> Dict[RiskCategory, RiskAnalysis]:
        """Read baselines once per category, then analyze all categories concurrently."""
        categories = list(categories)
        baselines, degraded = await load_baselines(
            baseline_store, categories, required=self._config.baseline_required
        )
        return await self.analyze_with_baselines(categories, aggregated_data, baselines, degraded)

    async def analyze_with_baselines(
        self,
        categories: Iterable[RiskCategory],
        aggregated_data: AggregatedData,
        baselines: Mapping[RiskCategory, HistoricalBaseline],
        degraded_dependencies: Sequence[str] = (),
    ) -> Dict[RiskCategory, RiskAnalysis]:
        categories = list(categories)
        results = await asyncio.gather(*(
            self.analyze(c, aggregated_data, baselines.get(c), degraded_dependencies)
            for c in categories
        ))
        return dict(zip(categories, results))

    # =========================================================
    # INDICATORS
    # =========================================================

    def _quantitative_indicators(self, points: Sequence[DataPoint], volume_confidence: float) -> List[_Indicator]:
        n = len(points)
        reliabilities = [p.reliability for p in points]
        mean_rel = sum(reliabilities) / n
        spread = math.sqrt(sum((r - mean_rel) ** 2 for r in reliabilities) / n)
        confidence = 0.5 * volume_confidence + 0.5 * mean_rel * (1.0 - spread)
        if n < self._config.min_data_points:
            confidence = min(confidence, self._config.low_volume_confidence_ceiling)

        escalation = _weighted_mean(
            (p.reliability, min(1.0, self._escalation_hits(p.text) / self._config.escalation_saturation))
            for p in points
        )
        relevance = _weighted_mean(
            (p.reliability, min(1.0, len(self._filter.extract_keywords(p.text)) / self._config.relevance_saturation))
            for p in points
        )

        return [
            _Indicator(
                name="reporting_volume",
                value=min(1.0, n / self._config.volume_saturation),
                confidence=confidence,
                description=f"{n} relevant reports",
            ),
            _Indicator(
                name="escalation_signals",
                value=escalation,
                confidence=confidence,
                description="Reliability-weighted escalation vocabulary",
            ),
            _Indicator(
                name="threat_relevance",
                value=relevance,
                confidence=confidence,
                description="Reliability-weighted nuclear and geopolitical keywords",
            ),
        ]

    def _qualitative_indicators(self, result: AIAnalysisResult, n: int) -> List[_Indicator]:
        indicators = []
        for item in result.indicators:
            if not (math.isfinite(item.severity) and math.isfinite(item.confidence)):
                continue
            confidence = item.confidence
            if n < self._config.min_data_points:
                confidence = min(confidence, self._config.low_volume_confidence_ceiling)
            indicators.append(_Indicator(
                name=f"ai:{item.name}",
                value=item.severity,
                confidence=confidence,
                description=item.evidence,
            ))
        return indicators

    def _escalation_hits(self, text: str) -> int:
        return sum(1 for p in self._escalation_patterns if p.search(text))

    async def _ai_analysis(
        self,
        category: RiskCategory,
        points: Sequence[DataPoint],
        degraded: List[str],
    ) -> Optional[AIAnalysisResult]:
        if self._ai_client is None:
            return None
        try:
            return await self._ai_client.analyze(category, points)
        except DependencyError as e:
            self._metrics.increment("analysis.ai_failures", labels={"category": category.value})
            if self._config.ai_required:
                logger.error(f"[{category.value}] Required AI analysis failed: {e.message}")
                raise
            logger.warning(f"[{category.value}] AI analysis unavailable, continuing without it: {e.message}")
            if AI_DEPENDENCY not in degraded:
                degraded.append(AI_DEPENDENCY)
            return None

    # =========================================================
    # CONFIDENCE
    # =========================================================

    def _category_confidence(
        self,
        factors: Sequence[RiskFactor],
        sources: Sequence[str],
        volume_confidence: float,
        coverage: float,
        degraded: Sequence[str],
        n: int,
    ) -> float:
        indicator_confidence = sum(f.confidence_score for f in factors) / len(factors)
        diversity = min(1.0, len(sources) / self._config.source_diversity_saturation)
        w_indicator, w_diversity, w_volume = self._config.confidence_blend

        confidence = (
            w_indicator * indicator_confidence
            + w_diversity * diversity
            + w_volume * volume_confidence
        ) * coverage

        if degraded:
            confidence *= self._config.dependency_penalty
        if n < self._config.min_data_points:
            confidence = min(confidence, self._config.low_volume_confidence_ceiling)
        return clamp_unit(confidence)

    @staticmethod
    def _summary(category: RiskCategory, factors: Sequence[RiskFactor], n: int, sources: Sequence[str]) -> str:
        top = max(factors, key=lambda f: f.value)
        return (
            f"{category.label}: {n} reports from {len(sources)} sources; "
            f"strongest indicator {top.name} at {top.value:.2f}"
        )
