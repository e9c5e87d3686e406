"""
Tests for the risk analysis layer.

============================================================
PURPOSE
============================================================
1. Baseline adjustment and trend helpers
2. Category analyzer scoring and confidence
3. Optional dependency degradation (AI, baseline store)
4. Baseline stores and AI response parsing

============================================================
"""

import math

import pytest

from core.exceptions import ConfigurationError, DependencyError
from risk_analysis import (
    AIAnalysisResult,
    AnalysisConfig,
    BaselineStore,
    HistoricalBaseline,
    InMemoryBaselineStore,
    QualitativeIndicator,
    RiskAnalyzer,
    RiskCategory,
    SqlBaselineStore,
    TrendDirection,
    baseline_adjust,
    baseline_trend,
    compute_baselines,
    extract_json_object,
    load_baselines,
)
from data_sources.models import DataCategory
from tests.conftest import FIXED_TIME, make_point, make_snapshot


NUCLEAR = RiskCategory.NUCLEAR_ARSENAL_CHANGES


class StaticAIClient:
    """AI collaborator returning a fixed result."""

    def __init__(self, result):
        self.result = result
        self.calls = 0

    async def analyze(self, category, data_points):
        self.calls += 1
        return self.result


class FailingAIClient:
    async def analyze(self, category, data_points):
        raise DependencyError("AI service down", dependency="ai_analysis")


class FailingBaselineStore(BaselineStore):
    async def get_baseline(self, category):
        raise DependencyError("store down", dependency="baseline_store")


@pytest.fixture
def analyzer(metrics, clock):
    return RiskAnalyzer(metrics=metrics, clock=clock)


@pytest.fixture
def snapshot(nuclear_points):
    return make_snapshot(nuclear_points)


# ============================================================
# BASELINE HELPER TESTS
# ============================================================

class TestBaselineHelpers:
    """Tests for baseline adjustment and trend."""

    def test_adjust_without_history_is_identity(self):
        assert baseline_adjust(0.6, HistoricalBaseline.empty(NUCLEAR), 0.25) == 0.6

    def test_adjust_moves_away_from_mean(self):
        baseline = HistoricalBaseline(NUCLEAR, mean=0.4, variance=0.01, sample_count=10)

        assert baseline_adjust(0.6, baseline, 0.25) == pytest.approx(0.65)
        assert baseline_adjust(0.2, baseline, 0.25) == pytest.approx(0.15)

    def test_adjust_is_clamped(self):
        baseline = HistoricalBaseline(NUCLEAR, mean=0.1, sample_count=3)
        assert baseline_adjust(0.99, baseline, 1.0) == 1.0

    def test_trend_deadband(self):
        baseline = HistoricalBaseline(NUCLEAR, mean=0.4, variance=0.01, sample_count=10)

        assert baseline_trend(0.45, baseline) == TrendDirection.STABLE
        assert baseline_trend(0.6, baseline) == TrendDirection.INCREASING
        assert baseline_trend(0.2, baseline) == TrendDirection.DECREASING

    def test_trend_without_history(self):
        assert baseline_trend(0.9, HistoricalBaseline.empty(NUCLEAR)) == TrendDirection.UNCERTAIN


# ============================================================
# ANALYZER TESTS
# ============================================================

class TestRiskAnalyzer:
    """Tests for the category analyzer."""

    @pytest.mark.asyncio
    async def test_analysis_in_range(self, analyzer, snapshot, metrics):
        analysis = await analyzer.analyze(NUCLEAR, snapshot)

        assert analysis.category == NUCLEAR
        assert 0.0 < analysis.score <= 1.0
        assert 0.0 < analysis.confidence_score <= 1.0
        assert analysis.data_point_count == 4
        assert analysis.analyzed_at == FIXED_TIME
        assert {f.name for f in analysis.factors} == {
            "reporting_volume", "escalation_signals", "threat_relevance",
        }
        timing = metrics.timing("analysis.duration_ms", labels={"category": NUCLEAR.value})
        assert timing["count"] == 1
        # the mock clock does not move during the analysis
        assert timing["max_ms"] == 0.0

    @pytest.mark.asyncio
    async def test_selection_uses_tags_and_vocabulary(self, analyzer, snapshot):
        selected = analyzer.select_points(NUCLEAR, snapshot)
        # wire_c is tagged NEWS_MEDIA but mentions strategic forces
        assert {p.source for p in selected} == {"wire_a", "wire_b", "wire_c", "wire_d"}

    @pytest.mark.asyncio
    async def test_factors_sorted_by_value(self, analyzer, snapshot):
        analysis = await analyzer.analyze(NUCLEAR, snapshot)
        values = [f.value for f in analysis.factors]
        assert values == sorted(values, reverse=True)

    @pytest.mark.asyncio
    async def test_empty_snapshot(self, analyzer):
        analysis = await analyzer.analyze(NUCLEAR, make_snapshot([], sources_succeeded=1))

        assert analysis.score == 0.0
        assert analysis.confidence_score == 0.0
        assert analysis.factors == ()

    @pytest.mark.asyncio
    async def test_low_volume_caps_confidence(self, analyzer, nuclear_points):
        analysis = await analyzer.analyze(NUCLEAR, make_snapshot(nuclear_points[:2]))

        assert analysis.data_point_count == 2
        assert analysis.confidence_score <= 0.5

    @pytest.mark.asyncio
    async def test_failed_sources_lower_confidence(self, analyzer, nuclear_points):
        full = await analyzer.analyze(NUCLEAR, make_snapshot(nuclear_points))
        partial = await analyzer.analyze(
            NUCLEAR,
            make_snapshot(nuclear_points, failed_sources={"wire_e": "deadline exceeded"}),
        )

        assert partial.source_coverage == pytest.approx(0.8)
        assert partial.confidence_score < full.confidence_score

    @pytest.mark.asyncio
    async def test_baseline_changes_factor_trend(self, analyzer, snapshot):
        baseline = HistoricalBaseline(NUCLEAR, mean=0.0, variance=0.0001, sample_count=30)
        analysis = await analyzer.analyze(NUCLEAR, snapshot, baseline=baseline)

        assert analysis.metadata["has_history"] is True
        assert all(f.trend == TrendDirection.INCREASING for f in analysis.factors if f.value > 0.01)

    @pytest.mark.asyncio
    async def test_unmatched_category_scores_zero(self, analyzer, snapshot):
        analysis = await analyzer.analyze(RiskCategory.ECONOMIC_PRESSURE, snapshot)
        assert analysis.score == 0.0
        assert analysis.data_point_count == 0


class TestOptionalDependencies:
    """AI and baseline failures degrade instead of failing."""

    @pytest.mark.asyncio
    async def test_ai_indicators_are_included(self, metrics, clock, snapshot):
        result = AIAnalysisResult(
            indicators=(QualitativeIndicator("posture_shift", severity=0.9, confidence=0.8),),
            summary="Posture shifting",
            recommendations=("Monitor launch sites",),
        )
        client = StaticAIClient(result)
        analyzer = RiskAnalyzer(ai_client=client, metrics=metrics, clock=clock)

        analysis = await analyzer.analyze(NUCLEAR, snapshot)

        assert client.calls == 1
        assert "ai:posture_shift" in {f.name for f in analysis.factors}
        assert analysis.summary == "Posture shifting"
        assert analysis.recommendations == ("Monitor launch sites",)

    @pytest.mark.asyncio
    async def test_non_finite_ai_indicator_ignored(self, metrics, clock, snapshot):
        result = AIAnalysisResult(
            indicators=(
                QualitativeIndicator("posture_shift", severity=float("nan"), confidence=0.8),
                QualitativeIndicator("drills", severity=0.7, confidence=0.6),
            ),
        )
        analyzer = RiskAnalyzer(ai_client=StaticAIClient(result), metrics=metrics, clock=clock)

        analysis = await analyzer.analyze(NUCLEAR, snapshot)

        names = {f.name for f in analysis.factors}
        assert "ai:posture_shift" not in names
        assert "ai:drills" in names
        assert math.isfinite(analysis.score)
        assert all(math.isfinite(f.value) for f in analysis.factors)

    @pytest.mark.asyncio
    async def test_ai_failure_degrades(self, metrics, clock, snapshot):
        baseline_analysis = await RiskAnalyzer(metrics=metrics, clock=clock).analyze(NUCLEAR, snapshot)
        analyzer = RiskAnalyzer(ai_client=FailingAIClient(), metrics=metrics, clock=clock)

        analysis = await analyzer.analyze(NUCLEAR, snapshot)

        assert analysis.degraded_dependencies == ["ai_analysis"]
        assert analysis.score == pytest.approx(baseline_analysis.score)
        assert analysis.confidence_score == pytest.approx(baseline_analysis.confidence_score * 0.8)
        assert metrics.counter("analysis.ai_failures", labels={"category": NUCLEAR.value}) == 1

    @pytest.mark.asyncio
    async def test_required_ai_failure_raises(self, metrics, clock, snapshot):
        analyzer = RiskAnalyzer(
            AnalysisConfig(ai_required=True),
            ai_client=FailingAIClient(),
            metrics=metrics,
            clock=clock,
        )
        with pytest.raises(DependencyError):
            await analyzer.analyze(NUCLEAR, snapshot)

    @pytest.mark.asyncio
    async def test_baseline_store_failure_degrades(self, analyzer, snapshot):
        categories = [NUCLEAR, RiskCategory.REGIONAL_CONFLICTS]

        analyses = await analyzer.analyze_all(categories, snapshot, FailingBaselineStore())

        assert set(analyses) == set(categories)
        for analysis in analyses.values():
            assert "baseline_store" in analysis.degraded_dependencies
            assert analysis.metadata["has_history"] is False

    @pytest.mark.asyncio
    async def test_required_baseline_store_failure_raises(self):
        with pytest.raises(DependencyError):
            await load_baselines(FailingBaselineStore(), [NUCLEAR], required=True)


# ============================================================
# BASELINE STORE TESTS
# ============================================================

class TestBaselineStores:
    """Tests for baseline computation and stores."""

    def test_compute_baselines(self):
        history = [{NUCLEAR: 0.2}, {NUCLEAR: 0.4}, {NUCLEAR: float("nan")}]

        baselines = compute_baselines(history, updated_at=FIXED_TIME)

        nuclear = baselines[NUCLEAR]
        assert nuclear.mean == pytest.approx(0.3)
        assert nuclear.variance == pytest.approx(0.01)
        assert nuclear.sample_count == 2
        assert not baselines[RiskCategory.ECONOMIC_PRESSURE].has_history

    @pytest.mark.asyncio
    async def test_in_memory_store_commit(self):
        store = InMemoryBaselineStore()
        assert not (await store.get_baseline(NUCLEAR)).has_history

        store.commit({NUCLEAR: HistoricalBaseline(NUCLEAR, mean=0.5, sample_count=4)})

        assert (await store.get_baseline(NUCLEAR)).mean == 0.5

    @pytest.mark.asyncio
    async def test_sql_store_roundtrip(self, session_factory):
        store = SqlBaselineStore(session_factory)
        store.commit({NUCLEAR: HistoricalBaseline(NUCLEAR, mean=0.42, variance=0.02, sample_count=12)})
        store.commit({NUCLEAR: HistoricalBaseline(NUCLEAR, mean=0.44, variance=0.02, sample_count=13)})

        baselines = await store.get_baselines([NUCLEAR, RiskCategory.ECONOMIC_PRESSURE])

        assert baselines[NUCLEAR].mean == pytest.approx(0.44)
        assert baselines[NUCLEAR].sample_count == 13
        assert not baselines[RiskCategory.ECONOMIC_PRESSURE].has_history


# ============================================================
# AI RESPONSE / CONFIG TESTS
# ============================================================

class TestAIResponseParsing:
    """Tests for reading the AI collaborator's reply."""

    def test_fenced_json(self):
        text = '```json\n{"summary": "ok", "indicators": []}\n```'
        assert extract_json_object(text) == {"summary": "ok", "indicators": []}

    def test_json_with_prose(self):
        text = 'Here is the analysis: {"summary": "tense"} Hope this helps.'
        assert extract_json_object(text)["summary"] == "tense"

    def test_no_json(self):
        with pytest.raises(ValueError):
            extract_json_object("no structured answer")

    def test_result_skips_malformed_indicators(self):
        result = AIAnalysisResult.from_dict({
            "indicators": [
                {"name": "rhetoric", "severity": 1.4, "confidence": 0.7},
                {"severity": 0.3},
                "junk",
            ],
            "recommendations": ["Watch"],
        })

        assert len(result.indicators) == 1
        assert result.indicators[0].severity == 1.0
        assert result.recommendations == ("Watch",)

    def test_result_skips_non_finite_values(self):
        reply = extract_json_object(
            '{"indicators": ['
            '{"name": "posture", "severity": NaN, "confidence": 0.9},'
            '{"name": "drills", "severity": 0.4, "confidence": Infinity},'
            '{"name": "rhetoric", "severity": 0.6, "confidence": 0.7}'
            ']}'
        )
        result = AIAnalysisResult.from_dict(reply)

        assert [i.name for i in result.indicators] == ["rhetoric"]


class TestAnalysisConfig:
    """Tests for analysis configuration."""

    def test_invalid_blend(self):
        with pytest.raises(ConfigurationError):
            AnalysisConfig(confidence_blend=(0.5, 0.5, 0.5))

    def test_from_dict(self):
        config = AnalysisConfig.from_dict({
            "min_data_points": 5,
            "category_keywords": {"economic_pressure": ["Oil Shock"]},
            "category_sources": {"economic_pressure": ["news_media"]},
        })

        assert config.min_data_points == 5
        assert config.category_keywords[RiskCategory.ECONOMIC_PRESSURE] == ("oil shock",)
        assert config.category_sources[RiskCategory.ECONOMIC_PRESSURE] == (DataCategory.NEWS_MEDIA,)

    def test_from_dict_rejects_unknown(self):
        with pytest.raises(ConfigurationError):
            AnalysisConfig.from_dict({"temperature": 0.1})
        with pytest.raises(ConfigurationError):
            AnalysisConfig.from_dict({"category_keywords": {"astrology": ["x"]}})
