"""
Tests for the risk calculation engine.

============================================================
PURPOSE
============================================================
1. Weight validation and weighted score
2. Bayesian blending
3. Seconds-to-midnight projection
4. Trend against history
5. Monte Carlo determinism and failure modes

============================================================
"""

import math

import pytest

from core.exceptions import ConfigurationError, SimulationError, ValidationError
from risk_analysis.types import (
    HistoricalBaseline,
    RiskAnalysis,
    RiskCategory,
    RiskLevel,
    TrendDirection,
)
from risk_calculation import (
    CalculationConfig,
    MonteCarloSimulator,
    RiskCalculationEngine,
    TrendAnalyzer,
    bayesian_posterior,
    score_for_seconds,
    seconds_to_midnight,
    validate_weights,
    weighted_score,
)


A = RiskCategory.NUCLEAR_ARSENAL_CHANGES
B = RiskCategory.ARMS_CONTROL_BREAKDOWN
C = RiskCategory.REGIONAL_CONFLICTS

WEIGHTS = {A: 0.5, B: 0.3, C: 0.2}


def make_analysis(category, score, confidence=0.8, points=10):
    return RiskAnalysis(
        category=category,
        score=score,
        confidence_score=confidence,
        data_point_count=points,
    )


@pytest.fixture
def analyses():
    return {
        A: make_analysis(A, 0.8),
        B: make_analysis(B, 0.4),
        C: make_analysis(C, 0.2),
    }


@pytest.fixture
def engine():
    return RiskCalculationEngine(CalculationConfig(monte_carlo_iterations=2000, seed=42, workers=2))


# ============================================================
# WEIGHT TESTS
# ============================================================

class TestWeights:
    """Tests for weight validation and the weighted score."""

    def test_default_weights_are_valid(self):
        validate_weights(RiskCategory.default_weights())

    def test_weighted_score(self):
        scores = {A: 0.8, B: 0.4, C: 0.2}
        assert weighted_score(scores, WEIGHTS) == pytest.approx(0.56)

    @pytest.mark.parametrize("weights", [
        {A: 0.5, B: 0.3, C: 0.17},
        {A: 0.6, B: 0.3, C: 0.2},
        {A: 1.2, B: -0.2},
        {A: float("nan"), B: 0.5},
        {},
    ])
    def test_invalid_weights(self, weights):
        with pytest.raises(ValidationError):
            validate_weights(weights)

    def test_tolerance(self):
        validate_weights({A: 0.5, B: 0.3, C: 0.2005})


# ============================================================
# BAYESIAN TESTS
# ============================================================

class TestBayesianPosterior:
    """Tests for blending against the historical prior."""

    def test_no_history_keeps_score(self):
        assert bayesian_posterior(0.7, HistoricalBaseline.empty(A), 0.3) == 0.7
        assert bayesian_posterior(0.7, None, 0.3) == 0.7

    def test_blend(self):
        baseline = HistoricalBaseline(A, mean=0.5, variance=0.01, sample_count=20)
        assert bayesian_posterior(0.8, baseline, 0.3) == pytest.approx(0.71)


# ============================================================
# PROJECTION TESTS
# ============================================================

class TestProjection:
    """Tests for the seconds-to-midnight curve."""

    def test_endpoints(self):
        assert seconds_to_midnight(0.0) == 1440
        assert seconds_to_midnight(1.0) == 0

    def test_anchor_points(self):
        assert seconds_to_midnight(1 - 1020 / 1440) == 1020
        assert seconds_to_midnight(1 - 89 / 1440) == 89

    def test_half_up_rounding(self):
        # 1440 * (1 - 0.56) = 633.6
        assert seconds_to_midnight(0.56) == 634

    def test_monotonic(self):
        values = [seconds_to_midnight(i / 200) for i in range(201)]
        assert all(a >= b for a, b in zip(values, values[1:]))

    def test_out_of_range_is_clamped(self):
        assert seconds_to_midnight(-0.5) == 1440
        assert seconds_to_midnight(1.5) == 0

    def test_non_finite_rejected(self):
        with pytest.raises(ValidationError):
            seconds_to_midnight(float("nan"))
        with pytest.raises(ValidationError):
            seconds_to_midnight(math.inf)

    def test_inverse(self):
        for seconds in (0, 89, 634, 1020, 1440):
            assert seconds_to_midnight(score_for_seconds(seconds)) == seconds


# ============================================================
# TREND TESTS
# ============================================================

class TestTrendAnalyzer:
    """Tests for the seconds-to-midnight trend."""

    def test_no_history(self):
        result = TrendAnalyzer().analyze(634, [])
        assert result.direction == TrendDirection.UNCERTAIN
        assert result.delta is None

    def test_deadband(self):
        analyzer = TrendAnalyzer(deadband=5)
        history = [634] * 7

        assert analyzer.analyze(636, history).direction == TrendDirection.STABLE
        assert analyzer.analyze(640, history).direction == TrendDirection.INCREASING
        assert analyzer.analyze(620, history).direction == TrendDirection.DECREASING

    def test_unchanged_is_stable(self):
        result = TrendAnalyzer(deadband=0).analyze(634, [634, 634])
        assert result.direction == TrendDirection.STABLE
        assert result.delta_from_previous == 0

    def test_window_limits_history(self):
        result = TrendAnalyzer(window=2, deadband=5).analyze(700, [100, 100, 700, 700])
        assert result.window_mean == 700
        assert result.direction == TrendDirection.STABLE

    def test_volatile_window_is_uncertain(self):
        result = TrendAnalyzer(volatility_threshold=120).analyze(600, [200, 900, 150, 1000])
        assert result.direction == TrendDirection.UNCERTAIN
        assert result.window_std > 120

    def test_delta_from_previous(self):
        result = TrendAnalyzer(deadband=5).analyze(650, [640, 630])
        assert result.delta == pytest.approx(15.0)
        assert result.magnitude == pytest.approx(15.0)
        assert result.delta_from_previous == 20


# ============================================================
# MONTE CARLO TESTS
# ============================================================

class TestMonteCarloSimulator:
    """Tests for the uncertainty simulation."""

    def test_same_seed_same_summary(self):
        means = {A: 0.8, B: 0.4, C: 0.2}
        confidences = {A: 0.9, B: 0.5, C: 0.3}

        first = MonteCarloSimulator(iterations=3000, seed=7, workers=3).simulate(means, confidences, WEIGHTS)
        second = MonteCarloSimulator(iterations=3000, seed=7, workers=3).simulate(means, confidences, WEIGHTS)

        assert first == second
        assert first.percentiles == second.percentiles
        assert first.iterations == 3000
        assert first.seed == 7

    def test_summary_is_consistent(self):
        means = {A: 0.8, B: 0.4, C: 0.2}
        confidences = {A: 0.9, B: 0.9, C: 0.9}

        summary = MonteCarloSimulator(iterations=5000, seed=1).simulate(means, confidences, WEIGHTS)

        assert summary.mean == pytest.approx(0.56, abs=0.02)
        assert summary.ci_lower <= summary.median <= summary.ci_upper
        assert summary.percentiles[5] <= summary.percentiles[50] <= summary.percentiles[95]
        assert 0.0 <= summary.ci_lower and summary.ci_upper <= 1.0

    def test_low_confidence_widens_distribution(self):
        means = {A: 0.5, B: 0.5, C: 0.5}
        tight = MonteCarloSimulator(iterations=4000, seed=3).simulate(means, {c: 1.0 for c in means}, WEIGHTS)
        loose = MonteCarloSimulator(iterations=4000, seed=3).simulate(means, {c: 0.0 for c in means}, WEIGHTS)

        assert loose.std > tight.std

    def test_beta_parameters(self):
        alpha, beta = MonteCarloSimulator().beta_parameters(0.25, 1.0)
        assert alpha == pytest.approx(50.0)
        assert beta == pytest.approx(150.0)

    def test_non_finite_input(self):
        simulator = MonteCarloSimulator(iterations=100, seed=1)
        with pytest.raises(SimulationError):
            simulator.simulate({A: float("nan")}, {A: 0.5}, {A: 1.0})
        with pytest.raises(SimulationError):
            simulator.simulate({A: 0.5}, {A: float("inf")}, {A: 1.0})

    def test_no_weighted_categories(self):
        with pytest.raises(SimulationError):
            MonteCarloSimulator(iterations=100).simulate({}, {}, {A: 0.0})


# ============================================================
# ENGINE TESTS
# ============================================================

class TestRiskCalculationEngine:
    """Tests for the full calculation."""

    def test_worked_example(self, engine, analyses):
        result = engine.calculate(analyses, weights=WEIGHTS)

        assert result.weighted_score == pytest.approx(0.56)
        assert result.final_score == pytest.approx(0.56)
        assert result.seconds_to_midnight == 634
        assert result.risk_level == RiskLevel.LOW
        assert result.trend.direction == TrendDirection.UNCERTAIN
        assert result.confidence_score == pytest.approx(0.8)

    def test_weights_must_sum_to_one(self, engine, analyses):
        with pytest.raises(ValidationError):
            engine.calculate(analyses, weights={A: 0.5, B: 0.3, C: 0.17})

    def test_missing_analysis(self, engine, analyses):
        del analyses[C]
        with pytest.raises(ValidationError):
            engine.calculate(analyses, weights=WEIGHTS)

    def test_misfiled_analysis(self, engine, analyses):
        analyses[C] = make_analysis(B, 0.2)
        with pytest.raises(ValidationError):
            engine.calculate(analyses, weights=WEIGHTS)

    def test_nan_score_rejected(self, engine, analyses):
        analyses[A] = make_analysis(A, float("nan"))
        with pytest.raises(ValidationError):
            engine.calculate(analyses, weights=WEIGHTS)

    def test_seed_makes_runs_reproducible(self, analyses):
        config = CalculationConfig(monte_carlo_iterations=1500, seed=11, workers=3)
        first = RiskCalculationEngine(config).calculate(analyses, weights=WEIGHTS)
        second = RiskCalculationEngine(config).calculate(analyses, weights=WEIGHTS)

        assert first.simulation == second.simulation
        assert first.to_dict() == second.to_dict()

    def test_baselines_shift_final_score(self, engine, analyses):
        baselines = {A: HistoricalBaseline(A, mean=0.2, variance=0.01, sample_count=50)}

        result = engine.calculate(analyses, weights=WEIGHTS, baselines=baselines)

        # A: 0.3 * 0.2 + 0.7 * 0.8 = 0.62
        assert result.posterior_scores[A] == pytest.approx(0.62)
        assert result.final_score == pytest.approx(0.5 * 0.62 + 0.12 + 0.04)
        assert result.weighted_score == pytest.approx(0.56)
        assert result.seconds_to_midnight == seconds_to_midnight(result.final_score)

    def test_history_drives_trend(self, engine, analyses):
        result = engine.calculate(analyses, weights=WEIGHTS, history=[700, 700, 700])

        assert result.trend.direction == TrendDirection.DECREASING
        assert result.trend.delta_from_previous == 634 - 700

    def test_overall_confidence_discounts_thin_categories(self):
        analyses = {
            A: make_analysis(A, 0.5, confidence=0.9, points=45),
            B: make_analysis(B, 0.5, confidence=0.1, points=1),
        }
        confidence = RiskCalculationEngine.overall_confidence(analyses, {A: 0.5, B: 0.5})

        # weights 0.5 * 0.9 and 0.5 * 1/6
        expected = (0.45 * 0.9 + (0.5 / 6) * 0.1) / (0.45 + 0.5 / 6)
        assert confidence == pytest.approx(expected)

    def test_empty_analyses_have_zero_confidence(self):
        analyses = {A: make_analysis(A, 0.0, confidence=0.0, points=0)}
        assert RiskCalculationEngine.overall_confidence(analyses, {A: 1.0}) == 0.0


class TestCalculationConfig:
    """Tests for calculation configuration."""

    def test_invalid_interval(self):
        with pytest.raises(ConfigurationError):
            CalculationConfig(confidence_interval=97)

    def test_from_dict_weights(self):
        config = CalculationConfig.from_dict({"weights": {"nuclear_arsenal_changes": 1.0}, "seed": 5})
        assert config.weights == {A: 1.0}
        assert config.seed == 5

    def test_from_dict_rejects_unknown(self):
        with pytest.raises(ConfigurationError):
            CalculationConfig.from_dict({"weights": {"astrology": 1.0}})
        with pytest.raises(ConfigurationError):
            CalculationConfig.from_dict({"iterations": 10})

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("RISK_SEED", "99")
        monkeypatch.setenv("RISK_MONTE_CARLO_ITERATIONS", "500")

        config = CalculationConfig.from_env()

        assert config.seed == 99
        assert config.monte_carlo_iterations == 500
