"""
Risk Calculation Package.

Weighted aggregation, Bayesian blending, Monte Carlo uncertainty,
seconds-to-midnight projection and trend.
"""

from risk_calculation.config import CalculationConfig
from risk_calculation.engine import (
    RiskCalculationEngine,
    RiskCalculationResult,
    bayesian_posterior,
    validate_analyses,
    validate_weights,
    weighted_score,
)
from risk_calculation.monte_carlo import MonteCarloSimulator, SimulationSummary
from risk_calculation.projection import score_for_seconds, seconds_to_midnight
from risk_calculation.trend import TrendAnalyzer, TrendResult


__all__ = [
    "CalculationConfig",
    "RiskCalculationEngine",
    "RiskCalculationResult",
    "bayesian_posterior",
    "validate_analyses",
    "validate_weights",
    "weighted_score",
    "MonteCarloSimulator",
    "SimulationSummary",
    "score_for_seconds",
    "seconds_to_midnight",
    "TrendAnalyzer",
    "TrendResult",
]
