"""
Risk Calculation - Configuration.

============================================================
PURPOSE
============================================================
Parameters of the calculation engine.

- Category weights (validated by the engine, not here, so that
  bad weights fail a run with ValidationError)
- Bayesian prior weight
- Monte Carlo iterations, seed, workers and confidence interval
- Trend look-back window, deadband and volatility threshold

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from core.constants import (
    DEFAULT_CONFIDENCE_INTERVAL,
    DEFAULT_MONTE_CARLO_ITERATIONS,
    DEFAULT_PRIOR_WEIGHT,
    SUPPORTED_CONFIDENCE_INTERVALS,
)
from core.exceptions import ConfigurationError
from risk_analysis.types import RiskCategory


@dataclass
class CalculationConfig:
    """Configuration of the risk calculation engine."""

    weights: Dict[RiskCategory, float] = field(default_factory=RiskCategory.default_weights)

    # Bayesian blending
    prior_weight: float = DEFAULT_PRIOR_WEIGHT

    # Monte Carlo
    monte_carlo_iterations: int = DEFAULT_MONTE_CARLO_ITERATIONS
    seed: Optional[int] = None
    workers: int = 4
    confidence_interval: int = DEFAULT_CONFIDENCE_INTERVAL
    min_concentration: float = 2.0      # Beta concentration at confidence 0
    max_concentration: float = 200.0    # Beta concentration at confidence 1
    mode_bins: int = 50

    # Trend (seconds to midnight)
    trend_window: int = 7
    trend_deadband: Optional[float] = None   # None: one window std
    trend_volatility_threshold: float = 120.0

    # Overall confidence
    confidence_volume_scale: float = 5.0

    def __post_init__(self) -> None:
        if self.monte_carlo_iterations < 1:
            raise ConfigurationError(
                "monte_carlo_iterations must be at least 1",
                config_key="monte_carlo_iterations",
                actual_value=self.monte_carlo_iterations,
            )
        if self.confidence_interval not in SUPPORTED_CONFIDENCE_INTERVALS:
            raise ConfigurationError(
                f"confidence_interval must be one of {SUPPORTED_CONFIDENCE_INTERVALS}",
                config_key="confidence_interval",
                actual_value=self.confidence_interval,
            )
        if not 0.0 <= self.prior_weight <= 1.0:
            raise ConfigurationError(
                "prior_weight must be within [0, 1]",
                config_key="prior_weight",
                actual_value=self.prior_weight,
            )
        if self.workers < 1:
            raise ConfigurationError("workers must be at least 1", config_key="workers", actual_value=self.workers)
        if not 0 < self.min_concentration <= self.max_concentration:
            raise ConfigurationError(
                "concentration bounds must satisfy 0 < min <= max",
                config_key="min_concentration",
            )
        if self.trend_window < 1:
            raise ConfigurationError("trend_window must be at least 1", config_key="trend_window")
        if self.trend_deadband is not None and self.trend_deadband < 0:
            raise ConfigurationError(
                "trend_deadband must be non-negative",
                config_key="trend_deadband",
                actual_value=self.trend_deadband,
            )

    @classmethod
    def from_env(cls) -> "CalculationConfig":
        """
        Environment variables:
        - RISK_MONTE_CARLO_ITERATIONS
        - RISK_SEED
        - RISK_WORKERS
        - RISK_CONFIDENCE_INTERVAL
        - RISK_PRIOR_WEIGHT
        - RISK_TREND_DEADBAND
        """
        kwargs: Dict[str, Any] = {}
        if os.getenv("RISK_MONTE_CARLO_ITERATIONS"):
            kwargs["monte_carlo_iterations"] = int(os.getenv("RISK_MONTE_CARLO_ITERATIONS"))
        if os.getenv("RISK_SEED"):
            kwargs["seed"] = int(os.getenv("RISK_SEED"))
        if os.getenv("RISK_WORKERS"):
            kwargs["workers"] = int(os.getenv("RISK_WORKERS"))
        if os.getenv("RISK_CONFIDENCE_INTERVAL"):
            kwargs["confidence_interval"] = int(os.getenv("RISK_CONFIDENCE_INTERVAL"))
        if os.getenv("RISK_PRIOR_WEIGHT"):
            kwargs["prior_weight"] = float(os.getenv("RISK_PRIOR_WEIGHT"))
        if os.getenv("RISK_TREND_DEADBAND"):
            kwargs["trend_deadband"] = float(os.getenv("RISK_TREND_DEADBAND"))
        return cls(**kwargs)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]] = None) -> "CalculationConfig":
        data = dict(data or {})
        kwargs: Dict[str, Any] = {}

        if "weights" in data:
            weights = {}
            for name, value in data.pop("weights").items():
                try:
                    weights[RiskCategory(name)] = float(value)
                except ValueError as e:
                    raise ConfigurationError(
                        f"Unknown risk category '{name}' in weights",
                        config_key="weights",
                        actual_value=name,
                        cause=e,
                    ) from e
            kwargs["weights"] = weights

        for key in (
            "prior_weight", "monte_carlo_iterations", "seed", "workers", "confidence_interval",
            "min_concentration", "max_concentration", "mode_bins", "trend_window",
            "trend_deadband", "trend_volatility_threshold", "confidence_volume_scale",
        ):
            if key in data:
                kwargs[key] = data.pop(key)

        if data:
            raise ConfigurationError(
                f"Unknown calculation settings: {', '.join(sorted(data))}",
                config_key="calculation",
            )
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weights": {c.value: w for c, w in self.weights.items()},
            "prior_weight": self.prior_weight,
            "monte_carlo_iterations": self.monte_carlo_iterations,
            "seed": self.seed,
            "workers": self.workers,
            "confidence_interval": self.confidence_interval,
            "trend_window": self.trend_window,
            "trend_deadband": self.trend_deadband,
            "trend_volatility_threshold": self.trend_volatility_threshold,
        }
