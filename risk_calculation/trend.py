"""
Risk Calculation - Trend.

Compares the current seconds-to-midnight with the average of the
look-back window.

- No history                      -> UNCERTAIN
- Window std > volatility limit   -> UNCERTAIN
- |delta| < deadband              -> STABLE
- otherwise                       -> sign of delta

delta = current - window mean, in seconds. A positive delta means
the clock moved away from midnight and is reported as INCREASING.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from risk_analysis.types import TrendDirection


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrendResult:
    direction: TrendDirection
    delta: Optional[float] = None
    magnitude: float = 0.0
    window_mean: Optional[float] = None
    window_std: Optional[float] = None
    delta_from_previous: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction.value,
            "delta": self.delta,
            "magnitude": self.magnitude,
            "window_mean": self.window_mean,
            "window_std": self.window_std,
            "delta_from_previous": self.delta_from_previous,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrendResult":
        return cls(
            direction=TrendDirection(data["direction"]),
            delta=data.get("delta"),
            magnitude=data.get("magnitude", 0.0),
            window_mean=data.get("window_mean"),
            window_std=data.get("window_std"),
            delta_from_previous=data.get("delta_from_previous"),
        )


class TrendAnalyzer:
    """Trend of seconds-to-midnight against a look-back window."""

    def __init__(
        self,
        window: int = 7,
        deadband: Optional[float] = None,
        volatility_threshold: float = 120.0,
    ) -> None:
        self._window = window
        self._deadband = deadband
        self._volatility_threshold = volatility_threshold

    def analyze(self, current_seconds: int, history: Sequence[int]) -> TrendResult:
        """
        Args:
            current_seconds: this run's setting
            history: previous settings, oldest first
        """
        if not history:
            return TrendResult(direction=TrendDirection.UNCERTAIN)

        window = [float(s) for s in history[-self._window:]]
        mean = sum(window) / len(window)
        std = math.sqrt(sum((s - mean) ** 2 for s in window) / len(window))
        delta = current_seconds - mean
        delta_from_previous = int(current_seconds - history[-1])

        def result(direction: TrendDirection) -> TrendResult:
            return TrendResult(
                direction=direction,
                delta=delta,
                magnitude=abs(delta),
                window_mean=mean,
                window_std=std,
                delta_from_previous=delta_from_previous,
            )

        if std > self._volatility_threshold:
            logger.info(f"Trend uncertain: window std {std:.1f}s above {self._volatility_threshold:.1f}s")
            return result(TrendDirection.UNCERTAIN)

        deadband = self._deadband if self._deadband is not None else std
        if delta == 0 or abs(delta) < deadband:
            return result(TrendDirection.STABLE)
        return result(TrendDirection.INCREASING if delta > 0 else TrendDirection.DECREASING)
