"""
Risk Calculation - Monte Carlo Simulation.

============================================================
PURPOSE
============================================================
Quantifies the uncertainty of the overall score.

Each category is sampled from a Beta distribution whose mean is
the category's posterior score and whose concentration grows with
the category's confidence (low confidence -> wide spread). The
draws are combined with the category weights.

============================================================
DETERMINISM
============================================================
Iterations are split across a thread pool. Every worker owns a
numpy Generator spawned from one SeedSequence, and results are
concatenated in worker order, so the same seed and worker count
always produce identical output.

============================================================
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np

from core.constants import DEFAULT_CONFIDENCE_INTERVAL
from core.exceptions import SimulationError
from risk_analysis.types import RiskCategory


logger = logging.getLogger(__name__)

REPORTED_PERCENTILES = (1, 5, 10, 50, 90, 95, 99)

# Keeps Beta parameters strictly positive at scores of exactly 0 or 1
_MEAN_EPSILON = 1e-6


# ============================================================
# SUMMARY
# ============================================================


@dataclass(frozen=True)
class SimulationSummary:
    """Distribution statistics of the simulated overall score."""

    iterations: int
    mean: float
    median: float
    mode: float
    std: float
    skewness: float
    kurtosis: float
    percentiles: Dict[int, float] = field(default_factory=dict, compare=False)
    confidence_interval: int = DEFAULT_CONFIDENCE_INTERVAL
    ci_lower: float = 0.0
    ci_upper: float = 0.0
    seed: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "iterations": self.iterations,
            "mean": self.mean,
            "median": self.median,
            "mode": self.mode,
            "std": self.std,
            "skewness": self.skewness,
            "kurtosis": self.kurtosis,
            "percentiles": {str(k): v for k, v in self.percentiles.items()},
            "confidence_interval": self.confidence_interval,
            "ci_lower": self.ci_lower,
            "ci_upper": self.ci_upper,
            "seed": self.seed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimulationSummary":
        return cls(
            iterations=data["iterations"],
            mean=data["mean"],
            median=data["median"],
            mode=data["mode"],
            std=data["std"],
            skewness=data["skewness"],
            kurtosis=data["kurtosis"],
            percentiles={int(k): v for k, v in (data.get("percentiles") or {}).items()},
            confidence_interval=data.get("confidence_interval", DEFAULT_CONFIDENCE_INTERVAL),
            ci_lower=data.get("ci_lower", 0.0),
            ci_upper=data.get("ci_upper", 0.0),
            seed=data.get("seed"),
        )


# ============================================================
# SIMULATOR
# ============================================================


class MonteCarloSimulator:
    """Weighted Beta-mixture simulation of the overall score."""

    def __init__(
        self,
        iterations: int = 10_000,
        seed: Optional[int] = None,
        workers: int = 4,
        confidence_interval: int = DEFAULT_CONFIDENCE_INTERVAL,
        min_concentration: float = 2.0,
        max_concentration: float = 200.0,
        mode_bins: int = 50,
    ) -> None:
        self.iterations = iterations
        self.seed = seed
        self.workers = max(1, min(workers, iterations))
        self.confidence_interval = confidence_interval
        self.min_concentration = min_concentration
        self.max_concentration = max_concentration
        self.mode_bins = mode_bins

    def beta_parameters(self, mean: float, confidence: float) -> tuple:
        """(alpha, beta) for a Beta with the given mean and confidence."""
        mean = min(1.0 - _MEAN_EPSILON, max(_MEAN_EPSILON, mean))
        concentration = self.min_concentration + (self.max_concentration - self.min_concentration) * confidence
        return mean * concentration, (1.0 - mean) * concentration

    def simulate(
        self,
        means: Mapping[RiskCategory, float],
        confidences: Mapping[RiskCategory, float],
        weights: Mapping[RiskCategory, float],
    ) -> SimulationSummary:
        """
        Raises:
            SimulationError: non-finite inputs or outputs
        """
        categories = [c for c in weights if weights[c] > 0]
        if not categories:
            raise SimulationError("No weighted categories to simulate")

        for c in categories:
            values = (means.get(c), confidences.get(c), weights[c])
            if any(v is None or not math.isfinite(v) for v in values):
                raise SimulationError(
                    f"Non-finite simulation input for {c.value}",
                    context={"category": c.value, "mean": values[0], "confidence": values[1]},
                )

        params = [self.beta_parameters(means[c], max(0.0, min(1.0, confidences[c]))) for c in categories]
        alpha = np.array([p[0] for p in params])
        beta = np.array([p[1] for p in params])
        weight_vector = np.array([weights[c] for c in categories])

        seed_sequence = np.random.SeedSequence(self.seed)
        child_seeds = seed_sequence.spawn(self.workers)
        chunk_sizes = self._chunk_sizes()

        def run_chunk(index: int) -> np.ndarray:
            rng = np.random.default_rng(child_seeds[index])
            draws = rng.beta(alpha, beta, size=(chunk_sizes[index], len(categories)))
            return draws @ weight_vector

        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            chunks: List[np.ndarray] = list(pool.map(run_chunk, range(self.workers)))

        samples = np.clip(np.concatenate(chunks), 0.0, 1.0)
        if not np.all(np.isfinite(samples)):
            raise SimulationError("Simulation produced non-finite samples")

        summary = self.summarize(samples)
        summary = replace(summary, seed=seed_sequence.entropy if self.seed is None else self.seed)
        logger.debug(
            f"Monte Carlo: {self.iterations} iterations on {self.workers} workers, "
            f"mean={summary.mean:.4f} std={summary.std:.4f}"
        )
        return summary

    def summarize(self, samples: np.ndarray) -> SimulationSummary:
        mean = float(np.mean(samples))
        std = float(np.std(samples))
        if std > 0:
            centered = samples - mean
            skewness = float(np.mean(centered ** 3) / std ** 3)
            kurtosis = float(np.mean(centered ** 4) / std ** 4 - 3.0)
        else:
            skewness = 0.0
            kurtosis = 0.0

        counts, edges = np.histogram(samples, bins=self.mode_bins, range=(0.0, 1.0))
        peak = int(np.argmax(counts))
        mode = float((edges[peak] + edges[peak + 1]) / 2)

        percentile_values = np.percentile(samples, REPORTED_PERCENTILES)
        percentiles = {p: float(v) for p, v in zip(REPORTED_PERCENTILES, percentile_values)}

        tail = (100 - self.confidence_interval) / 2
        ci_lower, ci_upper = (float(v) for v in np.percentile(samples, [tail, 100 - tail]))

        stats = (mean, std, skewness, kurtosis, ci_lower, ci_upper, *percentiles.values())
        if not all(math.isfinite(v) for v in stats):
            raise SimulationError("Simulation statistics are not finite")

        return SimulationSummary(
            iterations=int(samples.size),
            mean=mean,
            median=float(np.median(samples)),
            mode=mode,
            std=std,
            skewness=skewness,
            kurtosis=kurtosis,
            percentiles=percentiles,
            confidence_interval=self.confidence_interval,
            ci_lower=ci_lower,
            ci_upper=ci_upper,
        )

    def _chunk_sizes(self) -> Sequence[int]:
        base, remainder = divmod(self.iterations, self.workers)
        return [base + (1 if i < remainder else 0) for i in range(self.workers)]
