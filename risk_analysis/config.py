"""
Risk Analysis - Configuration.

============================================================
PURPOSE
============================================================
Tunable parameters of the category analyzers.

- Which data categories and keywords feed each risk category
- Baseline sensitivity
- Volume, diversity and confidence calibration
- Optional-dependency handling

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from core.constants import ESCALATION_KEYWORDS
from core.exceptions import ConfigurationError
from data_sources.models import DataCategory
from risk_analysis.types import RiskCategory


# ============================================================
# CATEGORY MAPPINGS
# ============================================================


DEFAULT_CATEGORY_SOURCES: Dict[RiskCategory, Tuple[DataCategory, ...]] = {
    RiskCategory.NUCLEAR_ARSENAL_CHANGES: (DataCategory.NUCLEAR_ARSENAL,),
    RiskCategory.ARMS_CONTROL_BREAKDOWN: (DataCategory.TREATY_COMPLIANCE,),
    RiskCategory.REGIONAL_CONFLICTS: (DataCategory.REGIONAL_CONFLICT, DataCategory.MILITARY_EXERCISES),
    RiskCategory.LEADERSHIP_INSTABILITY: (DataCategory.LEADERSHIP_STATEMENTS,),
    RiskCategory.TECHNICAL_INCIDENTS: (DataCategory.TECHNICAL_INCIDENT,),
    RiskCategory.COMMUNICATION_FAILURES: (DataCategory.DIPLOMATIC_RELATIONS,),
    RiskCategory.EMERGING_TECH_RISKS: (),
    RiskCategory.ECONOMIC_PRESSURE: (),
}

DEFAULT_CATEGORY_KEYWORDS: Dict[RiskCategory, Tuple[str, ...]] = {
    RiskCategory.NUCLEAR_ARSENAL_CHANGES: (
        "warhead", "icbm", "nuclear weapons", "missile test", "plutonium",
        "uranium enrichment", "nuclear submarine", "strategic forces", "tactical nuclear",
        "nuclear test",
    ),
    RiskCategory.ARMS_CONTROL_BREAKDOWN: (
        "arms control", "start treaty", "new start", "inf treaty", "non-proliferation",
        "npt", "ctbt", "inspections", "treaty withdrawal",
    ),
    RiskCategory.REGIONAL_CONFLICTS: (
        "russia ukraine", "taiwan", "india pakistan", "middle east conflict", "north korea",
        "military exercises", "airspace violation", "invasion", "nato",
    ),
    RiskCategory.LEADERSHIP_INSTABILITY: (
        "nuclear doctrine", "coup", "succession", "ultimatum", "nuclear rhetoric",
        "state of emergency", "martial law",
    ),
    RiskCategory.TECHNICAL_INCIDENTS: (
        "false alarm", "malfunction", "early warning", "radiation leak", "reactor",
        "nuclear accident", "launch error",
    ),
    RiskCategory.COMMUNICATION_FAILURES: (
        "diplomatic crisis", "hotline", "expelled", "ambassador recalled", "talks collapse",
        "severed ties", "embassy closed",
    ),
    RiskCategory.EMERGING_TECH_RISKS: (
        "hypersonic", "cyber attack", "artificial intelligence", "autonomous weapons",
        "space weapons", "anti-satellite", "drone swarm",
    ),
    RiskCategory.ECONOMIC_PRESSURE: (
        "sanctions", "embargo", "trade war", "tariffs", "economic crisis", "energy crisis",
    ),
}


# ============================================================
# ANALYSIS CONFIG
# ============================================================


@dataclass
class AnalysisConfig:
    """Configuration of the category analyzers."""

    category_sources: Dict[RiskCategory, Tuple[DataCategory, ...]] = field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_SOURCES)
    )
    category_keywords: Dict[RiskCategory, Tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_KEYWORDS)
    )
    escalation_keywords: Tuple[str, ...] = ESCALATION_KEYWORDS

    # Data volume
    min_data_points: int = 3
    low_volume_confidence_ceiling: float = 0.5
    volume_saturation: int = 20
    confidence_volume_scale: float = 5.0
    source_diversity_saturation: int = 5

    # Indicator scaling
    escalation_saturation: int = 3
    relevance_saturation: int = 3

    # Baseline
    baseline_sensitivity: float = 0.25

    # Confidence blend (indicator, diversity, volume)
    confidence_blend: Tuple[float, float, float] = (0.6, 0.2, 0.2)

    # Optional dependencies
    ai_required: bool = False
    baseline_required: bool = False
    dependency_penalty: float = 0.8

    def __post_init__(self) -> None:
        if self.min_data_points < 0:
            raise ConfigurationError("min_data_points must be non-negative", config_key="min_data_points")
        if not 0.0 <= self.low_volume_confidence_ceiling <= 1.0:
            raise ConfigurationError(
                "low_volume_confidence_ceiling must be within [0, 1]",
                config_key="low_volume_confidence_ceiling",
                actual_value=self.low_volume_confidence_ceiling,
            )
        if not 0.0 <= self.dependency_penalty <= 1.0:
            raise ConfigurationError(
                "dependency_penalty must be within [0, 1]",
                config_key="dependency_penalty",
                actual_value=self.dependency_penalty,
            )
        if abs(sum(self.confidence_blend) - 1.0) > 0.001:
            raise ConfigurationError(
                "confidence_blend must sum to 1.0",
                config_key="confidence_blend",
                actual_value=self.confidence_blend,
            )
        if self.volume_saturation < 1 or self.source_diversity_saturation < 1:
            raise ConfigurationError("saturation values must be at least 1", config_key="volume_saturation")

    @classmethod
    def from_env(cls) -> "AnalysisConfig":
        """
        Environment variables:
        - ANALYSIS_MIN_DATA_POINTS
        - ANALYSIS_BASELINE_SENSITIVITY
        - ANALYSIS_AI_REQUIRED
        """
        config = cls()
        if os.getenv("ANALYSIS_MIN_DATA_POINTS"):
            config.min_data_points = int(os.getenv("ANALYSIS_MIN_DATA_POINTS"))
        if os.getenv("ANALYSIS_BASELINE_SENSITIVITY"):
            config.baseline_sensitivity = float(os.getenv("ANALYSIS_BASELINE_SENSITIVITY"))
        if os.getenv("ANALYSIS_AI_REQUIRED"):
            config.ai_required = os.getenv("ANALYSIS_AI_REQUIRED", "").lower() in ("1", "true", "yes")
        return config

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]] = None) -> "AnalysisConfig":
        data = dict(data or {})
        kwargs: Dict[str, Any] = {}

        for key in (
            "min_data_points", "low_volume_confidence_ceiling", "volume_saturation",
            "confidence_volume_scale", "source_diversity_saturation", "escalation_saturation",
            "relevance_saturation", "baseline_sensitivity", "ai_required", "baseline_required",
            "dependency_penalty",
        ):
            if key in data:
                kwargs[key] = data.pop(key)

        if "confidence_blend" in data:
            kwargs["confidence_blend"] = tuple(data.pop("confidence_blend"))

        if "category_keywords" in data:
            keywords = dict(DEFAULT_CATEGORY_KEYWORDS)
            for name, words in data.pop("category_keywords").items():
                keywords[_category(name)] = tuple(w.lower() for w in words)
            kwargs["category_keywords"] = keywords

        if "category_sources" in data:
            sources = dict(DEFAULT_CATEGORY_SOURCES)
            for name, values in data.pop("category_sources").items():
                try:
                    sources[_category(name)] = tuple(DataCategory(v) for v in values)
                except ValueError as e:
                    raise ConfigurationError(
                        f"Unknown data category in category_sources.{name}",
                        config_key="category_sources",
                        actual_value=values,
                        cause=e,
                    ) from e
            kwargs["category_sources"] = sources

        if data:
            raise ConfigurationError(
                f"Unknown analysis settings: {', '.join(sorted(data))}",
                config_key="analysis",
            )
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_data_points": self.min_data_points,
            "low_volume_confidence_ceiling": self.low_volume_confidence_ceiling,
            "volume_saturation": self.volume_saturation,
            "source_diversity_saturation": self.source_diversity_saturation,
            "baseline_sensitivity": self.baseline_sensitivity,
            "confidence_blend": list(self.confidence_blend),
            "ai_required": self.ai_required,
            "baseline_required": self.baseline_required,
            "dependency_penalty": self.dependency_penalty,
        }


def _category(name: str) -> RiskCategory:
    try:
        return RiskCategory(name)
    except ValueError as e:
        raise ConfigurationError(f"Unknown risk category '{name}'", actual_value=name, cause=e) from e
