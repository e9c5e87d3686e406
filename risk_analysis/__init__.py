"""
Risk Analysis Package.

Per-category analysis of an aggregated snapshot against
historical baselines, with an optional AI collaborator.
"""

from risk_analysis.ai_client import (
    AIAnalysisClient,
    AIAnalysisResult,
    ClaudeAnalysisClient,
    ClaudeClientConfig,
    extract_json_object,
)
from risk_analysis.analyzer import RiskAnalyzer, baseline_adjust, baseline_trend, load_baselines
from risk_analysis.baseline import (
    BaselineStore,
    InMemoryBaselineStore,
    SqlBaselineStore,
    compute_baselines,
)
from risk_analysis.config import AnalysisConfig
from risk_analysis.types import (
    ConfidenceLevel,
    HistoricalBaseline,
    QualitativeIndicator,
    RiskAnalysis,
    RiskCategory,
    RiskFactor,
    RiskLevel,
    TrendDirection,
)


__all__ = [
    "AIAnalysisClient",
    "AIAnalysisResult",
    "ClaudeAnalysisClient",
    "ClaudeClientConfig",
    "extract_json_object",
    "RiskAnalyzer",
    "baseline_adjust",
    "baseline_trend",
    "load_baselines",
    "BaselineStore",
    "InMemoryBaselineStore",
    "SqlBaselineStore",
    "compute_baselines",
    "AnalysisConfig",
    "ConfidenceLevel",
    "HistoricalBaseline",
    "QualitativeIndicator",
    "RiskAnalysis",
    "RiskCategory",
    "RiskFactor",
    "RiskLevel",
    "TrendDirection",
]
