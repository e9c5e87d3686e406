"""
Assessment - Settings.

============================================================
PURPOSE
============================================================
Top-level settings of one deployment, bundling the per-subsystem
configurations.

Configuration can be loaded from:
- Environment variables (after .env via python-dotenv)
- A YAML settings file with the sections:
    collection, sources, analysis, calculation, database, assessment

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import load_dotenv

from core.exceptions import ConfigurationError
from data_collection.config import CollectionConfig
from risk_analysis.config import AnalysisConfig
from risk_calculation.config import CalculationConfig


logger = logging.getLogger(__name__)

_SECTIONS = {"collection", "sources", "analysis", "calculation", "database", "assessment"}


@dataclass
class AssessmentSettings:
    """Everything one assessment run needs to be wired."""

    collection: CollectionConfig = field(default_factory=CollectionConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    calculation: CalculationConfig = field(default_factory=CalculationConfig)
    sources: List[Dict[str, Any]] = field(default_factory=list)
    database_url: Optional[str] = None
    history_lookback_days: int = 30
    ai_enabled: bool = True

    @classmethod
    def from_env(cls) -> "AssessmentSettings":
        """
        Environment variables (plus those of each subsystem config):
        - DATABASE_URL
        - ASSESSMENT_HISTORY_DAYS
        - ASSESSMENT_AI_ENABLED
        """
        load_dotenv()
        settings = cls(
            collection=CollectionConfig.from_env(),
            analysis=AnalysisConfig.from_env(),
            calculation=CalculationConfig.from_env(),
            database_url=os.getenv("DATABASE_URL"),
        )
        if os.getenv("ASSESSMENT_HISTORY_DAYS"):
            settings.history_lookback_days = int(os.getenv("ASSESSMENT_HISTORY_DAYS"))
        if os.getenv("ASSESSMENT_AI_ENABLED"):
            settings.ai_enabled = os.getenv("ASSESSMENT_AI_ENABLED", "").lower() in ("1", "true", "yes")
        return settings

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "AssessmentSettings":
        """
        Load settings from a YAML file.

        Raises:
            ConfigurationError: unreadable file or invalid settings
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load settings from {path}: {e}", cause=e) from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings file {path} must contain a mapping")
        settings = cls.from_dict(data)
        logger.info(f"Loaded settings from {path} ({len(settings.sources)} sources)")
        return settings

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssessmentSettings":
        unknown = set(data) - _SECTIONS
        if unknown:
            raise ConfigurationError(f"Unknown settings sections: {', '.join(sorted(unknown))}")

        sources = list(data.get("sources") or [])
        assessment = dict(data.get("assessment") or {})
        database = dict(data.get("database") or {})

        return cls(
            collection=CollectionConfig.from_dict(data.get("collection"), sources),
            analysis=AnalysisConfig.from_dict(data.get("analysis")),
            calculation=CalculationConfig.from_dict(data.get("calculation")),
            sources=sources,
            database_url=database.get("url") or os.getenv("DATABASE_URL"),
            history_lookback_days=int(assessment.get("history_lookback_days", 30)),
            ai_enabled=bool(assessment.get("ai_enabled", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection": self.collection.to_dict(),
            "analysis": self.analysis.to_dict(),
            "calculation": self.calculation.to_dict(),
            "sources": [dict(s) for s in self.sources],
            "database": {"url": self.database_url},
            "assessment": {
                "history_lookback_days": self.history_lookback_days,
                "ai_enabled": self.ai_enabled,
            },
        }
