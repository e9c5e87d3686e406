#!/usr/bin/env python3
"""
Risk Assessment - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Runs one assessment cycle:

- Loads settings (YAML file or environment)
- Wires collectors, orchestrator, analyzer, engine and storage
- Runs the pipeline and logs the result
- Releases sessions and shuts the metrics registry down

============================================================
USAGE
============================================================
    SETTINGS_FILE=config/settings.yaml python app.py

Environment:
    LOG_LEVEL       logging level (default INFO)
    SETTINGS_FILE   YAML settings; environment-only when unset
    DATABASE_URL    SQLAlchemy URL for assessments and baselines

Exit codes: 0 assembled, 1 failed, 130 interrupted.

============================================================
"""

import asyncio
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from assessment import AssessmentPipeline, AssessmentSettings, SqlAssessmentRepository
from core.clock import ClockProtocol, SystemClock
from core.exceptions import RiskAssessmentError
from core.metrics import MetricsRegistry
from data_collection import CollectionOrchestrator
from data_sources import CollectorRegistry
from database import create_all_tables, create_database_engine, get_session_factory
from risk_analysis import ClaudeAnalysisClient, ClaudeClientConfig, RiskAnalyzer, SqlBaselineStore
from risk_calculation import RiskCalculationEngine


# ============================================================
# LOGGING
# ============================================================

def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ============================================================
# SETTINGS
# ============================================================

def load_settings() -> AssessmentSettings:
    path = os.getenv("SETTINGS_FILE")
    if path:
        return AssessmentSettings.from_yaml(path)
    return AssessmentSettings.from_env()


# ============================================================
# MAIN FUNCTION
# ============================================================

async def run_application(
    settings: AssessmentSettings,
    metrics: MetricsRegistry,
    clock: Optional[ClockProtocol] = None,
) -> int:
    """
    Run one assessment cycle.

    Returns:
        Exit code
    """
    logger = logging.getLogger(__name__)
    clock = clock or SystemClock()

    engine = create_database_engine(settings.database_url)
    create_all_tables(engine)
    session_factory = get_session_factory(engine)

    registry = CollectorRegistry.from_config(settings.sources)
    ai_config = ClaudeClientConfig.from_env()
    ai_client = ClaudeAnalysisClient(ai_config) if settings.ai_enabled and ai_config.api_key else None
    if ai_client is None:
        logger.info("AI analysis disabled")

    pipeline = AssessmentPipeline(
        collectors=registry.collectors(),
        orchestrator=CollectionOrchestrator(settings.collection, metrics=metrics, clock=clock),
        analyzer=RiskAnalyzer(settings.analysis, ai_client=ai_client, metrics=metrics, clock=clock),
        engine=RiskCalculationEngine(settings.calculation),
        repository=SqlAssessmentRepository(session_factory),
        baseline_store=SqlBaselineStore(session_factory),
        metrics=metrics,
        clock=clock,
        history_lookback_days=settings.history_lookback_days,
    )

    try:
        assessment = await pipeline.run()
    except RiskAssessmentError as e:
        logger.error(f"Assessment failed: {e.to_log_format()}")
        return 1
    finally:
        await registry.close()
        if ai_client is not None:
            await ai_client.close()
        engine.dispose()

    logger.info(
        f"Assessment {assessment.id}: {assessment.seconds_to_midnight}s to midnight, "
        f"level={assessment.risk_level.value}, confidence={assessment.confidence.value}, "
        f"trend={assessment.trend.value}, failed sources={len(assessment.failed_sources)}"
    )
    return 0


def main() -> int:
    """Main entry point."""
    load_dotenv()
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))
    logger = logging.getLogger(__name__)

    try:
        settings = load_settings()
    except RiskAssessmentError as e:
        logger.error(f"Invalid settings: {e.to_log_format()}")
        return 1

    metrics = MetricsRegistry()
    metrics.start()
    try:
        return asyncio.run(run_application(settings, metrics))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    finally:
        snapshot = metrics.shutdown()
        logger.debug(f"Metrics: {snapshot}")


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
