"""
Assessment - Pipeline.

============================================================
PURPOSE
============================================================
Drives one assessment run end to end.

FLOW:
    IDLE
      │  collect_all(collectors)            QuorumError -> FAILED
      ▼
    COLLECTING
      │  read baselines once, analyze all   DependencyError -> FAILED
      ▼
    ANALYZING
      │  calculate against look-back window ValidationError,
      ▼                                     SimulationError -> FAILED
    CALCULATING
      │  assemble, store
      ▼
    ASSEMBLED

Fatal errors move the run to FAILED and propagate unchanged.
Partial source failure only lowers confidence.

============================================================
"""

import logging
import time
from datetime import timedelta
from typing import List, Optional, Sequence
from uuid import uuid4

from core.clock import ClockProtocol, SystemClock
from core.metrics import MetricsRegistry
from data_collection.orchestrator import CollectionOrchestrator
from data_sources.base import Collector
from risk_analysis.analyzer import RiskAnalyzer, load_baselines
from risk_analysis.baseline import BaselineStore, InMemoryBaselineStore
from risk_analysis.types import RiskCategory
from risk_calculation.engine import RiskCalculationEngine
from assessment.assembler import AssessmentAssembler
from assessment.repository import AssessmentRepository, InMemoryAssessmentRepository
from assessment.state_machine import AssessmentStateMachine
from assessment.types import AssessmentPhase, RiskAssessment


logger = logging.getLogger(__name__)


class AssessmentPipeline:
    """One collector set, one analyzer, one engine, one repository."""

    def __init__(
        self,
        collectors: Sequence[Collector],
        orchestrator: CollectionOrchestrator,
        analyzer: RiskAnalyzer,
        engine: RiskCalculationEngine,
        repository: Optional[AssessmentRepository] = None,
        baseline_store: Optional[BaselineStore] = None,
        assembler: Optional[AssessmentAssembler] = None,
        metrics: Optional[MetricsRegistry] = None,
        clock: Optional[ClockProtocol] = None,
        history_lookback_days: int = 30,
    ) -> None:
        self._collectors = list(collectors)
        self._orchestrator = orchestrator
        self._analyzer = analyzer
        self._engine = engine
        self._repository = repository or InMemoryAssessmentRepository()
        self._baseline_store = baseline_store or InMemoryBaselineStore()
        self._clock = clock or SystemClock()
        self._assembler = assembler or AssessmentAssembler(self._clock)
        self._metrics = metrics or MetricsRegistry()
        self._history_lookback = timedelta(days=history_lookback_days)
        self._state_machine: Optional[AssessmentStateMachine] = None

    @property
    def state_machine(self) -> Optional[AssessmentStateMachine]:
        """State machine of the latest run."""
        return self._state_machine

    @property
    def repository(self) -> AssessmentRepository:
        return self._repository

    async def run(self) -> RiskAssessment:
        machine = AssessmentStateMachine(run_id=str(uuid4()), clock=self._clock)
        self._state_machine = machine
        started = time.monotonic()

        try:
            machine.transition_to(AssessmentPhase.COLLECTING, f"{len(self._collectors)} collectors")
            aggregated = await self._orchestrator.collect_all(self._collectors)

            machine.transition_to(
                AssessmentPhase.ANALYZING,
                f"{len(aggregated)} data points from {aggregated.sources_succeeded} sources",
                details={"failed_sources": dict(aggregated.failed_sources)},
            )
            categories = self._categories()
            baselines, degraded = await load_baselines(
                self._baseline_store, categories, required=self._analyzer.config.baseline_required
            )
            analyses = await self._analyzer.analyze_with_baselines(categories, aggregated, baselines, degraded)

            machine.transition_to(AssessmentPhase.CALCULATING, f"{len(analyses)} category analyses")
            history = await self._seconds_history()
            result = self._engine.calculate(analyses, baselines=baselines, history=history)

            assessment = self._assembler.assemble(
                result,
                analyses.values(),
                aggregated_data=aggregated,
                degraded_dependencies=degraded,
                extra_metadata={"run_id": machine.run_id},
            )
            await self._repository.store(assessment)
            machine.transition_to(AssessmentPhase.ASSEMBLED, f"assessment {assessment.id}")

        except BaseException as e:
            # includes CancelledError: a cancelled run still ends FAILED
            self._metrics.increment("assessment.failed", labels={"phase": machine.phase.value})
            if not machine.is_terminal():
                machine.mark_failed(f"{type(e).__name__}: {e}", e)
            raise

        self._metrics.increment("assessment.assembled")
        self._metrics.observe("assessment.duration_ms", (time.monotonic() - started) * 1000)
        return assessment

    def _categories(self) -> List[RiskCategory]:
        return [c for c in RiskCategory if self._engine.config.weights.get(c, 0.0) > 0]

    async def _seconds_history(self) -> List[int]:
        end = self._clock.now()
        previous = await self._repository.query_history(end - self._history_lookback, end)
        return [a.seconds_to_midnight for a in previous]
