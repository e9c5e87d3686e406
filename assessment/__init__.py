"""
Assessment Package.

Assembly, phase tracking, persistence and the end-to-end pipeline.
"""

from assessment.assembler import AssessmentAssembler, factor_sort_key
from assessment.config import AssessmentSettings
from assessment.pipeline import AssessmentPipeline
from assessment.repository import (
    AssessmentRepository,
    InMemoryAssessmentRepository,
    SqlAssessmentRepository,
)
from assessment.state_machine import VALID_TRANSITIONS, AssessmentStateMachine, PhaseTransition
from assessment.types import AssessmentPhase, RiskAssessment


__all__ = [
    "AssessmentAssembler",
    "factor_sort_key",
    "AssessmentSettings",
    "AssessmentPipeline",
    "AssessmentRepository",
    "InMemoryAssessmentRepository",
    "SqlAssessmentRepository",
    "VALID_TRANSITIONS",
    "AssessmentStateMachine",
    "PhaseTransition",
    "AssessmentPhase",
    "RiskAssessment",
]
