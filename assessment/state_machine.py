"""
Assessment - Phase State Machine.

============================================================
PURPOSE
============================================================
Tracks one assessment run through its phases.

STATE MACHINE:

    IDLE ──► COLLECTING ──► ANALYZING ──► CALCULATING ──► ASSEMBLED
               │               │              │
               └───────────────┴──────────────┴──────► FAILED

    IDLE may also go straight to FAILED.

INVARIANTS:
- ASSEMBLED and FAILED are terminal
- Every transition is validated, logged and recorded
- Partial source failure never forces FAILED

============================================================
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from core.clock import ClockProtocol, SystemClock
from core.exceptions import StateTransitionError
from assessment.types import AssessmentPhase


logger = logging.getLogger(__name__)


# ============================================================
# STATE TRANSITION RULES
# ============================================================

VALID_TRANSITIONS: Dict[AssessmentPhase, Set[AssessmentPhase]] = {
    AssessmentPhase.IDLE: {
        AssessmentPhase.COLLECTING,
        AssessmentPhase.FAILED,
    },
    AssessmentPhase.COLLECTING: {
        AssessmentPhase.ANALYZING,
        AssessmentPhase.FAILED,
    },
    AssessmentPhase.ANALYZING: {
        AssessmentPhase.CALCULATING,
        AssessmentPhase.FAILED,
    },
    AssessmentPhase.CALCULATING: {
        AssessmentPhase.ASSEMBLED,
        AssessmentPhase.FAILED,
    },
    # Terminal states - no transitions out
    AssessmentPhase.ASSEMBLED: set(),
    AssessmentPhase.FAILED: set(),
}


# ============================================================
# STATE TRANSITION EVENT
# ============================================================

@dataclass(frozen=True)
class PhaseTransition:
    """One recorded transition."""

    run_id: str
    from_phase: AssessmentPhase
    to_phase: AssessmentPhase
    timestamp: datetime
    reason: str = ""
    details: Dict[str, Any] = field(default_factory=dict, compare=False)


# ============================================================
# ASSESSMENT STATE MACHINE
# ============================================================

class AssessmentStateMachine:
    """State machine for one assessment run."""

    def __init__(self, run_id: str, clock: Optional[ClockProtocol] = None):
        self._run_id = run_id
        self._clock = clock or SystemClock()
        self._phase = AssessmentPhase.IDLE
        self._history: List[PhaseTransition] = []

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def phase(self) -> AssessmentPhase:
        return self._phase

    @property
    def history(self) -> List[PhaseTransition]:
        """Get transition history."""
        return list(self._history)

    def is_terminal(self) -> bool:
        return self._phase.is_terminal()

    def can_transition_to(self, target: AssessmentPhase) -> tuple[bool, str]:
        if target in VALID_TRANSITIONS.get(self._phase, set()):
            return True, "Valid transition"
        if self._phase.is_terminal():
            return False, f"Cannot transition from terminal phase {self._phase.value}"
        return False, f"Invalid transition: {self._phase.value} -> {target.value}"

    def transition_to(
        self,
        target: AssessmentPhase,
        reason: str = "",
        details: Optional[Dict[str, Any]] = None,
    ) -> PhaseTransition:
        """
        Move to a new phase.

        Raises:
            StateTransitionError: If the transition is not allowed
        """
        allowed, why = self.can_transition_to(target)
        if not allowed:
            raise StateTransitionError(
                f"Run {self._run_id}: {why}",
                from_state=self._phase.value,
                to_state=target.value,
            )

        event = PhaseTransition(
            run_id=self._run_id,
            from_phase=self._phase,
            to_phase=target,
            timestamp=self._clock.now(),
            reason=reason,
            details=details or {},
        )
        self._phase = target
        self._history.append(event)

        log = logger.warning if target == AssessmentPhase.FAILED else logger.info
        log(f"Run {self._run_id}: {event.from_phase.value} -> {event.to_phase.value} ({reason})")
        return event

    # --------------------------------------------------------
    # CONVENIENCE METHODS
    # --------------------------------------------------------

    def mark_failed(self, reason: str, error: Optional[BaseException] = None) -> PhaseTransition:
        details = {"error_type": type(error).__name__, "error": str(error)} if error else {}
        return self.transition_to(AssessmentPhase.FAILED, reason, details)
