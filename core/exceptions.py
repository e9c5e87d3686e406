"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the exception taxonomy for the risk assessment core.

- Provides clear exception hierarchy
- Separates per-source (non-fatal) from run-level (fatal) errors
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
RiskAssessmentError (base)
├── ConfigurationError
├── CollectionError            (per source, non-fatal)
├── QuorumError                (fatal)
├── ValidationError            (fatal)
├── SimulationError            (fatal)
├── DependencyError            (fatal unless optional)
└── StateTransitionError

Collector-level subclasses of CollectionError live in
data_sources.exceptions.

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, the run cannot produce a result."""

    CRITICAL = "critical"
    """Critical issue, requires immediate action."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Error can be absorbed (e.g. a source is dropped)."""

    TRANSIENT = "transient"
    """Temporary error, retry may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error for this run."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class RiskAssessmentError(Exception):
    """
    Base exception for all risk assessment errors.

    All exceptions carry:
    - severity: for alerting
    - context: for debugging
    - classification: for error handling decisions
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_fatal(self) -> bool:
        """Check if the error must stop the current run."""
        return self.classification == ErrorClassification.NON_RECOVERABLE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        if ctx_str:
            line += f" | {ctx_str}"
        return line


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(RiskAssessmentError):
    """Error in configuration."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


# ============================================================
# COLLECTION ERRORS
# ============================================================

class CollectionError(RiskAssessmentError):
    """
    A single source failed to produce data.

    Never fatal on its own: the source is excluded and recorded
    in the snapshot's failed sources.
    """

    default_severity = Severity.LOW
    default_classification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        transient: bool = True,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if source_name:
            context["source_name"] = source_name

        if "classification" not in kwargs and transient:
            kwargs["classification"] = ErrorClassification.TRANSIENT

        super().__init__(message, context=context, **kwargs)
        self.source_name = source_name
        self.transient = transient


class QuorumError(RiskAssessmentError):
    """Too few sources succeeded to continue past collection."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        succeeded: int = 0,
        required: int = 1,
        failed_sources: Optional[List[str]] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        context["succeeded"] = succeeded
        context["required"] = required
        context["failed_sources"] = list(failed_sources or [])

        super().__init__(message, context=context, **kwargs)
        self.succeeded = succeeded
        self.required = required
        self.failed_sources = list(failed_sources or [])


class ValidationError(RiskAssessmentError):
    """Invalid weights or input scores."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)[:200]

        super().__init__(message, context=context, **kwargs)
        self.field = field
        self.value = value


class SimulationError(RiskAssessmentError):
    """Monte Carlo sampling could not produce a usable distribution."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE


class DependencyError(RiskAssessmentError):
    """
    The baseline store or the AI collaborator is unreachable.

    Callers decide whether the dependency is optional; the error
    itself is fatal unless caught by such a caller.
    """

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        dependency: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if dependency:
            context["dependency"] = dependency

        super().__init__(message, context=context, **kwargs)
        self.dependency = dependency


class StateTransitionError(RiskAssessmentError):
    """Invalid phase transition."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if from_state:
            context["from_state"] = from_state
        if to_state:
            context["to_state"] = to_state

        super().__init__(message, context=context, **kwargs)


__all__ = [
    "Severity",
    "ErrorClassification",
    "RiskAssessmentError",
    "ConfigurationError",
    "CollectionError",
    "QuorumError",
    "ValidationError",
    "SimulationError",
    "DependencyError",
    "StateTransitionError",
]
