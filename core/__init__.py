"""
Core Module Package.

This package contains the core infrastructure components
that all other modules depend on.

Components:
- clock: Unified time abstraction
- exceptions: Custom exception hierarchy
- metrics: Process-scoped metrics registry
- constants: System-wide constants
"""

from core.clock import ClockProtocol, MockClock, SystemClock
from core.exceptions import (
    CollectionError,
    ConfigurationError,
    DependencyError,
    QuorumError,
    RiskAssessmentError,
    SimulationError,
    StateTransitionError,
    ValidationError,
)
from core.metrics import MetricsRegistry
