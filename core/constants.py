"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines all system-wide constants.

- Provides single source of truth for magic values
- Documents the meaning of each constant
- Prevents hardcoding throughout codebase

============================================================
DESIGN PRINCIPLES
============================================================
- All constants are immutable
- Related constants are grouped
- No business logic here

============================================================
"""

from typing import Tuple


# ============================================================
# DOOMSDAY CLOCK
# ============================================================

MAX_SECONDS_TO_MIDNIGHT: int = 1440
"""Score 0.0 maps to 24 minutes before midnight."""

FURTHEST_SECONDS_TO_MIDNIGHT: int = 1020
"""Furthest published setting (17 minutes, 1991)."""

CLOSEST_SECONDS_TO_MIDNIGHT: int = 89
"""Closest published setting (89 seconds, 2025)."""

# (risk score, seconds) anchors for the projection curve, ascending by score
SECONDS_CURVE_ANCHORS: Tuple[Tuple[float, int], ...] = (
    (0.0, MAX_SECONDS_TO_MIDNIGHT),
    (1.0 - FURTHEST_SECONDS_TO_MIDNIGHT / MAX_SECONDS_TO_MIDNIGHT, FURTHEST_SECONDS_TO_MIDNIGHT),
    (1.0 - CLOSEST_SECONDS_TO_MIDNIGHT / MAX_SECONDS_TO_MIDNIGHT, CLOSEST_SECONDS_TO_MIDNIGHT),
    (1.0, 0),
)


# ============================================================
# RISK LEVEL THRESHOLDS (seconds to midnight, inclusive)
# ============================================================

CRITICAL_THRESHOLD_SECONDS: int = 100
SEVERE_THRESHOLD_SECONDS: int = 200
HIGH_THRESHOLD_SECONDS: int = 400
MODERATE_THRESHOLD_SECONDS: int = 600


# ============================================================
# COLLECTION DEFAULTS
# ============================================================

DEFAULT_COLLECTION_TIMEOUT_SECONDS: float = 30.0
DEFAULT_PARALLEL_COLLECTORS: int = 10
MAX_RETRY_ATTEMPTS: int = 3
RETRY_BASE_DELAY_SECONDS: float = 2.0
RETRY_BACKOFF_MULTIPLIER: float = 2.0
DEFAULT_CACHE_DURATION_SECONDS: int = 3600
DEFAULT_RATE_LIMIT_PER_HOUR: int = 60
DEFAULT_RATE_LIMIT_MAX_WAIT_SECONDS: float = 10.0
DEDUPLICATION_THRESHOLD: float = 0.85
MIN_DATA_QUALITY_SCORE: float = 0.3
DEADLINE_EXCEEDED_REASON: str = "deadline exceeded"


# ============================================================
# CALCULATION DEFAULTS
# ============================================================

WEIGHT_SUM_TOLERANCE: float = 0.001
DEFAULT_MONTE_CARLO_ITERATIONS: int = 10_000
DEFAULT_CONFIDENCE_INTERVAL: int = 95
SUPPORTED_CONFIDENCE_INTERVALS: Tuple[int, ...] = (80, 90, 95, 99)
DEFAULT_PRIOR_WEIGHT: float = 0.3


# ============================================================
# KEYWORD VOCABULARIES
# ============================================================

NUCLEAR_KEYWORDS: Tuple[str, ...] = (
    "nuclear weapons",
    "doomsday clock",
    "icbm",
    "nuclear threat",
    "arms control",
    "start treaty",
    "nuclear doctrine",
    "deterrence",
    "missile test",
    "warhead",
    "uranium enrichment",
    "plutonium",
    "nuclear submarine",
    "strategic forces",
    "tactical nuclear",
)

GEOPOLITICAL_KEYWORDS: Tuple[str, ...] = (
    "nato",
    "russia ukraine",
    "taiwan",
    "china military",
    "north korea",
    "iran nuclear",
    "india pakistan",
    "middle east conflict",
    "sanctions",
    "military exercises",
    "airspace violation",
    "diplomatic crisis",
)

ESCALATION_KEYWORDS: Tuple[str, ...] = (
    "escalat",
    "threat",
    "ultimatum",
    "mobiliz",
    "alert",
    "launch",
    "strike",
    "retaliat",
    "invasion",
    "attack",
    "withdraw",
    "suspend",
    "test",
)
