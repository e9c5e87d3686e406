"""
Risk Calculation - Seconds To Midnight.

Piecewise-linear projection of a risk score onto the clock face
through fixed anchors:

    score 0.0                  -> 1440 s
    score 1 - 1020/1440        -> 1020 s  (furthest published setting)
    score 1 - 89/1440          ->   89 s  (closest published setting)
    score 1.0                  ->    0 s

Every segment descends, so the projection is monotonically
non-increasing in the score.
"""

import math
from typing import Sequence, Tuple

from core.constants import MAX_SECONDS_TO_MIDNIGHT, SECONDS_CURVE_ANCHORS
from core.exceptions import ValidationError


def seconds_to_midnight(
    score: float,
    anchors: Sequence[Tuple[float, int]] = SECONDS_CURVE_ANCHORS,
) -> int:
    """
    Project a score in [0, 1] to whole seconds, rounded half-up.

    Raises:
        ValidationError: score is not finite
    """
    if score is None or not math.isfinite(score):
        raise ValidationError("Cannot project a non-finite score", field="score", value=score)

    score = max(0.0, min(1.0, float(score)))
    raw = float(anchors[-1][1])
    for (x0, y0), (x1, y1) in zip(anchors, anchors[1:]):
        if score <= x1:
            t = (score - x0) / (x1 - x0) if x1 > x0 else 0.0
            raw = y0 + t * (y1 - y0)
            break

    seconds = math.floor(raw + 0.5)
    return max(0, min(MAX_SECONDS_TO_MIDNIGHT, seconds))


def score_for_seconds(
    seconds: float,
    anchors: Sequence[Tuple[float, int]] = SECONDS_CURVE_ANCHORS,
) -> float:
    """Inverse of the projection, used to read stored settings back as scores."""
    seconds = max(0.0, min(float(MAX_SECONDS_TO_MIDNIGHT), float(seconds)))
    for (x0, y0), (x1, y1) in zip(anchors, anchors[1:]):
        if seconds >= y1:
            t = (y0 - seconds) / (y0 - y1) if y0 > y1 else 0.0
            return x0 + t * (x1 - x0)
    return 1.0
