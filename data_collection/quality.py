"""
Data Collection - Content Relevance and Quality.

============================================================
RESPONSIBILITY
============================================================
Scores and filters collected data points.

- ContentFilter: keyword relevance (nuclear and geopolitical vocabularies)
- DataQualityScorer: composite of source, timeliness, completeness, relevance
- QualityFilter: the post-deduplication gate the orchestrator applies

============================================================
SCORING
============================================================
Relevance:    (2 * nuclear matches + geopolitical matches)
              / (2 * |nuclear| + |geopolitical|), capped at 1.0
Quality:      0.30 source + 0.20 timeliness + 0.10 completeness
              + 0.40 relevance
Timeliness:   < 1 day 1.0, < 7 days 0.9, < 30 days 0.7,
              < 90 days 0.5, else 0.3
Completeness: 0.5 base, +0.15 title, +0.15 url, +0.10 published,
              +0.10 metadata

============================================================
"""

import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, List, Optional, Sequence

from core.clock import ClockProtocol, SystemClock
from core.constants import GEOPOLITICAL_KEYWORDS, MIN_DATA_QUALITY_SCORE, NUCLEAR_KEYWORDS
from data_sources.models import DataPoint


logger = logging.getLogger(__name__)


def _compile(keywords: Iterable[str]) -> List[re.Pattern]:
    return [re.compile(rf"\b{re.escape(k)}\b", re.IGNORECASE) for k in keywords]


# ============================================================
# CONTENT FILTER
# ============================================================


class ContentFilter:
    """Keyword-based relevance of free text."""

    def __init__(
        self,
        nuclear_keywords: Sequence[str] = NUCLEAR_KEYWORDS,
        geopolitical_keywords: Sequence[str] = GEOPOLITICAL_KEYWORDS,
    ) -> None:
        self._nuclear_keywords = tuple(nuclear_keywords)
        self._geopolitical_keywords = tuple(geopolitical_keywords)
        self._nuclear = _compile(self._nuclear_keywords)
        self._geopolitical = _compile(self._geopolitical_keywords)

    def is_relevant(self, content: str) -> bool:
        return any(p.search(content) for p in self._nuclear) or any(
            p.search(content) for p in self._geopolitical
        )

    def relevance_score(self, content: str) -> float:
        nuclear_matches = sum(1 for p in self._nuclear if p.search(content))
        geopolitical_matches = sum(1 for p in self._geopolitical if p.search(content))

        if nuclear_matches + geopolitical_matches == 0:
            return 0.0

        weighted = nuclear_matches * 2.0 + geopolitical_matches
        max_possible = len(self._nuclear) * 2.0 + len(self._geopolitical)
        return min(1.0, weighted / max_possible)

    def extract_keywords(self, content: str) -> List[str]:
        """Keywords from both vocabularies present in the content."""
        found = [k for k, p in zip(self._nuclear_keywords, self._nuclear) if p.search(content)]
        found.extend(k for k, p in zip(self._geopolitical_keywords, self._geopolitical) if p.search(content))
        return found


# ============================================================
# QUALITY SCORER
# ============================================================


class DataQualityScorer:
    """Composite quality score of a single data point."""

    WEIGHTS = (0.30, 0.20, 0.10, 0.40)  # source, timeliness, completeness, relevance

    def __init__(
        self,
        content_filter: Optional[ContentFilter] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._filter = content_filter or ContentFilter()
        self._clock = clock or SystemClock()

    def score(self, point: DataPoint) -> float:
        scores = (
            point.reliability,
            self.score_timeliness(point),
            self.score_completeness(point),
            self._filter.relevance_score(point.text),
        )
        return sum(w * s for w, s in zip(self.WEIGHTS, scores))

    def score_timeliness(self, point: DataPoint) -> float:
        age = self._clock.now() - (point.published_at or point.collected_at)

        if age < timedelta(days=1):
            return 1.0
        if age < timedelta(days=7):
            return 0.9
        if age < timedelta(days=30):
            return 0.7
        if age < timedelta(days=90):
            return 0.5
        return 0.3

    def score_completeness(self, point: DataPoint) -> float:
        score = 0.5
        if point.title:
            score += 0.15
        if point.url:
            score += 0.15
        if point.published_at is not None:
            score += 0.10
        if point.metadata:
            score += 0.10
        return min(1.0, score)

    def filter_by_quality(self, points: Iterable[DataPoint], min_score: float) -> List[DataPoint]:
        return [p for p in points if self.score(p) >= min_score]


# ============================================================
# QUALITY FILTER
# ============================================================


@dataclass(frozen=True)
class QualityFilterResult:
    kept: tuple
    dropped_low_reliability: int = 0
    dropped_irrelevant: int = 0
    dropped_low_quality: int = 0


class QualityFilter:
    """
    Post-deduplication gate.

    Always drops points below `min_reliability_score`. Relevance and
    composite quality gates are opt-in.
    """

    def __init__(
        self,
        min_reliability_score: float = MIN_DATA_QUALITY_SCORE,
        require_relevance: bool = False,
        min_quality_score: Optional[float] = None,
        content_filter: Optional[ContentFilter] = None,
        scorer: Optional[DataQualityScorer] = None,
    ) -> None:
        self._min_reliability = min_reliability_score
        self._require_relevance = require_relevance
        self._min_quality = min_quality_score
        self._filter = content_filter or ContentFilter()
        self._scorer = scorer or DataQualityScorer(self._filter)

    def apply(self, points: Iterable[DataPoint]) -> QualityFilterResult:
        kept = []
        low_reliability = irrelevant = low_quality = 0

        for point in points:
            if point.reliability < self._min_reliability:
                low_reliability += 1
                continue
            if self._require_relevance and not self._filter.is_relevant(point.text):
                irrelevant += 1
                continue
            if self._min_quality is not None and self._scorer.score(point) < self._min_quality:
                low_quality += 1
                continue
            kept.append(point)

        if low_reliability or irrelevant or low_quality:
            logger.debug(
                f"Quality filter dropped {low_reliability} low-reliability, "
                f"{irrelevant} irrelevant, {low_quality} low-quality points"
            )
        return QualityFilterResult(
            kept=tuple(kept),
            dropped_low_reliability=low_reliability,
            dropped_irrelevant=irrelevant,
            dropped_low_quality=low_quality,
        )
