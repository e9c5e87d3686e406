"""
Data Collection - Deduplicator.

============================================================
RESPONSIBILITY
============================================================
Identifies near-identical content across all sources.

- Detects republished links via URL comparison
- Detects exact duplicates via hash comparison
- Detects near-duplicates via word-shingle Jaccard similarity
- Keeps the most reliable copy of each story

============================================================
DESIGN PRINCIPLES
============================================================
- Configurable similarity threshold
- Deterministic: the same input always keeps the same points
- Stateless between runs

============================================================
DEDUPLICATION STRATEGIES
============================================================
1. Same URL: identical canonical link
2. Exact match: SHA-256 of the normalized text
3. Near-duplicate: Jaccard similarity of word shingles

Candidates are visited in (reliability desc, collected_at asc)
order and a point survives only if it is not similar to any
point already kept, so of a duplicate pair the higher-reliability
point wins and ties go to the earlier collection.

============================================================
"""

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from core.constants import DEDUPLICATION_THRESHOLD
from data_sources.models import DataPoint


logger = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


# ============================================================
# CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class DeduplicatorConfig:
    """Configuration for deduplication."""

    similarity_threshold: float = DEDUPLICATION_THRESHOLD
    shingle_size: int = 3
    url_match_enabled: bool = True
    exact_match_enabled: bool = True
    near_duplicate_enabled: bool = True


# ============================================================
# RESULT TYPES
# ============================================================


@dataclass(frozen=True)
class DeduplicationResult:
    """Why a point was dropped."""

    item_id: str
    duplicate_type: str  # url, exact, near
    original_id: str
    similarity_score: float


# ============================================================
# TEXT HELPERS
# ============================================================


def normalize_content(content: str) -> str:
    """
    Normalize content for comparison.

    - Lowercase
    - Remove punctuation (keep alphanumeric and spaces)
    - Collapse whitespace
    """
    normalized = content.lower()
    normalized = _PUNCTUATION.sub(" ", normalized)
    return _WHITESPACE.sub(" ", normalized).strip()


def content_hash(content: str) -> str:
    """SHA-256 of the normalized content."""
    return hashlib.sha256(normalize_content(content).encode("utf-8")).hexdigest()


def canonical_url(url: Optional[str]) -> Optional[str]:
    """Lowercased link without fragment or trailing slash; None when empty."""
    if not url:
        return None
    canonical = url.strip().split("#", 1)[0].rstrip("/").lower()
    return canonical or None


def shingles(normalized: str, size: int = 3) -> frozenset:
    """Word n-grams; texts shorter than `size` give one shingle."""
    words = normalized.split()
    if len(words) < size:
        return frozenset([" ".join(words)]) if words else frozenset()
    return frozenset(" ".join(words[i:i + size]) for i in range(len(words) - size + 1))


def jaccard_similarity(a: frozenset, b: frozenset) -> float:
    if not a and not b:
        return 1.0
    union = len(a | b)
    return len(a & b) / union if union else 0.0


def text_similarity(a: str, b: str, shingle_size: int = 3) -> float:
    """Similarity of two raw texts in [0, 1]."""
    norm_a, norm_b = normalize_content(a), normalize_content(b)
    if norm_a == norm_b:
        return 1.0
    return jaccard_similarity(shingles(norm_a, shingle_size), shingles(norm_b, shingle_size))


# ============================================================
# DEDUPLICATOR
# ============================================================


class Deduplicator:
    """
    Removes near-identical data points from a batch.

    ============================================================
    USAGE
    ============================================================
    ```python
    dedup = Deduplicator(DeduplicatorConfig(similarity_threshold=0.85))
    kept = dedup.deduplicate(points)
    ```

    ============================================================
    """

    def __init__(self, config: Optional[DeduplicatorConfig] = None) -> None:
        self._config = config or DeduplicatorConfig()

    @property
    def threshold(self) -> float:
        return self._config.similarity_threshold

    # =========================================================
    # PUBLIC API
    # =========================================================

    def deduplicate(self, points: Iterable[DataPoint]) -> List[DataPoint]:
        """Keep one point per duplicate group."""
        kept, _ = self.deduplicate_with_results(points)
        return kept

    def deduplicate_with_results(
        self,
        points: Iterable[DataPoint],
    ) -> Tuple[List[DataPoint], List[DeduplicationResult]]:
        """
        Deduplicate and report what was dropped.

        Returns:
            (kept points in priority order, one result per dropped point)
        """
        ordered = sorted(points, key=lambda dp: (-dp.reliability, dp.collected_at))

        kept: List[DataPoint] = []
        kept_shingles: List[frozenset] = []
        hash_index: dict = {}
        url_index: dict = {}
        dropped: List[DeduplicationResult] = []

        for point in ordered:
            link = canonical_url(point.url) if self._config.url_match_enabled else None
            if link is not None and link in url_index:
                dropped.append(DeduplicationResult(
                    item_id=point.id,
                    duplicate_type="url",
                    original_id=url_index[link].id,
                    similarity_score=1.0,
                ))
                continue

            normalized = normalize_content(point.text)

            if self._config.exact_match_enabled:
                digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
                original = hash_index.get(digest)
                if original is not None:
                    dropped.append(DeduplicationResult(
                        item_id=point.id,
                        duplicate_type="exact",
                        original_id=original.id,
                        similarity_score=1.0,
                    ))
                    continue

            point_shingles = shingles(normalized, self._config.shingle_size)

            if self._config.near_duplicate_enabled:
                match = self._find_near_duplicate(point_shingles, kept, kept_shingles)
                if match is not None:
                    original, similarity = match
                    dropped.append(DeduplicationResult(
                        item_id=point.id,
                        duplicate_type="near",
                        original_id=original.id,
                        similarity_score=similarity,
                    ))
                    continue

            kept.append(point)
            kept_shingles.append(point_shingles)
            if link is not None:
                url_index[link] = point
            if self._config.exact_match_enabled:
                hash_index[digest] = point

        if dropped:
            logger.debug(f"Deduplication dropped {len(dropped)} of {len(ordered)} points")
        return kept, dropped

    # =========================================================
    # NEAR-DUPLICATE DETECTION
    # =========================================================

    def _find_near_duplicate(
        self,
        candidate: frozenset,
        kept: Sequence[DataPoint],
        kept_shingles: Sequence[frozenset],
    ) -> Optional[Tuple[DataPoint, float]]:
        for original, original_shingles in zip(kept, kept_shingles):
            similarity = jaccard_similarity(candidate, original_shingles)
            if similarity >= self._config.similarity_threshold:
                return original, similarity
        return None
