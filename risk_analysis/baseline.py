"""
Risk Analysis - Baseline Store.

============================================================
PURPOSE
============================================================
Read access to per-category historical baselines.

The core only reads baselines. Writers replace the whole snapshot
in one step (commit), so a reader always observes the last
committed snapshot, never a half-written one.

============================================================
IMPLEMENTATIONS
============================================================
- InMemoryBaselineStore: immutable snapshot swapped atomically
- SqlBaselineStore: SQLAlchemy-backed, queried in a worker thread

============================================================
"""

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from core.exceptions import DependencyError
from database.engine import transaction_scope
from risk_analysis.models import CategoryBaselineRecord
from risk_analysis.types import HistoricalBaseline, RiskCategory


logger = logging.getLogger(__name__)


def compute_baselines(
    history: Iterable[Mapping[RiskCategory, float]],
    updated_at: Optional[datetime] = None,
) -> Dict[RiskCategory, HistoricalBaseline]:
    """
    Population mean/variance per category from past category scores.

    Categories that never appear get an empty baseline.
    """
    samples: Dict[RiskCategory, list] = {c: [] for c in RiskCategory}
    for scores in history:
        for category, value in scores.items():
            if value is not None and math.isfinite(value):
                samples[category].append(float(value))

    baselines = {}
    for category, values in samples.items():
        if not values:
            baselines[category] = HistoricalBaseline.empty(category)
            continue
        mean = sum(values) / len(values)
        variance = sum((v - mean) ** 2 for v in values) / len(values)
        baselines[category] = HistoricalBaseline(
            category=category,
            mean=mean,
            variance=variance,
            sample_count=len(values),
            updated_at=updated_at,
        )
    return baselines


class BaselineStore(ABC):
    """
    Abstract baseline store.

    Raises DependencyError when the backing store is unreachable.
    """

    @abstractmethod
    async def get_baseline(self, category: RiskCategory) -> HistoricalBaseline:
        pass

    async def get_baselines(self, categories: Iterable[RiskCategory]) -> Dict[RiskCategory, HistoricalBaseline]:
        return {c: await self.get_baseline(c) for c in categories}


class InMemoryBaselineStore(BaselineStore):
    """Process-local store with atomic snapshot commits."""

    def __init__(self, baselines: Optional[Mapping[RiskCategory, HistoricalBaseline]] = None) -> None:
        self._snapshot: Mapping[RiskCategory, HistoricalBaseline] = MappingProxyType(dict(baselines or {}))

    async def get_baseline(self, category: RiskCategory) -> HistoricalBaseline:
        snapshot = self._snapshot
        return snapshot.get(category) or HistoricalBaseline.empty(category)

    def commit(self, baselines: Mapping[RiskCategory, HistoricalBaseline]) -> None:
        """Replace the whole snapshot."""
        self._snapshot = MappingProxyType(dict(baselines))
        logger.debug(f"Committed baselines for {len(baselines)} categories")


class SqlBaselineStore(BaselineStore):
    """Baselines in the `category_baselines` table."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    async def get_baseline(self, category: RiskCategory) -> HistoricalBaseline:
        return await asyncio.to_thread(self._load, category)

    def _load(self, category: RiskCategory) -> HistoricalBaseline:
        try:
            with self._session_factory() as session:
                record = session.get(CategoryBaselineRecord, category.value)
        except SQLAlchemyError as e:
            raise DependencyError(
                f"Baseline store unreachable: {e}",
                dependency="baseline_store",
                cause=e,
            ) from e

        if record is None:
            return HistoricalBaseline.empty(category)
        return HistoricalBaseline(
            category=category,
            mean=record.mean,
            variance=record.variance,
            sample_count=record.sample_count,
            updated_at=record.updated_at,
        )

    def commit(self, baselines: Mapping[RiskCategory, HistoricalBaseline]) -> None:
        """Upsert all baselines in one transaction."""
        with transaction_scope(self._session_factory) as session:
            existing = {
                r.category: r
                for r in session.scalars(select(CategoryBaselineRecord)).all()
            }
            for category, baseline in baselines.items():
                record = existing.get(category.value)
                if record is None:
                    record = CategoryBaselineRecord(category=category.value)
                    session.add(record)
                record.mean = baseline.mean
                record.variance = baseline.variance
                record.sample_count = baseline.sample_count
                record.updated_at = baseline.updated_at
        logger.info(f"Committed baselines for {len(baselines)} categories")
