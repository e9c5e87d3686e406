"""
Assessment - Repository.

============================================================
PURPOSE
============================================================
Persistence contract for assembled assessments.

OPERATIONS:
- store(assessment) -> id
- get(id) -> assessment or None
- query_history(start, end) -> assessments, oldest first

IMPLEMENTATIONS:
- InMemoryAssessmentRepository: process-local, for tests and dry runs
- SqlAssessmentRepository: SQLAlchemy, queried in a worker thread

All writes are atomic; storage failures raise DatabasePersistenceError.

============================================================
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from database.engine import DatabasePersistenceError, transaction_scope
from assessment.models import AssessmentRecord, RiskFactorRecord
from assessment.types import RiskAssessment


logger = logging.getLogger(__name__)


def _utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# ============================================================
# CONTRACT
# ============================================================

class AssessmentRepository(ABC):
    """Abstract assessment persistence."""

    @abstractmethod
    async def store(self, assessment: RiskAssessment) -> str:
        pass

    @abstractmethod
    async def get(self, assessment_id: str) -> Optional[RiskAssessment]:
        pass

    @abstractmethod
    async def query_history(self, start: datetime, end: datetime) -> List[RiskAssessment]:
        """Assessments created in [start, end], oldest first."""
        pass


# ============================================================
# IN-MEMORY
# ============================================================

class InMemoryAssessmentRepository(AssessmentRepository):
    def __init__(self) -> None:
        self._records: Dict[str, RiskAssessment] = {}

    async def store(self, assessment: RiskAssessment) -> str:
        self._records[assessment.id] = assessment
        return assessment.id

    async def get(self, assessment_id: str) -> Optional[RiskAssessment]:
        return self._records.get(assessment_id)

    async def query_history(self, start: datetime, end: datetime) -> List[RiskAssessment]:
        start, end = _utc_naive(start), _utc_naive(end)
        matches = [
            a for a in self._records.values()
            if start <= _utc_naive(a.created_at) <= end
        ]
        return sorted(matches, key=lambda a: _utc_naive(a.created_at))

    def __len__(self) -> int:
        return len(self._records)


# ============================================================
# SQL
# ============================================================

class SqlAssessmentRepository(AssessmentRepository):
    """Assessments in the `assessments` and `risk_factors` tables."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    async def store(self, assessment: RiskAssessment) -> str:
        return await asyncio.to_thread(self._store, assessment)

    async def get(self, assessment_id: str) -> Optional[RiskAssessment]:
        return await asyncio.to_thread(self._get, assessment_id)

    async def query_history(self, start: datetime, end: datetime) -> List[RiskAssessment]:
        return await asyncio.to_thread(self._query_history, start, end)

    # --------------------------------------------------------
    # WORKER-THREAD OPERATIONS
    # --------------------------------------------------------

    def _store(self, assessment: RiskAssessment) -> str:
        with transaction_scope(self._session_factory) as session:
            record = AssessmentRecord(
                id=assessment.id,
                created_at=_utc_naive(assessment.created_at),
                final_score=assessment.final_score,
                weighted_score=assessment.weighted_score,
                seconds_to_midnight=assessment.seconds_to_midnight,
                risk_level=assessment.risk_level.value,
                confidence_score=assessment.confidence_score,
                trend=assessment.trend.value,
                payload=assessment.to_dict(),
            )
            record.factors = [
                RiskFactorRecord(
                    id=factor.id,
                    category=factor.category.value,
                    name=factor.name,
                    value=factor.value,
                    contribution=factor.contribution,
                    confidence_score=factor.confidence_score,
                    trend=factor.trend.value,
                    description=factor.description,
                )
                for factor in assessment.factors
            ]
            session.add(record)

        logger.info(f"Stored assessment {assessment.id} ({len(assessment.factors)} factors)")
        return assessment.id

    def _get(self, assessment_id: str) -> Optional[RiskAssessment]:
        try:
            with self._session_factory() as session:
                record = session.get(AssessmentRecord, assessment_id)
                payload = record.payload if record is not None else None
        except SQLAlchemyError as e:
            raise DatabasePersistenceError(f"Failed to load assessment {assessment_id}: {e}", cause=e) from e

        return RiskAssessment.from_dict(payload) if payload is not None else None

    def _query_history(self, start: datetime, end: datetime) -> List[RiskAssessment]:
        stmt = (
            select(AssessmentRecord.payload)
            .where(AssessmentRecord.created_at >= _utc_naive(start))
            .where(AssessmentRecord.created_at <= _utc_naive(end))
            .order_by(AssessmentRecord.created_at.asc())
        )
        try:
            with self._session_factory() as session:
                payloads = list(session.scalars(stmt).all())
        except SQLAlchemyError as e:
            raise DatabasePersistenceError(f"Failed to query assessment history: {e}", cause=e) from e

        return [RiskAssessment.from_dict(p) for p in payloads]
