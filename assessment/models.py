"""
Assessment - ORM Models.

============================================================
PURPOSE
============================================================
SQLAlchemy ORM models for assessment persistence.

TABLES:
- assessments: one row per assembled assessment; the full record
  is kept in `payload` so it round-trips through RiskAssessment
- risk_factors: one row per factor, for querying by category

Timestamps are stored as naive UTC.

============================================================
"""

from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database.engine import Base


class AssessmentRecord(Base):
    """Assembled assessment."""

    __tablename__ = "assessments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    final_score: Mapped[float] = mapped_column(Float, nullable=False)

    weighted_score: Mapped[float] = mapped_column(Float, nullable=False)

    seconds_to_midnight: Mapped[int] = mapped_column(Integer, nullable=False)

    risk_level: Mapped[str] = mapped_column(String(20), nullable=False)

    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)

    trend: Mapped[str] = mapped_column(String(20), nullable=False)

    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)

    factors: Mapped[List["RiskFactorRecord"]] = relationship(
        back_populates="assessment",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "seconds_to_midnight >= 0 AND seconds_to_midnight <= 1440",
            name="ck_assessments_seconds_range",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"AssessmentRecord("
            f"id={self.id}, "
            f"seconds={self.seconds_to_midnight}, "
            f"level={self.risk_level})"
        )


class RiskFactorRecord(Base):
    """One factor of an assessment."""

    __tablename__ = "risk_factors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    assessment_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("assessments.id", ondelete="CASCADE"),
        nullable=False,
    )

    category: Mapped[str] = mapped_column(String(40), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    value: Mapped[float] = mapped_column(Float, nullable=False)

    contribution: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)

    trend: Mapped[str] = mapped_column(String(20), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    assessment: Mapped[AssessmentRecord] = relationship(back_populates="factors")

    __table_args__ = (
        Index("ix_risk_factors_assessment_category", "assessment_id", "category"),
    )
