"""
Risk Analysis - Persistence Models.

============================================================
MODELS
============================================================
1. CategoryBaselineRecord: historical statistics per risk category,
   read by the analyzers and the calculation engine

============================================================
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from database.engine import Base


class CategoryBaselineRecord(Base):
    """One row per risk category."""

    __tablename__ = "category_baselines"

    category: Mapped[str] = mapped_column(
        String(40),
        primary_key=True,
        comment="RiskCategory value",
    )

    mean: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    variance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    sample_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"CategoryBaselineRecord("
            f"category={self.category}, "
            f"mean={self.mean:.3f}, "
            f"n={self.sample_count})"
        )
