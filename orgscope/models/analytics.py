from __future__ import annotations

from sqlalchemy import Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from orgscope.db.base import Base


class PracticeMeasure(Base):
    """One aggregated measure value for a practice (and optionally a provider) in a period."""

    __tablename__ = "practice_measures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    practice_uid: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    provider_uid: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    measure: Mapped[str] = mapped_column(String(100), nullable=False)
    period: Mapped[str] = mapped_column(String(20), nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)
