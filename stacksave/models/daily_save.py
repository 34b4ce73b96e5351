"""
Daily save model - one aggregated deposit row per goal per UTC day.
"""

from datetime import date as calendar_date
from decimal import Decimal

from sqlalchemy import Integer, BigInteger, Date, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, TimestampMixin


class DailySave(BaseModel, TimestampMixin):
    """Sum of deposits recorded for a goal on one calendar day."""

    __tablename__ = "daily_saves"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    goal_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("goals.id", ondelete="CASCADE"),
        comment="Goal the deposits belong to"
    )

    date: Mapped[calendar_date] = mapped_column(
        Date,
        comment="UTC calendar day"
    )

    amount: Mapped[Decimal] = mapped_column(
        default=0,
        comment="Sum of deposits that day in token base units"
    )

    goal: Mapped["Goal"] = relationship("Goal", back_populates="daily_saves")

    __table_args__ = (
        UniqueConstraint("goal_id", "date", name="uq_daily_saves_goal_date"),
        Index("idx_daily_saves_goal_date", "goal_id", "date"),
    )

    def __repr__(self) -> str:
        return f"<DailySave(goal_id={self.goal_id}, date={self.date}, amount={self.amount})>"
