"""
Goal model - mirrors the on-chain savings goal with local streak tracking.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import String, Integer, BigInteger, SmallInteger, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, TimestampMixin


GOAL_STATUS_NAMES = ["Active", "Completed", "Abandoned", "Withdrawn"]


class Goal(BaseModel, TimestampMixin):
    """Goal model mirroring one on-chain StackSave goal."""

    __tablename__ = "goals"

    # On-chain goal id
    id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=False,
        comment="On-chain goal id"
    )

    name: Mapped[str] = mapped_column(
        String(200),
        default="",
        comment="Off-chain display name"
    )

    # Goal configuration (mirrors on-chain data)
    owner: Mapped[str] = mapped_column(
        String(42),
        comment="Owner address, lowercased"
    )

    currency: Mapped[str] = mapped_column(
        String(42),
        comment="Token address, lowercased"
    )

    mode: Mapped[int] = mapped_column(
        SmallInteger,
        default=0,
        comment="0 = Lite, 1 = Pro"
    )

    target_amount: Mapped[Decimal] = mapped_column(
        default=0,
        comment="Target amount in token base units"
    )

    duration: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        comment="Goal duration in seconds"
    )

    donation_percentage: Mapped[int] = mapped_column(
        Integer,
        default=0,
        comment="Donated share of yield in basis points"
    )

    # Chain-derived state, overwritten on every reconciliation
    deposited_amount: Mapped[Decimal] = mapped_column(
        default=0,
        comment="Principal deposited in token base units"
    )

    current_value: Mapped[Decimal] = mapped_column(
        default=0,
        comment="Current vault value in token base units"
    )

    yield_earned: Mapped[Decimal] = mapped_column(
        default=0,
        comment="Yield earned in token base units"
    )

    status: Mapped[int] = mapped_column(
        SmallInteger,
        default=0,
        comment="0 = Active, 1 = Completed, 2 = Abandoned, 3 = Withdrawn"
    )

    last_deposit_time: Mapped[Optional[datetime]] = mapped_column(
        comment="When the last deposit event was applied"
    )

    # Streak tracking (not on-chain)
    current_streak: Mapped[int] = mapped_column(
        Integer,
        default=0,
        comment="Consecutive days with a deposit, ending today"
    )

    longest_streak: Mapped[int] = mapped_column(
        Integer,
        default=0,
        comment="Longest streak ever observed"
    )

    last_streak_update: Mapped[Optional[datetime]] = mapped_column(
        comment="When streaks were last computed"
    )

    last_synced_at: Mapped[Optional[datetime]] = mapped_column(
        comment="Last reconciliation with on-chain state"
    )

    # Relationships
    daily_saves: Mapped[List["DailySave"]] = relationship(
        "DailySave",
        back_populates="goal",
        cascade="all, delete-orphan",
        order_by="DailySave.date.desc()"
    )

    transactions: Mapped[List["Transaction"]] = relationship(
        "Transaction",
        back_populates="goal",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_goals_owner", "owner"),
        Index("idx_goals_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Goal(id={self.id}, owner={self.owner}, status={self.status})>"

    @property
    def status_text(self) -> str:
        """Human readable goal status."""
        if 0 <= self.status < len(GOAL_STATUS_NAMES):
            return GOAL_STATUS_NAMES[self.status]
        return "Unknown"

    @property
    def progress_percentage(self) -> float:
        """Deposited principal as a percentage of the target."""
        if not self.target_amount:
            return 0.0
        return float(Decimal(self.deposited_amount) / Decimal(self.target_amount) * 100)
