"""
Transaction model - audit record of a chain event applied to a goal.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Integer, BigInteger, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, TimestampMixin


class Transaction(BaseModel, TimestampMixin):
    """One applied chain event, keyed by transaction hash."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    tx_hash: Mapped[str] = mapped_column(
        String(66),
        unique=True,
        comment="Transaction hash"
    )

    goal_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("goals.id", ondelete="CASCADE"),
        comment="Goal the event applied to"
    )

    type: Mapped[str] = mapped_column(
        String(20),
        comment="deposit, withdraw or withdrawEarly"
    )

    amount: Mapped[Decimal] = mapped_column(
        comment="Amount moved in token base units"
    )

    block_number: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        comment="Block the event was emitted in"
    )

    timestamp: Mapped[datetime] = mapped_column(
        comment="When the event was applied"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default="completed",
        comment="Transaction status"
    )

    goal: Mapped["Goal"] = relationship("Goal", back_populates="transactions")

    __table_args__ = (
        Index("idx_transactions_goal_timestamp", "goal_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<Transaction(tx_hash={self.tx_hash}, type={self.type}, amount={self.amount})>"
