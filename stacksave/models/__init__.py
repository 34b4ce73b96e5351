"""
Database models for StackSave backend.

Contains SQLAlchemy models that mirror the on-chain goal state
and the local bookkeeping derived from contract events.
"""

from .base import Base, BaseModel, TimestampMixin
from .goal import Goal, GOAL_STATUS_NAMES
from .daily_save import DailySave
from .transaction import Transaction

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "Goal",
    "GOAL_STATUS_NAMES",
    "DailySave",
    "Transaction",
]
