"""
Declarative base and shared mixins for all models.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, Numeric
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# uint256 token amounts
TokenAmount = Numeric(78, 0)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
        Decimal: TokenAmount,
    }


class BaseModel(Base):
    """Abstract model with a dict helper."""

    __abstract__ = True

    def to_dict(self) -> dict:
        """Column values keyed by attribute name."""
        return {
            column.key: getattr(self, column.key)
            for column in self.__mapper__.column_attrs
        }


class TimestampMixin:
    """Row creation and modification timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        default=utc_now,
        comment="When the row was created"
    )

    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now,
        onupdate=utc_now,
        comment="When the row was last modified"
    )
