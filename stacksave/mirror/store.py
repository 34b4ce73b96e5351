"""
Mirror store - persistence of goal state, daily saves and transaction history.

The sync engine depends only on the MirrorStore interface; SqlMirrorStore is
the SQLAlchemy implementation used in production.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, AsyncGenerator, Dict, List, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stacksave.chain.types import OnChainGoal
from stacksave.core.exceptions import DatabaseError, GoalNotFoundError
from stacksave.models.base import utc_now
from stacksave.models.daily_save import DailySave
from stacksave.models.goal import Goal
from stacksave.models.transaction import Transaction


logger = structlog.get_logger(__name__)

AMOUNT_COLUMNS = ("target_amount", "deposited_amount", "current_value", "yield_earned")


@dataclass
class TransactionRecord:
    """Audit row for an applied chain event."""
    goal_id: int
    tx_hash: str
    type: str
    amount: int
    timestamp: datetime
    block_number: Optional[int] = None
    status: str = "completed"


class MirrorStore(ABC):
    """Persistence operations the sync engine relies on."""

    @abstractmethod
    async def get_goal(self, goal_id: int) -> Optional[Goal]:
        """Return the mirrored goal or None."""

    @abstractmethod
    async def list_goals_by_owner(self, address: str) -> List[Goal]:
        """Return goals owned by address, newest first."""

    @abstractmethod
    async def upsert_goal_state(
        self,
        goal_id: int,
        fields: Dict[str, Any],
        chain_goal: Optional[OnChainGoal] = None,
    ) -> Goal:
        """
        Overwrite the given goal fields.

        When the goal is not mirrored yet it is created from chain_goal;
        without chain_goal a missing goal raises GoalNotFoundError.
        """

    @abstractmethod
    async def upsert_daily_save(self, goal_id: int, day: date, amount_delta: int) -> DailySave:
        """Add amount_delta to the (goal_id, day) row, creating it if needed."""

    @abstractmethod
    async def insert_transaction_if_absent(self, record: TransactionRecord) -> bool:
        """Insert the record unless its tx_hash exists. Returns False for duplicates."""

    @abstractmethod
    async def record_transaction(self, record: TransactionRecord, save_day: Optional[date] = None) -> bool:
        """
        Insert the audit row and, for a new deposit, add its amount to save_day.

        Both writes commit together: a failure leaves neither behind, so a
        redelivered event is counted again. Returns False for duplicates,
        in which case the daily save is left untouched.
        """

    @abstractmethod
    async def list_daily_saves(self, goal_id: int, since: Optional[date] = None) -> List[DailySave]:
        """Return daily saves for a goal, newest first, optionally from since onwards."""

    @abstractmethod
    async def list_goal_transactions(self, goal_id: int) -> List[Transaction]:
        """Return transactions for a goal, newest first."""


def _normalize_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    values = dict(fields)
    for column in AMOUNT_COLUMNS:
        if column in values and values[column] is not None:
            values[column] = Decimal(int(values[column]))
    return values


class SqlMirrorStore(MirrorStore):
    """
    SQLAlchemy mirror store.

    Idempotent inserts and daily-save aggregation are single
    INSERT ... ON CONFLICT statements, so concurrent handlers cannot
    create duplicate rows or lose an increment.
    """

    _INSERT_CONSTRUCTS = {
        "postgresql": postgresql.insert,
        "sqlite": sqlite.insert,
    }

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker
        self.logger = logger.bind(service="mirror_store")

        bind = session_maker.kw.get("bind")
        dialect_name = bind.dialect.name if bind is not None else "postgresql"
        if dialect_name not in self._INSERT_CONSTRUCTS:
            raise DatabaseError(
                f"Unsupported database dialect: {dialect_name}",
                {"dialect": dialect_name}
            )
        self._insert = self._INSERT_CONSTRUCTS[dialect_name]

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def get_goal(self, goal_id: int) -> Optional[Goal]:
        async with self._session() as session:
            return await session.get(Goal, goal_id)

    async def list_goals_by_owner(self, address: str) -> List[Goal]:
        async with self._session() as session:
            result = await session.execute(
                select(Goal)
                .where(Goal.owner == address.lower())
                .order_by(Goal.created_at.desc(), Goal.id.desc())
            )
            return list(result.scalars().all())

    async def upsert_goal_state(
        self,
        goal_id: int,
        fields: Dict[str, Any],
        chain_goal: Optional[OnChainGoal] = None,
    ) -> Goal:
        values = _normalize_fields(fields)
        values["updated_at"] = utc_now()

        async with self._session() as session:
            if chain_goal is not None:
                insert_values = _normalize_fields(chain_goal.identity_fields())
                insert_values.update(values)
                insert_values["id"] = goal_id

                stmt = self._insert(Goal).values(**insert_values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[Goal.id],
                    set_=values,
                )
                await session.execute(stmt)
            else:
                result = await session.execute(
                    update(Goal).where(Goal.id == goal_id).values(**values)
                )
                if result.rowcount == 0:
                    raise GoalNotFoundError(goal_id)

            goal = await session.get(Goal, goal_id, populate_existing=True)

        self.logger.debug("Goal state written", goal_id=goal_id, fields=sorted(fields))
        return goal

    async def _add_daily_save(self, session: AsyncSession, goal_id: int, day: date, amount_delta: int) -> None:
        now = utc_now()
        stmt = self._insert(DailySave).values(
            goal_id=goal_id,
            date=day,
            amount=Decimal(int(amount_delta)),
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[DailySave.goal_id, DailySave.date],
            set_={
                "amount": DailySave.amount + stmt.excluded.amount,
                "updated_at": now,
            },
        )
        await session.execute(stmt)

    async def _insert_transaction(self, session: AsyncSession, record: TransactionRecord) -> bool:
        stmt = self._insert(Transaction).values(
            goal_id=record.goal_id,
            tx_hash=record.tx_hash,
            type=record.type,
            amount=Decimal(int(record.amount)),
            block_number=record.block_number,
            timestamp=record.timestamp,
            status=record.status,
        )
        stmt = stmt.on_conflict_do_nothing(index_elements=[Transaction.tx_hash])
        result = await session.execute(stmt)
        inserted = result.rowcount == 1

        if not inserted:
            self.logger.info(
                "Transaction already recorded, skipping",
                tx_hash=record.tx_hash,
                goal_id=record.goal_id
            )
        return inserted

    async def upsert_daily_save(self, goal_id: int, day: date, amount_delta: int) -> DailySave:
        async with self._session() as session:
            await self._add_daily_save(session, goal_id, day, amount_delta)

            result = await session.execute(
                select(DailySave)
                .where(DailySave.goal_id == goal_id, DailySave.date == day)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one()

    async def insert_transaction_if_absent(self, record: TransactionRecord) -> bool:
        async with self._session() as session:
            return await self._insert_transaction(session, record)

    async def record_transaction(self, record: TransactionRecord, save_day: Optional[date] = None) -> bool:
        async with self._session() as session:
            inserted = await self._insert_transaction(session, record)
            if inserted and save_day is not None:
                await self._add_daily_save(session, record.goal_id, save_day, record.amount)
            return inserted

    async def list_daily_saves(self, goal_id: int, since: Optional[date] = None) -> List[DailySave]:
        query = select(DailySave).where(DailySave.goal_id == goal_id)
        if since is not None:
            query = query.where(DailySave.date >= since)

        async with self._session() as session:
            result = await session.execute(query.order_by(DailySave.date.desc()))
            return list(result.scalars().all())

    async def list_goal_transactions(self, goal_id: int) -> List[Transaction]:
        async with self._session() as session:
            result = await session.execute(
                select(Transaction)
                .where(Transaction.goal_id == goal_id)
                .order_by(Transaction.timestamp.desc(), Transaction.id.desc())
            )
            return list(result.scalars().all())
