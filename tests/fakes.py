"""
In-memory stand-ins for the chain and the mirror database.
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Set, Tuple

from stacksave.chain.client import ChainClient, ErrorHandler, EventHandler
from stacksave.chain.types import ZERO_ADDRESS, ChainEvent, GoalState, OnChainGoal
from stacksave.core.exceptions import ChainClientError, GoalNotFoundError, SubscriptionError
from stacksave.mirror.store import MirrorStore, TransactionRecord
from stacksave.models.base import utc_now
from stacksave.models.daily_save import DailySave
from stacksave.models.goal import Goal
from stacksave.models.transaction import Transaction


OWNER = "0x1111111111111111111111111111111111111111"
OTHER_OWNER = "0x2222222222222222222222222222222222222222"
USDC = "0x3333333333333333333333333333333333333333"


def make_goal_state(
    goal_id: int,
    owner: str = OWNER,
    deposited: int = 0,
    current_value: Optional[int] = None,
    yield_earned: int = 0,
    status: int = 0,
    target: int = 1000,
) -> GoalState:
    goal = OnChainGoal(
        id=goal_id,
        owner=owner,
        currency=USDC,
        mode=0,
        target_amount=target,
        duration=30 * 86400,
        donation_percentage=500,
        deposited_amount=deposited,
        created_at=1_700_000_000,
        last_deposit_time=0,
        status=status,
    )
    return GoalState(
        goal=goal,
        current_value=deposited + yield_earned if current_value is None else current_value,
        yield_earned=yield_earned,
    )


class FakeChainClient(ChainClient):
    """Chain double: goal state is set by tests, events are pushed by tests."""

    def __init__(self):
        self.goals: Dict[int, GoalState] = {}
        self.handlers: Dict[str, EventHandler] = {}
        self.error_handler: Optional[ErrorHandler] = None
        self.failing_reads: Set[int] = set()
        self.fail_subscribe = False
        self.fail_next_subscribes = 0
        self.subscribe_calls = 0
        self.reads: List[int] = []
        self.closed = False

    def set_goal(self, goal_id: int, **kwargs) -> GoalState:
        state = make_goal_state(goal_id, **kwargs)
        self.goals[goal_id] = state
        return state

    async def subscribe(self, event_name: str, handler: EventHandler) -> None:
        self.subscribe_calls += 1
        if self.fail_subscribe:
            raise ConnectionError("subscription refused")
        if self.fail_next_subscribes > 0:
            self.fail_next_subscribes -= 1
            raise SubscriptionError(f"cannot subscribe to {event_name}")
        self.handlers[event_name] = handler

    async def unsubscribe(self, event_name: str) -> None:
        self.handlers.pop(event_name, None)

    async def on_transport_error(self, handler: ErrorHandler) -> None:
        self.error_handler = handler

    async def remove_transport_error_handler(self) -> None:
        self.error_handler = None

    async def read_goal_state(self, goal_id: int) -> GoalState:
        self.reads.append(goal_id)
        if goal_id in self.failing_reads:
            raise ChainClientError(f"Failed to read goal {goal_id}", {"goal_id": goal_id})
        if goal_id not in self.goals:
            return make_goal_state(goal_id, owner=ZERO_ADDRESS)
        return self.goals[goal_id]

    async def close(self) -> None:
        self.closed = True

    async def emit(self, event: ChainEvent) -> Any:
        """Deliver an event the way the transport would."""
        return await self.handlers[event.event_name](event)

    async def fail_transport(self, error: Optional[Exception] = None) -> None:
        """Report a transport failure to the registered handler."""
        if self.error_handler is not None:
            await self.error_handler(error or ConnectionError("socket closed"))


class InMemoryMirrorStore(MirrorStore):
    """Dict-backed mirror store holding detached model instances."""

    def __init__(self):
        self.goals: Dict[int, Goal] = {}
        self.daily_saves: Dict[Tuple[int, date], DailySave] = {}
        self.transactions: Dict[str, Transaction] = {}

    def seed_goal(self, goal_id: int, owner: str = OWNER, created_at: Optional[datetime] = None, **fields) -> Goal:
        now = created_at or utc_now()
        goal = Goal(
            id=goal_id,
            name="",
            owner=owner.lower(),
            currency=USDC,
            mode=0,
            target_amount=1000,
            duration=30 * 86400,
            donation_percentage=500,
            deposited_amount=0,
            current_value=0,
            yield_earned=0,
            status=0,
            last_deposit_time=None,
            current_streak=0,
            longest_streak=0,
            last_streak_update=None,
            last_synced_at=None,
            created_at=now,
            updated_at=now,
        )
        for key, value in fields.items():
            setattr(goal, key, value)
        self.goals[goal_id] = goal
        return goal

    def seed_daily_saves(self, goal_id: int, today: date, offsets: List[int], amount: int = 10) -> None:
        for offset in offsets:
            day = today - timedelta(days=offset)
            self.daily_saves[(goal_id, day)] = DailySave(
                goal_id=goal_id, date=day, amount=amount, created_at=utc_now(), updated_at=utc_now()
            )

    async def get_goal(self, goal_id: int) -> Optional[Goal]:
        return self.goals.get(goal_id)

    async def list_goals_by_owner(self, address: str) -> List[Goal]:
        owned = [g for g in self.goals.values() if g.owner == address.lower()]
        return sorted(owned, key=lambda g: (g.created_at, g.id), reverse=True)

    async def upsert_goal_state(self, goal_id, fields, chain_goal=None) -> Goal:
        goal = self.goals.get(goal_id)
        if goal is None:
            if chain_goal is None:
                raise GoalNotFoundError(goal_id)
            goal = self.seed_goal(goal_id, **chain_goal.identity_fields())
        for key, value in fields.items():
            setattr(goal, key, value)
        goal.updated_at = utc_now()
        return goal

    async def upsert_daily_save(self, goal_id: int, day: date, amount_delta: int) -> DailySave:
        key = (goal_id, day)
        save = self.daily_saves.get(key)
        if save is None:
            save = DailySave(goal_id=goal_id, date=day, amount=0, created_at=utc_now(), updated_at=utc_now())
            self.daily_saves[key] = save
        save.amount = int(save.amount) + int(amount_delta)
        save.updated_at = utc_now()
        return save

    async def insert_transaction_if_absent(self, record: TransactionRecord) -> bool:
        if record.tx_hash in self.transactions:
            return False
        self.transactions[record.tx_hash] = Transaction(
            id=len(self.transactions) + 1,
            goal_id=record.goal_id,
            tx_hash=record.tx_hash,
            type=record.type,
            amount=record.amount,
            block_number=record.block_number,
            timestamp=record.timestamp,
            status=record.status,
        )
        return True

    async def record_transaction(self, record: TransactionRecord, save_day: Optional[date] = None) -> bool:
        if record.tx_hash in self.transactions:
            return False
        # Daily save first so a failure leaves no audit row behind
        if save_day is not None:
            await self.upsert_daily_save(record.goal_id, save_day, record.amount)
        return await self.insert_transaction_if_absent(record)

    async def list_daily_saves(self, goal_id: int, since: Optional[date] = None) -> List[DailySave]:
        saves = [
            s for (g, d), s in self.daily_saves.items()
            if g == goal_id and (since is None or d >= since)
        ]
        return sorted(saves, key=lambda s: s.date, reverse=True)

    async def list_goal_transactions(self, goal_id: int) -> List[Transaction]:
        txs = [t for t in self.transactions.values() if t.goal_id == goal_id]
        return sorted(txs, key=lambda t: (t.timestamp, t.id), reverse=True)
