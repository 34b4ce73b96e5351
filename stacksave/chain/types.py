"""
Value types for on-chain goal state and the contract events the listener tracks.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum, IntEnum
from typing import Any, ClassVar, Dict, Optional, Type


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class GoalMode(IntEnum):
    """Vault strategy of a goal."""
    LITE = 0
    PRO = 1


class GoalStatus(IntEnum):
    """Lifecycle status of a goal as reported by the contract."""
    ACTIVE = 0
    COMPLETED = 1
    ABANDONED = 2
    WITHDRAWN = 3


class TransactionType(str, Enum):
    """Audit record types written for applied events."""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    WITHDRAW_EARLY = "withdrawEarly"


@dataclass
class OnChainGoal:
    """Goal struct returned by getGoalDetails."""
    id: int
    owner: str
    currency: str
    mode: int
    target_amount: int
    duration: int  # seconds
    donation_percentage: int  # basis points
    deposited_amount: int
    created_at: int  # unix seconds
    last_deposit_time: int  # unix seconds
    status: int

    @property
    def exists(self) -> bool:
        """Unknown goal ids come back as a zeroed struct."""
        return self.owner.lower() != ZERO_ADDRESS

    def identity_fields(self) -> Dict[str, Any]:
        """Attributes fixed at goal creation, used when the mirror row is new."""
        return {
            "owner": self.owner.lower(),
            "currency": self.currency.lower(),
            "mode": int(self.mode),
            "target_amount": int(self.target_amount),
            "duration": int(self.duration),
            "donation_percentage": int(self.donation_percentage),
        }


@dataclass
class GoalState:
    """Authoritative goal state: the struct plus vault valuation."""
    goal: OnChainGoal
    current_value: int
    yield_earned: int

    def mirror_fields(self) -> Dict[str, Any]:
        """Chain-derived columns that are overwritten wholesale on every sync."""
        return {
            "deposited_amount": int(self.goal.deposited_amount),
            "current_value": int(self.current_value),
            "yield_earned": int(self.yield_earned),
            "status": int(self.goal.status),
        }


@dataclass
class ChainEvent:
    """Fields shared by every tracked contract event."""
    goal_id: int
    user: str
    tx_hash: str
    block_number: Optional[int]

    event_name: ClassVar[str] = ""
    transaction_type: ClassVar[TransactionType]

    @property
    def recorded_amount(self) -> int:
        """Amount written to the transaction audit row."""
        raise NotImplementedError

    @property
    def is_deposit(self) -> bool:
        return self.transaction_type is TransactionType.DEPOSIT


@dataclass
class DepositedEvent(ChainEvent):
    """Deposited(goalId, user, amount, vaultShares)."""
    amount: int = 0
    vault_shares: int = 0

    event_name: ClassVar[str] = "Deposited"
    transaction_type: ClassVar[TransactionType] = TransactionType.DEPOSIT

    @property
    def recorded_amount(self) -> int:
        return self.amount


@dataclass
class WithdrawnCompletedEvent(ChainEvent):
    """WithdrawnCompleted(goalId, user, principal, yield, userYield, donatedYield)."""
    principal: int = 0
    total_yield: int = 0
    user_yield: int = 0
    donated_yield: int = 0

    event_name: ClassVar[str] = "WithdrawnCompleted"
    transaction_type: ClassVar[TransactionType] = TransactionType.WITHDRAW

    @property
    def recorded_amount(self) -> int:
        return self.principal + self.user_yield


@dataclass
class WithdrawnEarlyEvent(ChainEvent):
    """WithdrawnEarly(goalId, user, amount, penalty, penaltyToRewards, penaltyToTreasury)."""
    amount: int = 0
    penalty: int = 0
    penalty_to_rewards: int = 0
    penalty_to_treasury: int = 0

    event_name: ClassVar[str] = "WithdrawnEarly"
    transaction_type: ClassVar[TransactionType] = TransactionType.WITHDRAW_EARLY

    @property
    def recorded_amount(self) -> int:
        return self.amount


EVENT_TYPES: Dict[str, Type[ChainEvent]] = {
    DepositedEvent.event_name: DepositedEvent,
    WithdrawnCompletedEvent.event_name: WithdrawnCompletedEvent,
    WithdrawnEarlyEvent.event_name: WithdrawnEarlyEvent,
}


def utc_today() -> date:
    """Current UTC calendar day."""
    return datetime.now(timezone.utc).date()
