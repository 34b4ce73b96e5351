"""
Chain access: goal state reads and contract event subscriptions.
"""

from .types import (
    EVENT_TYPES,
    ChainEvent,
    DepositedEvent,
    GoalMode,
    GoalState,
    GoalStatus,
    OnChainGoal,
    TransactionType,
    WithdrawnCompletedEvent,
    WithdrawnEarlyEvent,
)
from .client import ChainClient, Web3ChainClient, get_chain_client, close_chain_client

__all__ = [
    "EVENT_TYPES",
    "ChainEvent",
    "DepositedEvent",
    "GoalMode",
    "GoalState",
    "GoalStatus",
    "OnChainGoal",
    "TransactionType",
    "WithdrawnCompletedEvent",
    "WithdrawnEarlyEvent",
    "ChainClient",
    "Web3ChainClient",
    "get_chain_client",
    "close_chain_client",
]
