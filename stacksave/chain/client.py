"""
Chain client service for reading StackSave goal state and following contract events.
Provides an abstract interface plus a web3.py implementation that polls event logs.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog
from web3 import AsyncWeb3
from web3.providers import AsyncHTTPProvider

from stacksave.core.config import ChainConfig
from stacksave.core.exceptions import ChainClientError, ConfigurationError, SubscriptionError
from .abi import STACKSAVE_ABI
from .types import (
    EVENT_TYPES,
    ChainEvent,
    DepositedEvent,
    GoalState,
    OnChainGoal,
    WithdrawnCompletedEvent,
    WithdrawnEarlyEvent,
)


logger = structlog.get_logger(__name__)

EventHandler = Callable[[ChainEvent], Awaitable[Any]]
ErrorHandler = Callable[[Exception], Awaitable[Any]]


class ChainClient(ABC):
    """
    Interface the sync engine uses to talk to the chain.

    Each call may be slow or fail; individual calls are assumed reliable,
    but the underlying event transport can drop at any time and reports
    that through the transport error handler.
    """

    @abstractmethod
    async def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Deliver decoded events of the given type to handler."""

    @abstractmethod
    async def unsubscribe(self, event_name: str) -> None:
        """Stop delivering events of the given type. Safe when not subscribed."""

    @abstractmethod
    async def on_transport_error(self, handler: ErrorHandler) -> None:
        """Register the callback invoked when the event transport fails."""

    @abstractmethod
    async def remove_transport_error_handler(self) -> None:
        """Drop the transport error callback. Safe when none is registered."""

    @abstractmethod
    async def read_goal_state(self, goal_id: int) -> GoalState:
        """Read authoritative goal state from the contract."""

    async def close(self) -> None:
        """Release network resources."""


class Web3ChainClient(ChainClient):
    """
    web3.py client for the StackSave contract.

    Subscriptions are served by a single polling task that fetches logs
    for every subscribed event from a block cursor. Any error inside the
    poll loop is treated as a transport failure: the loop reports it and
    exits, keeping the cursor so a later subscription resumes from the
    first range not fully dispatched (events may be delivered again).
    """

    def __init__(self, w3: Optional[AsyncWeb3] = None):
        """Initialize the client with configuration."""
        self.rpc_config = ChainConfig.get_rpc_config()
        self.w3 = w3 or AsyncWeb3(
            AsyncHTTPProvider(
                self.rpc_config["endpoint"],
                request_kwargs={"timeout": self.rpc_config["timeout"]},
            )
        )
        try:
            address = AsyncWeb3.to_checksum_address(self.rpc_config["contract_address"])
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid contract address: {self.rpc_config['contract_address']}",
                {"contract_address": self.rpc_config["contract_address"]}
            ) from e
        self.contract = self.w3.eth.contract(address=address, abi=STACKSAVE_ABI)
        self.poll_interval: float = self.rpc_config["poll_interval"]
        self.logger = logger.bind(service="chain_client")

        self._handlers: Dict[str, EventHandler] = {}
        self._error_handler: Optional[ErrorHandler] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._cursor: Optional[int] = self.rpc_config["start_block"]

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def subscribe(self, event_name: str, handler: EventHandler) -> None:
        if event_name not in EVENT_TYPES:
            raise SubscriptionError(
                f"Unknown event: {event_name}",
                {"event_name": event_name}
            )

        if self._cursor is None:
            try:
                self._cursor = await self.w3.eth.block_number
            except Exception as e:
                raise SubscriptionError(
                    f"Failed to read current block: {e}",
                    {"event_name": event_name}
                ) from e

        self._handlers[event_name] = handler
        self.logger.debug("Subscribed", event_name=event_name, from_block=self._cursor)

        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll_loop())

    async def unsubscribe(self, event_name: str) -> None:
        self._handlers.pop(event_name, None)
        if not self._handlers:
            await self._stop_polling()

    async def on_transport_error(self, handler: ErrorHandler) -> None:
        self._error_handler = handler

    async def remove_transport_error_handler(self) -> None:
        self._error_handler = None

    async def read_goal_state(self, goal_id: int) -> GoalState:
        try:
            goal, current_value, yield_earned = await self.contract.functions.getGoalDetails(
                goal_id
            ).call()
        except Exception as e:
            self.logger.error("Failed to read goal details", goal_id=goal_id, error=str(e))
            raise ChainClientError(
                f"Failed to read goal {goal_id}: {e}",
                {"goal_id": goal_id}
            ) from e

        return GoalState(
            goal=OnChainGoal(*goal),
            current_value=int(current_value),
            yield_earned=int(yield_earned),
        )

    async def close(self) -> None:
        self._handlers.clear()
        self._error_handler = None
        await self._stop_polling()
        provider = self.w3.provider
        if hasattr(provider, "disconnect"):
            await provider.disconnect()

    async def _stop_polling(self) -> None:
        task = self._poll_task
        self._poll_task = None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _poll_loop(self) -> None:
        """Fetch and dispatch new events until every subscription is gone."""
        self.logger.info("Event polling started", from_block=self._cursor)
        try:
            while self._handlers:
                latest = await self.w3.eth.block_number
                if latest >= self._cursor:
                    events = await self._fetch_events(self._cursor, latest)
                    # Cancelled mid-dispatch leaves the range to be fetched again
                    await self._dispatch(events)
                    self._cursor = latest + 1
                await asyncio.sleep(self.poll_interval)
        except asyncio.CancelledError:
            self.logger.info("Event polling cancelled", cursor=self._cursor)
            raise
        except Exception as e:
            self.logger.error("Event transport failed", error=str(e), cursor=self._cursor)
            handler = self._error_handler
            if handler is not None:
                await handler(e)

    async def _fetch_events(self, from_block: int, to_block: int) -> List[ChainEvent]:
        events: List[ChainEvent] = []
        for event_name in list(self._handlers):
            contract_event = getattr(self.contract.events, event_name)
            logs = await contract_event.get_logs(from_block=from_block, to_block=to_block)
            events.extend(decode_event(event_name, log) for log in logs)
        events.sort(key=lambda event: event.block_number or 0)
        return events

    async def _dispatch(self, events: List[ChainEvent]) -> None:
        # Handlers for distinct events run concurrently
        calls = []
        for event in events:
            handler = self._handlers.get(event.event_name)
            if handler is not None:
                calls.append(handler(event))
        if calls:
            results = await asyncio.gather(*calls, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    self.logger.error("Event handler raised", error=str(result))


def decode_event(event_name: str, log: Any) -> ChainEvent:
    """Convert a decoded web3 log into the matching event dataclass."""
    args = log["args"]
    common = {
        "goal_id": int(args["goalId"]),
        "user": str(args["user"]).lower(),
        "tx_hash": AsyncWeb3.to_hex(log["transactionHash"]),
        "block_number": log.get("blockNumber"),
    }

    if event_name == DepositedEvent.event_name:
        return DepositedEvent(
            **common,
            amount=int(args["amount"]),
            vault_shares=int(args["vaultShares"]),
        )
    if event_name == WithdrawnCompletedEvent.event_name:
        return WithdrawnCompletedEvent(
            **common,
            principal=int(args["principal"]),
            total_yield=int(args["yield"]),
            user_yield=int(args["userYield"]),
            donated_yield=int(args["donatedYield"]),
        )
    if event_name == WithdrawnEarlyEvent.event_name:
        return WithdrawnEarlyEvent(
            **common,
            amount=int(args["amount"]),
            penalty=int(args["penalty"]),
            penalty_to_rewards=int(args["penaltyToRewards"]),
            penalty_to_treasury=int(args["penaltyToTreasury"]),
        )
    raise ValueError(f"Unknown event: {event_name}")


# Global client instance
_client: Optional[ChainClient] = None


async def get_chain_client() -> ChainClient:
    """Get or create a global chain client instance."""
    global _client
    if _client is None:
        _client = Web3ChainClient()
    return _client


async def close_chain_client() -> None:
    """Close the global chain client instance."""
    global _client
    if _client:
        await _client.close()
        _client = None
