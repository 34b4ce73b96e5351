"""
Supervisor for the contract event subscription.

Keeps one subscription per tracked event alive and reconnects with linear
backoff after transport failures.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from stacksave.chain.client import ChainClient
from stacksave.core.config import ChainConfig, settings
from stacksave.core.exceptions import SubscriptionError
from .reconciliation import ReconciliationEngine


logger = structlog.get_logger(__name__)


class ListenerState(Enum):
    """Lifecycle state of the event listener."""
    STOPPED = "stopped"
    LISTENING = "listening"
    RECONNECTING = "reconnecting"


@dataclass
class ListenerStatus:
    """Snapshot of the listener exposed to health checks."""
    state: ListenerState
    reconnect_attempts: int
    max_reconnect_attempts: int
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_listening(self) -> bool:
        return self.state is ListenerState.LISTENING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "is_listening": self.is_listening,
            "reconnect_attempts": self.reconnect_attempts,
            "max_reconnect_attempts": self.max_reconnect_attempts,
            "stats": self.stats,
        }


class SubscriptionSupervisor:
    """
    Owns the event subscription lifecycle.

    States: STOPPED -> LISTENING -> RECONNECTING -> LISTENING | STOPPED.

    Registration and teardown run under one lock, and each reconnect cycle
    is a single task. A cycle re-checks the state after its backoff sleep,
    so a stop issued while the sleep is pending wins over the restart.
    """

    def __init__(
        self,
        chain_client: ChainClient,
        engine: ReconciliationEngine,
        max_reconnect_attempts: Optional[int] = None,
        reconnect_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.chain_client = chain_client
        self.engine = engine
        self.max_reconnect_attempts = (
            settings.listener_max_reconnect_attempts
            if max_reconnect_attempts is None else max_reconnect_attempts
        )
        self.reconnect_delay = (
            settings.listener_reconnect_delay
            if reconnect_delay is None else reconnect_delay
        )
        self._sleep = sleep
        self.logger = logger.bind(service="subscription_supervisor")

        self._state = ListenerState.STOPPED
        self._reconnect_attempts = 0
        self._reconnect_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ListenerState:
        return self._state

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    def get_status(self) -> ListenerStatus:
        """Current state and reconnect counter for health checks."""
        return ListenerStatus(
            state=self._state,
            reconnect_attempts=self._reconnect_attempts,
            max_reconnect_attempts=self.max_reconnect_attempts,
            stats=self.engine.stats.to_dict(),
        )

    async def start_listening(self) -> None:
        """
        Register handlers for all tracked events and the transport error handler.

        Raises:
            SubscriptionError: registration failed; the reconnect path has
                already been started
        """
        if self._state is ListenerState.LISTENING:
            self.logger.warning("Event listener already running")
            return

        # An explicit start replaces a pending backoff
        await self._cancel_reconnect()

        self.logger.info("Starting event listener", events=list(ChainConfig.TRACKED_EVENTS))
        async with self._lock:
            try:
                await self._register()
            except Exception as e:
                self.logger.error("Failed to start event listener", error=str(e))
                await self._unregister_all()
                failure = e
            else:
                failure = None
                self._state = ListenerState.LISTENING
                self._reconnect_attempts = 0

        if failure is not None:
            self._begin_reconnect()
            raise SubscriptionError(
                f"Failed to start event listener: {failure}",
                {"reconnect_attempts": self._reconnect_attempts}
            ) from failure

        self.logger.info("✅ Event listener started successfully")

    async def stop_listening(self) -> None:
        """Unregister everything and stop. Leaves the attempt counter untouched."""
        if self._state is ListenerState.STOPPED:
            self.logger.warning("Event listener not running")
            return

        self._state = ListenerState.STOPPED
        await self._cancel_reconnect()

        async with self._lock:
            await self._unregister_all()
            self._state = ListenerState.STOPPED

        self.logger.info("🛑 Event listener stopped")

    async def wait_for_reconnect(self) -> None:
        """Wait until a pending reconnect cycle has finished."""
        task = self._reconnect_task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def _on_transport_error(self, error: Exception) -> None:
        self.logger.error("❌ Transport error", error=str(error), state=self._state.value)
        if self._state is ListenerState.STOPPED:
            return
        self._begin_reconnect()

    def _begin_reconnect(self) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            # Already recovering; further errors fold into this cycle
            return
        self._state = ListenerState.RECONNECTING
        self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    async def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _reconnect_loop(self) -> None:
        """Retry registration with linear backoff until it succeeds or attempts run out."""
        while True:
            if self._reconnect_attempts >= self.max_reconnect_attempts:
                self.logger.error(
                    "❌ Max reconnection attempts reached. Stopping listener.",
                    max_reconnect_attempts=self.max_reconnect_attempts
                )
                async with self._lock:
                    await self._unregister_all()
                    self._state = ListenerState.STOPPED
                return

            self._reconnect_attempts += 1
            delay = self.reconnect_delay * self._reconnect_attempts
            self.logger.info(
                "🔄 Attempting to reconnect",
                attempt=self._reconnect_attempts,
                max_reconnect_attempts=self.max_reconnect_attempts,
                delay=delay
            )

            async with self._lock:
                await self._unregister_all()

            await self._sleep(delay)

            async with self._lock:
                if self._state is not ListenerState.RECONNECTING:
                    self.logger.info("Listener stopped during backoff, abandoning reconnect")
                    return

                try:
                    await self._register()
                except Exception as e:
                    self.logger.error(
                        "Reconnect attempt failed",
                        attempt=self._reconnect_attempts,
                        error=str(e)
                    )
                    await self._unregister_all()
                    continue

                self._state = ListenerState.LISTENING
                self._reconnect_attempts = 0

            self.logger.info("✅ Event listener reconnected")
            return

    async def _register(self) -> None:
        for event_name in ChainConfig.TRACKED_EVENTS:
            await self.chain_client.subscribe(event_name, self.engine.handle_event)
        await self.chain_client.on_transport_error(self._on_transport_error)

    async def _unregister_all(self) -> None:
        for event_name in ChainConfig.TRACKED_EVENTS:
            try:
                await self.chain_client.unsubscribe(event_name)
            except Exception as e:
                self.logger.error("Error removing event handler", event_name=event_name, error=str(e))
        try:
            await self.chain_client.remove_transport_error_handler()
        except Exception as e:
            self.logger.error("Error removing transport error handler", error=str(e))
