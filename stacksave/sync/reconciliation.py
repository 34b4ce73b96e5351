"""
Reconciliation of contract events into the local mirror.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Optional

import structlog

from stacksave.chain.client import ChainClient
from stacksave.chain.types import EVENT_TYPES, ChainEvent, utc_today
from stacksave.core.exceptions import ReconciliationError
from stacksave.mirror.store import MirrorStore, TransactionRecord
from stacksave.models.base import utc_now
from .streaks import StreakCalculator


logger = structlog.get_logger(__name__)


@dataclass
class SyncStats:
    """Counters for events handled by the reconciliation engine."""
    events_received: int = 0
    events_applied: int = 0
    events_dropped: int = 0
    duplicate_transactions: int = 0
    last_applied_block: Optional[int] = None
    last_event_at: Optional[datetime] = None
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.last_event_at:
            data["last_event_at"] = self.last_event_at.isoformat()
        return data


class ReconciliationEngine:
    """
    Applies chain events to the mirror by re-reading authoritative state.

    The event payload only selects the goal and feeds the audit row; the
    numeric goal fields always come from a fresh getGoalDetails read and
    replace whatever the mirror holds. Replaying, duplicating or reordering
    events therefore converges on the chain's current state.
    """

    def __init__(
        self,
        chain_client: ChainClient,
        store: MirrorStore,
        streaks: Optional[StreakCalculator] = None,
    ):
        self.chain_client = chain_client
        self.store = store
        self.streaks = streaks or StreakCalculator(store)
        self.stats = SyncStats()
        self.logger = logger.bind(service="reconciliation_engine")

    async def handle_event(self, event: ChainEvent) -> bool:
        """
        Handler boundary for subscribed events.

        Failures are logged and the event is dropped; the next event for
        the same goal or a manual sync brings the mirror up to date.

        Returns:
            True when the event was applied
        """
        self.stats.events_received += 1
        self.stats.last_event_at = utc_now()

        try:
            await self.reconcile(event)
        except Exception as e:
            self.stats.events_dropped += 1
            self.stats.last_error = str(e)
            self.logger.error(
                "Failed to reconcile event, dropping it",
                event_name=event.event_name,
                goal_id=event.goal_id,
                tx_hash=event.tx_hash,
                error=str(e),
                error_type=type(e).__name__
            )
            return False

        self.stats.events_applied += 1
        if event.block_number is not None:
            self.stats.last_applied_block = max(
                self.stats.last_applied_block or 0, event.block_number
            )
        return True

    async def reconcile(self, event: ChainEvent) -> None:
        """Apply a single event to the mirror. Raises on any failure."""
        if type(event) not in EVENT_TYPES.values():
            raise ReconciliationError(
                f"Unsupported event type: {type(event).__name__}",
                {"tx_hash": event.tx_hash}
            )

        goal_id = event.goal_id
        self.logger.info(
            "Processing event",
            event_name=event.event_name,
            goal_id=goal_id,
            tx_hash=event.tx_hash,
            block_number=event.block_number,
            amount=event.recorded_amount
        )

        state = await self.chain_client.read_goal_state(goal_id)
        if not state.goal.exists:
            raise ReconciliationError(
                f"Goal {goal_id} does not exist on chain",
                {"goal_id": goal_id, "tx_hash": event.tx_hash}
            )

        now = utc_now()
        fields = state.mirror_fields()
        fields["last_synced_at"] = now
        if event.is_deposit:
            fields["last_deposit_time"] = now

        await self.store.upsert_goal_state(goal_id, fields, chain_goal=state.goal)

        # Audit row and daily save commit together; a duplicate adds nothing
        inserted = await self.store.record_transaction(
            TransactionRecord(
                goal_id=goal_id,
                tx_hash=event.tx_hash,
                type=event.transaction_type.value,
                amount=event.recorded_amount,
                block_number=event.block_number,
                timestamp=now,
            ),
            save_day=utc_today() if event.is_deposit else None,
        )
        if not inserted:
            self.stats.duplicate_transactions += 1

        if event.is_deposit:
            await self.streaks.update_streak(goal_id)

        self.logger.info(
            "Mirror synced",
            event_name=event.event_name,
            goal_id=goal_id,
            deposited_amount=fields["deposited_amount"],
            current_value=fields["current_value"],
            status=fields["status"]
        )
