"""
Manual, pull-based resync of mirrored goals.
"""

from typing import List

import structlog

from stacksave.chain.client import ChainClient
from stacksave.core.exceptions import SyncError
from stacksave.mirror.store import MirrorStore
from stacksave.models.base import utc_now
from stacksave.models.goal import Goal


logger = structlog.get_logger(__name__)


class ManualSyncService:
    """
    Operator-triggered recovery independent of the event pipeline.

    Only the chain-derived goal fields are rewritten; transaction history
    and daily saves stay as the event pipeline last left them. Errors are
    never swallowed here.
    """

    def __init__(self, chain_client: ChainClient, store: MirrorStore):
        self.chain_client = chain_client
        self.store = store
        self.logger = logger.bind(service="manual_sync")

    async def sync_goal(self, goal_id: int) -> Goal:
        """
        Overwrite one goal with a fresh chain read.

        Raises:
            ChainClientError: the chain read failed
            SyncError: the goal does not exist on chain
        """
        self.logger.info("🔄 Manually syncing goal", goal_id=goal_id)

        try:
            state = await self.chain_client.read_goal_state(goal_id)
            if not state.goal.exists:
                raise SyncError(
                    f"Goal {goal_id} does not exist on chain",
                    {"goal_id": goal_id}
                )

            fields = state.mirror_fields()
            fields["last_synced_at"] = utc_now()
            goal = await self.store.upsert_goal_state(goal_id, fields, chain_goal=state.goal)
        except Exception as e:
            self.logger.error("❌ Error syncing goal", goal_id=goal_id, error=str(e))
            raise

        self.logger.info("✅ Goal synced successfully", goal_id=goal_id)
        return goal

    async def sync_user_goals(self, owner_address: str) -> List[Goal]:
        """
        Sync every mirrored goal of an owner, one after another.

        The first failure stops the loop and propagates; goals synced
        before it keep their new state.
        """
        owner = owner_address.lower()
        self.logger.info("🔄 Syncing all goals for user", owner=owner)

        goals = await self.store.list_goals_by_owner(owner)
        synced: List[Goal] = []
        for goal in goals:
            try:
                synced.append(await self.sync_goal(goal.id))
            except Exception:
                self.logger.error(
                    "❌ Aborting user sync",
                    owner=owner,
                    failed_goal_id=goal.id,
                    synced_count=len(synced),
                    remaining=len(goals) - len(synced)
                )
                raise

        self.logger.info("✅ All goals synced for user", owner=owner, goals=len(synced))
        return synced
