"""
Wiring of the sync components around one chain client and one mirror store.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from stacksave.chain.client import ChainClient, get_chain_client, close_chain_client
from stacksave.core.database import init_database
from stacksave.mirror.store import MirrorStore, SqlMirrorStore
from .manual import ManualSyncService
from .reconciliation import ReconciliationEngine
from .streaks import StreakCalculator
from .supervisor import SubscriptionSupervisor


logger = structlog.get_logger(__name__)


@dataclass
class SyncContainer:
    """The upward surface of the sync engine."""
    chain_client: ChainClient
    store: MirrorStore
    engine: ReconciliationEngine
    supervisor: SubscriptionSupervisor
    manual_sync: ManualSyncService

    @classmethod
    def build(cls, chain_client: ChainClient, store: MirrorStore, **supervisor_options) -> "SyncContainer":
        """Construct every component on top of the given collaborators."""
        engine = ReconciliationEngine(chain_client, store, StreakCalculator(store))
        return cls(
            chain_client=chain_client,
            store=store,
            engine=engine,
            supervisor=SubscriptionSupervisor(chain_client, engine, **supervisor_options),
            manual_sync=ManualSyncService(chain_client, store),
        )


# Global container instance
_container: Optional[SyncContainer] = None


async def get_sync_container() -> SyncContainer:
    """Get or create the global sync container backed by the configured database and RPC."""
    global _container
    if _container is None:
        session_maker = await init_database()
        chain_client = await get_chain_client()
        _container = SyncContainer.build(chain_client, SqlMirrorStore(session_maker))
        logger.info("Sync container initialized")
    return _container


async def shutdown_sync_container() -> None:
    """Stop the listener and release the chain client."""
    global _container
    if _container is None:
        return
    await _container.supervisor.stop_listening()
    await close_chain_client()
    _container = None
    logger.info("Sync container shut down")
