"""
Ledger-to-mirror synchronization engine.
"""

from .streaks import StreakCalculator, compute_current_streak
from .reconciliation import ReconciliationEngine, SyncStats
from .supervisor import SubscriptionSupervisor, ListenerState, ListenerStatus
from .manual import ManualSyncService
from .container import SyncContainer, get_sync_container, shutdown_sync_container

__all__ = [
    "StreakCalculator",
    "compute_current_streak",
    "ReconciliationEngine",
    "SyncStats",
    "SubscriptionSupervisor",
    "ListenerState",
    "ListenerStatus",
    "ManualSyncService",
    "SyncContainer",
    "get_sync_container",
    "shutdown_sync_container",
]
