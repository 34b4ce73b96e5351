"""
Local mirror of on-chain goal state.
"""

from .store import MirrorStore, SqlMirrorStore, TransactionRecord

__all__ = ["MirrorStore", "SqlMirrorStore", "TransactionRecord"]
