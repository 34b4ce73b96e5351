"""
StackSave backend: keeps a relational mirror of on-chain savings goals in sync with the ledger.
"""

__version__ = "0.1.0"
