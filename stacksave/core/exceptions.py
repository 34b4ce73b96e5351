"""
Custom exception classes for the application.
Provides structured error handling across all modules.
"""

from typing import Any, Optional, Dict


class StackSaveException(Exception):
    """Base exception class for StackSave backend."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(StackSaveException):
    """Raised when there's a configuration error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class DatabaseError(StackSaveException):
    """Raised when there's a database error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "DATABASE_ERROR", details)


class ChainClientError(StackSaveException):
    """Raised when a chain RPC call fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CHAIN_CLIENT_ERROR", details)


class SubscriptionError(StackSaveException):
    """Raised when event subscriptions cannot be registered."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "SUBSCRIPTION_ERROR", details)


class ReconciliationError(StackSaveException):
    """Raised when a chain event cannot be applied to the mirror."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "RECONCILIATION_ERROR", details)


class SyncError(StackSaveException):
    """Raised when a manual sync fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "SYNC_ERROR", details)


class NotFoundError(StackSaveException):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "NOT_FOUND", details)


class GoalNotFoundError(NotFoundError):
    """Raised when a goal is not present in the mirror."""

    def __init__(self, goal_id: int):
        super().__init__(
            f"Goal not found: {goal_id}",
            {"goal_id": goal_id}
        )
