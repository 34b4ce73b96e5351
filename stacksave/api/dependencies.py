"""
API dependencies for FastAPI endpoints.
Provides path parameter validation and access to the sync container.
"""

import re

from fastapi import HTTPException, Path, Request, status

import structlog

from stacksave.sync.container import SyncContainer


logger = structlog.get_logger(__name__)


ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def validate_address(address: str) -> bool:
    """Check that a string is a 20-byte hex account address."""
    return bool(address) and ADDRESS_PATTERN.match(address) is not None


async def validate_address_param(
    address: str = Path(..., description="Owner account address")
) -> str:
    """Validate and lowercase an address path parameter."""
    if not validate_address(address):
        logger.warning("Invalid address provided", address=address)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "INVALID_ADDRESS",
                "message": "Address must be 0x followed by 40 hex characters"
            }
        )
    return address.lower()


async def validate_goal_id_param(
    goal_id: int = Path(..., description="On-chain goal id")
) -> int:
    """Validate goal id path parameter."""
    if goal_id < 0:
        logger.warning("Invalid goal id provided", goal_id=goal_id)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "INVALID_GOAL_ID",
                "message": "Goal id must not be negative"
            }
        )
    return goal_id


async def get_sync_container(request: Request) -> SyncContainer:
    """Sync container created by the application lifespan."""
    container = getattr(request.app.state, "sync_container", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": "SERVICE_UNAVAILABLE",
                "message": "Sync engine is not initialized"
            }
        )
    return container
