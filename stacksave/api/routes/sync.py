"""
Sync routes for manual recovery and listener control.

Provides endpoints for:
- Manual resync of one goal or all goals of an owner
- Listener status
- Starting and stopping the event listener
"""

from fastapi import APIRouter, Depends

import structlog

from stacksave.api.dependencies import (
    get_sync_container,
    validate_address_param,
    validate_goal_id_param,
)
from stacksave.api.schemas.common import GoalResponse, SuccessResponse, create_success_response
from stacksave.sync.container import SyncContainer


logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post(
    "/goals/{goal_id}/sync",
    response_model=SuccessResponse,
    summary="Sync Goal",
    description="Overwrite one mirrored goal with a fresh read of its on-chain state"
)
async def sync_goal(
    goal_id: int = Depends(validate_goal_id_param),
    container: SyncContainer = Depends(get_sync_container),
):
    """
    Manually resync a single goal.

    Creates the mirror row when the goal is not yet mirrored. Transaction
    history and daily saves are left untouched.
    """
    logger.info("Manual goal sync requested via API", goal_id=goal_id)
    goal = await container.manual_sync.sync_goal(goal_id)
    return create_success_response(
        GoalResponse.model_validate(goal).model_dump(mode="json"),
        message=f"Goal {goal_id} synced"
    )


@router.post(
    "/users/{address}/sync",
    response_model=SuccessResponse,
    summary="Sync User Goals",
    description="Resync every mirrored goal of an owner, stopping at the first failure"
)
async def sync_user_goals(
    address: str = Depends(validate_address_param),
    container: SyncContainer = Depends(get_sync_container),
):
    """Manually resync all goals mirrored for an owner address."""
    logger.info("Manual user sync requested via API", owner=address)
    goals = await container.manual_sync.sync_user_goals(address)
    return create_success_response(
        {
            "owner": address,
            "synced_count": len(goals),
            "goals": [GoalResponse.model_validate(g).model_dump(mode="json") for g in goals],
        },
        message=f"{len(goals)} goals synced"
    )


@router.get(
    "/sync/status",
    response_model=SuccessResponse,
    summary="Listener Status",
    description="Get the event listener state, reconnect counter and event statistics"
)
async def get_sync_status(container: SyncContainer = Depends(get_sync_container)):
    status = container.supervisor.get_status()
    return create_success_response(status.to_dict())


@router.post(
    "/sync/start",
    response_model=SuccessResponse,
    summary="Start Listener",
    description="Register event subscriptions and start reconciling events"
)
async def start_listener(container: SyncContainer = Depends(get_sync_container)):
    await container.supervisor.start_listening()
    return create_success_response(
        container.supervisor.get_status().to_dict(),
        message="Event listener started"
    )


@router.post(
    "/sync/stop",
    response_model=SuccessResponse,
    summary="Stop Listener",
    description="Remove event subscriptions and cancel any pending reconnect"
)
async def stop_listener(container: SyncContainer = Depends(get_sync_container)):
    await container.supervisor.stop_listening()
    return create_success_response(
        container.supervisor.get_status().to_dict(),
        message="Event listener stopped"
    )
