"""
Daily-save streak calculation.
"""

from datetime import date, timedelta
from typing import Iterable, Optional

import structlog

from stacksave.chain.types import utc_today
from stacksave.mirror.store import MirrorStore
from stacksave.models.base import utc_now
from stacksave.models.goal import Goal


logger = structlog.get_logger(__name__)


def compute_current_streak(days: Iterable[date], today: date) -> int:
    """
    Count consecutive days ending today.

    Args:
        days: Days with at least one deposit, newest first
        today: The day the streak must end on

    Returns:
        Number of leading days that equal today, today - 1, today - 2, ...
    """
    streak = 0
    for index, day in enumerate(days):
        if day != today - timedelta(days=index):
            break
        streak += 1
    return streak


class StreakCalculator:
    """Derives current and longest streaks from a goal's daily saves."""

    def __init__(self, store: MirrorStore):
        self.store = store
        self.logger = logger.bind(service="streak_calculator")

    async def update_streak(self, goal_id: int, today: Optional[date] = None) -> Optional[Goal]:
        """
        Recompute and persist streaks for a goal.

        A day without a deposit breaks the streak, today included: a goal
        with saves up to yesterday but none today has a current streak of 0.
        The longest streak only ever grows.
        """
        goal = await self.store.get_goal(goal_id)
        if goal is None:
            self.logger.warning("Goal not mirrored, skipping streak update", goal_id=goal_id)
            return None

        saves = await self.store.list_daily_saves(goal_id)
        if not saves:
            return await self.store.upsert_goal_state(goal_id, {
                "current_streak": 0,
                "last_streak_update": utc_now(),
            })

        today = today or utc_today()
        current = compute_current_streak((save.date for save in saves), today)
        longest = max(goal.longest_streak or 0, current)

        self.logger.debug(
            "Streak computed",
            goal_id=goal_id,
            current_streak=current,
            longest_streak=longest
        )

        return await self.store.upsert_goal_state(goal_id, {
            "current_streak": current,
            "longest_streak": longest,
            "last_streak_update": utc_now(),
        })
