"""
Test streak calculation.
"""

from datetime import date, timedelta

import pytest

from stacksave.sync.streaks import StreakCalculator, compute_current_streak


TODAY = date(2025, 3, 10)


def days_ago(*offsets):
    return [TODAY - timedelta(days=offset) for offset in offsets]


def test_consecutive_days_ending_today():
    assert compute_current_streak(days_ago(0, 1, 2), TODAY) == 3


def test_gap_ends_streak():
    assert compute_current_streak(days_ago(0, 1, 3, 4), TODAY) == 2


def test_missing_today_breaks_streak():
    assert compute_current_streak(days_ago(1, 2, 3), TODAY) == 0


def test_no_days():
    assert compute_current_streak([], TODAY) == 0


@pytest.mark.asyncio
async def test_update_streak_persists_current_and_longest(store):
    store.seed_goal(1)
    store.seed_daily_saves(1, TODAY, [0, 1, 2])

    goal = await StreakCalculator(store).update_streak(1, today=TODAY)

    assert goal.current_streak == 3
    assert goal.longest_streak == 3
    assert goal.last_streak_update is not None


@pytest.mark.asyncio
async def test_longest_streak_is_kept(store):
    store.seed_goal(1, current_streak=7, longest_streak=7)
    store.seed_daily_saves(1, TODAY, [1, 2])

    goal = await StreakCalculator(store).update_streak(1, today=TODAY)

    assert goal.current_streak == 0
    assert goal.longest_streak == 7


@pytest.mark.asyncio
async def test_no_saves_resets_current_only(store):
    store.seed_goal(1, current_streak=2, longest_streak=4)

    goal = await StreakCalculator(store).update_streak(1, today=TODAY)

    assert goal.current_streak == 0
    assert goal.longest_streak == 4
    assert goal.last_streak_update is not None


@pytest.mark.asyncio
async def test_missing_goal_is_skipped(store):
    assert await StreakCalculator(store).update_streak(42, today=TODAY) is None
