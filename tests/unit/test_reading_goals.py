"""Unit tests for reading goals (reading_journey/gamification/reading_goals.py)"""
import pytest
from datetime import date

from reading_journey.exceptions import RecordNotFoundError, ValidationError
from reading_journey.gamification.reading_goals import (
    bump_goals_in_session,
    get_reading_goals,
    set_reading_goal,
    update_goal_progress,
)
from reading_journey.gamification.xp_system import get_xp_history
from reading_journey.models.gamification import ReadingGoalType


@pytest.mark.asyncio
async def test_set_goal_upserts_and_resets_progress(store, test_user_id):
    goal = await set_reading_goal(store, test_user_id, ReadingGoalType.YEARLY_BOOKS, 24, year=2024)
    await update_goal_progress(store, goal.id, 5)

    replaced = await set_reading_goal(store, test_user_id, ReadingGoalType.YEARLY_BOOKS, 30, year=2024)

    assert replaced.id == goal.id
    assert replaced.target == 30
    assert replaced.progress == 0
    assert len(await get_reading_goals(store, test_user_id)) == 1


@pytest.mark.asyncio
async def test_goals_are_keyed_by_period(store, test_user_id):
    await set_reading_goal(store, test_user_id, ReadingGoalType.MONTHLY_BOOKS, 2, year=2024, month=3)
    await set_reading_goal(store, test_user_id, ReadingGoalType.MONTHLY_BOOKS, 3, year=2024, month=4)

    goals = await get_reading_goals(store, test_user_id)
    assert sorted(g.month for g in goals) == [3, 4]


@pytest.mark.asyncio
async def test_update_progress(store, test_user_id):
    goal = await set_reading_goal(store, test_user_id, ReadingGoalType.DAILY_PAGES, 30)

    updated = await update_goal_progress(store, goal.id, 12)

    assert updated.progress == 12
    assert (await get_reading_goals(store, test_user_id))[0].progress == 12


@pytest.mark.asyncio
async def test_update_unknown_goal(store):
    with pytest.raises(RecordNotFoundError):
        await update_goal_progress(store, "missing-goal", 3)


@pytest.mark.asyncio
@pytest.mark.parametrize("target", [0, -1, 2.5])
async def test_invalid_target(store, test_user_id, target):
    with pytest.raises(ValidationError):
        await set_reading_goal(store, test_user_id, ReadingGoalType.YEARLY_BOOKS, target)


@pytest.mark.asyncio
async def test_bump_only_current_period(store, test_user_id):
    await set_reading_goal(store, test_user_id, ReadingGoalType.YEARLY_BOOKS, 20, year=2024)
    await set_reading_goal(store, test_user_id, ReadingGoalType.YEARLY_BOOKS, 20, year=2023)
    await set_reading_goal(store, test_user_id, ReadingGoalType.MONTHLY_BOOKS, 2, year=2024, month=3)
    await set_reading_goal(store, test_user_id, ReadingGoalType.MONTHLY_BOOKS, 2, year=2024, month=2)

    async with store.transaction(test_user_id) as session:
        bumped = await bump_goals_in_session(
            session, test_user_id,
            {ReadingGoalType.YEARLY_BOOKS, ReadingGoalType.MONTHLY_BOOKS}, 1, date(2024, 3, 15),
        )

    assert sorted((g.type.value, g.year, g.month) for g in bumped) == [
        ("monthly_books", 2024, 3),
        ("yearly_books", 2024, None),
    ]


@pytest.mark.asyncio
async def test_goals_never_pay_xp(store, test_user_id):
    goal = await set_reading_goal(store, test_user_id, ReadingGoalType.DAILY_MINUTES, 10)
    await update_goal_progress(store, goal.id, 10)

    assert await get_xp_history(store, test_user_id) == []
