"""Reading goals: plain counters tracked beside XP, never rewarded"""
import logging
from datetime import date
from typing import List, Optional

from reading_journey.db.base import GamificationSession, GamificationStore
from reading_journey.exceptions import RecordNotFoundError, ValidationError
from reading_journey.gamification.xp_system import require_user
from reading_journey.models.gamification import ReadingGoal, ReadingGoalType

logger = logging.getLogger(__name__)


async def set_reading_goal(
    store: GamificationStore,
    user_id: str,
    goal_type: ReadingGoalType,
    target: int,
    year: Optional[int] = None,
    month: Optional[int] = None,
) -> ReadingGoal:
    """Create or replace the goal for (type, year, month); progress restarts at 0"""
    user_id = require_user(user_id, "set_reading_goal")
    if isinstance(target, bool) or not isinstance(target, int) or target < 1:
        raise ValidationError("Goal target must be a positive integer", field="target",
                              value=target, user_id=user_id)

    goal = ReadingGoal(
        user_id=user_id,
        type=ReadingGoalType(goal_type),
        target=target,
        year=year,
        month=month,
    )
    async with store.transaction(user_id) as session:
        await session.get_game_state(user_id)
        stored = await session.upsert_reading_goal(goal)

    logger.info(f"Set {stored.type.value} goal for user {user_id}: target {target}")
    return stored


async def update_goal_progress(store: GamificationStore, goal_id: str, progress: int) -> ReadingGoal:
    """Overwrite a goal's progress"""
    if isinstance(progress, bool) or not isinstance(progress, int) or progress < 0:
        raise ValidationError("Goal progress must be a non-negative integer",
                              field="progress", value=progress)

    async with store.reader() as session:
        goal = await session.get_reading_goal(goal_id)
    if goal is None:
        raise RecordNotFoundError(f"Reading goal {goal_id} not found",
                                  record_type="ReadingGoal", record_id=goal_id)

    async with store.transaction(goal.user_id) as session:
        goal = await session.get_reading_goal(goal_id)
        goal.progress = progress
        await session.save_reading_goal(goal)
    return goal


async def get_reading_goals(store: GamificationStore, user_id: str) -> List[ReadingGoal]:
    async with store.reader() as session:
        return await session.list_reading_goals(user_id)


def _goal_applies(goal: ReadingGoal, today: date) -> bool:
    if goal.type == ReadingGoalType.YEARLY_BOOKS:
        return goal.year in (None, today.year)
    if goal.type == ReadingGoalType.MONTHLY_BOOKS:
        return goal.year in (None, today.year) and goal.month in (None, today.month)
    return True


async def bump_goals_in_session(
    session: GamificationSession,
    user_id: str,
    goal_types: set[ReadingGoalType],
    amount: int,
    today: date,
) -> List[ReadingGoal]:
    """Add `amount` to the user's current goals of the given types"""
    bumped = []
    if amount <= 0:
        return bumped
    for goal in await session.list_reading_goals(user_id):
        if goal.type in goal_types and _goal_applies(goal, today):
            goal.progress += amount
            await session.save_reading_goal(goal)
            bumped.append(goal)
            logger.debug(
                f"Goal {goal.type.value} for user {user_id}: {goal.progress}/{goal.target}"
            )
    return bumped
