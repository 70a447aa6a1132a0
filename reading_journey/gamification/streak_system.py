"""
Daily Reading Streak

One streak per user, advanced at most once per calendar day (in the
canonical timezone) by any qualifying action: starting a book, finishing
a book, or logging reading.

Logic:
- Already active today: no change
- Active yesterday: streak + 1
- First activity, or a gap of 2+ days: streak restarts at 1
- longest_streak tracks the historical max
- Each increase pays 5 XP x streak days, capped at 50 (day 10 onward)

streak_freezes is stored on the game state but no rule consumes it; a missed
day always breaks the streak.
"""

from typing import Dict, Optional
from datetime import date
import logging

from reading_journey.db.base import GamificationSession, GamificationStore
from reading_journey.gamification.xp_system import XP_AMOUNTS, award_xp_in_session, require_user
from reading_journey.models.gamification import StreakResult
from reading_journey.utils.datetime_helpers import previous_day, today_canonical

logger = logging.getLogger(__name__)

STREAK_BONUS_CAP = 50
STREAK_REASON = "daily_streak"


def streak_bonus(streak: int) -> int:
    """XP paid on the day a streak reaches `streak` days"""
    return min(streak * XP_AMOUNTS["DAILY_STREAK_BONUS"], STREAK_BONUS_CAP)


async def touch_activity_in_session(
    session: GamificationSession,
    user_id: str,
    today: Optional[date] = None,
) -> StreakResult:
    """
    Record a qualifying activity inside an open transaction

    Args:
        session: Session from store.transaction(user_id)
        user_id: User ID
        today: Canonical calendar date of the activity (defaults to now)

    Returns:
        StreakResult(streak, increased, longest_streak, bonus_xp)
    """
    user_id = require_user(user_id, "touch_activity")
    if today is None:
        today = today_canonical()

    state = await session.get_game_state(user_id)
    last_date = state.last_active_date
    old_streak = state.current_streak

    if last_date == today:
        return StreakResult(
            streak=state.current_streak,
            increased=False,
            longest_streak=state.longest_streak,
        )

    if last_date is not None and last_date > today:
        # Activity stamped before the recorded day; leave the streak alone
        logger.warning(
            f"Ignoring out-of-order activity for user {user_id}: {today} < {last_date}"
        )
        return StreakResult(
            streak=state.current_streak,
            increased=False,
            longest_streak=state.longest_streak,
        )

    if last_date == previous_day(today):
        state.current_streak += 1
    else:
        if last_date is not None:
            logger.info(
                f"User {user_id} streak broken. Was {old_streak}, "
                f"last active {last_date}"
            )
        state.current_streak = 1

    state.longest_streak = max(state.longest_streak, state.current_streak)
    state.last_active_date = today
    await session.save_game_state(state)

    logger.info(
        f"Updated streak for user {user_id}: {old_streak} → {state.current_streak} days"
    )

    bonus = streak_bonus(state.current_streak)
    xp_result = await award_xp_in_session(session, user_id, bonus, STREAK_REASON)

    return StreakResult(
        streak=state.current_streak,
        increased=True,
        longest_streak=state.longest_streak,
        bonus_xp=bonus,
        xp_result=xp_result,
    )


async def touch_activity(
    store: GamificationStore,
    user_id: str,
    today: Optional[date] = None,
) -> StreakResult:
    """Record a qualifying activity in its own transaction"""
    user_id = require_user(user_id, "touch_activity")
    async with store.transaction(user_id) as session:
        return await touch_activity_in_session(session, user_id, today)


async def get_streak_info(store: GamificationStore, user_id: str) -> Dict[str, any]:
    """
    Get the user's streak for display

    current_streak is reported as 0 once a day has been missed, even though
    the stored value only resets on the next activity.
    """
    async with store.reader() as session:
        state = await session.get_game_state(user_id)

    today = today_canonical()
    alive = state.last_active_date in (today, previous_day(today))

    return {
        "user_id": user_id,
        "current_streak": state.current_streak if alive else 0,
        "longest_streak": state.longest_streak,
        "streak_freezes": state.streak_freezes,
        "last_active_date": state.last_active_date,
        "active_today": state.last_active_date == today,
    }
