"""
Achievement Engine

Records one-time achievement unlocks and pays their XP reward.

Deciding *when* an achievement is earned is done by the gamification
service against materialized stats; this module's contract is only:
unlock idempotently, pay `xp_reward` once (reason "achievement_unlocked").
"""

from typing import Dict, List, Optional
import logging

from reading_journey.db.base import GamificationSession, GamificationStore
from reading_journey.exceptions import InvalidRequirementError, RecordNotFoundError
from reading_journey.gamification.requirements import parse_requirement, requirement_progress
from reading_journey.gamification.xp_system import award_xp_in_session, require_user
from reading_journey.models.gamification import ActivityStats, Achievement, UnlockResult, UserAchievement
from reading_journey.monitoring.prometheus_metrics import record_achievement_unlock

logger = logging.getLogger(__name__)

ACHIEVEMENT_REASON = "achievement_unlocked"


async def unlock_in_session(
    session: GamificationSession,
    user_id: str,
    achievement_id: str,
    achievement: Optional[Achievement] = None,
) -> UnlockResult:
    """
    Unlock an achievement inside an open transaction

    Returns:
        UnlockResult(unlocked=False) when already unlocked (no side effects)

    Raises:
        RecordNotFoundError: achievement is not in the catalog
    """
    user_id = require_user(user_id, "unlock_achievement")
    if achievement is None:
        achievement = await session.get_achievement(achievement_id)
    if achievement is None:
        raise RecordNotFoundError(
            f"Achievement {achievement_id} not found",
            record_type="Achievement",
            record_id=achievement_id,
            user_id=user_id,
        )

    # game state row must exist before the unlock references it
    await session.get_game_state(user_id)
    inserted = await session.insert_user_achievement(
        UserAchievement(user_id=user_id, achievement_id=achievement_id)
    )
    if not inserted:
        logger.debug(f"Achievement {achievement_id} already unlocked for user {user_id}")
        return UnlockResult(unlocked=False, achievement_id=achievement_id)

    xp_result = None
    if achievement.xp_reward > 0:
        xp_result = await award_xp_in_session(
            session, user_id, achievement.xp_reward, ACHIEVEMENT_REASON, achievement_id
        )

    record_achievement_unlock()
    logger.info(
        f"User {user_id} unlocked achievement: {achievement_id} "
        f"({achievement.name}) +{achievement.xp_reward} XP"
    )

    return UnlockResult(
        unlocked=True,
        achievement_id=achievement_id,
        xp_awarded=achievement.xp_reward,
        xp_result=xp_result,
    )


async def unlock(store: GamificationStore, user_id: str, achievement_id: str) -> UnlockResult:
    """Unlock an achievement in its own transaction"""
    user_id = require_user(user_id, "unlock_achievement")
    async with store.transaction(user_id) as session:
        return await unlock_in_session(session, user_id, achievement_id)


async def get_all_achievements(store: GamificationStore) -> List[Achievement]:
    async with store.reader() as session:
        return await session.list_achievements()


async def is_achievement_unlocked(store: GamificationStore, user_id: str, achievement_id: str) -> bool:
    async with store.reader() as session:
        unlocked = await session.list_user_achievements(user_id)
    return any(ua.achievement_id == achievement_id for ua in unlocked)


def achievement_progress(achievement: Achievement, stats: ActivityStats) -> Dict:
    """
    Progress toward a locked achievement

    Malformed requirements report zero progress.
    """
    try:
        requirement = parse_requirement(achievement.requirement, catalog_id=achievement.id)
    except InvalidRequirementError:
        return {"current": 0, "required": 0, "percentage": 0}
    return requirement_progress(requirement, stats)


async def get_user_achievements(
    store: GamificationStore,
    user_id: str,
    stats: Optional[ActivityStats] = None,
) -> Dict[str, any]:
    """
    Get user's achievements, with progress for locked ones when stats are given

    Returns:
        {
            'unlocked': [{'achievement': Achievement, 'unlocked_at': datetime}],
            'locked': [{'achievement': Achievement, 'progress': dict}],
            'total_unlocked': int,
            'total_achievements': int,
            'total_xp_from_achievements': int
        }
    """
    async with store.reader() as session:
        catalog = await session.list_achievements()
        user_achievements = await session.list_user_achievements(user_id)

    unlocked_at = {ua.achievement_id: ua.unlocked_at for ua in user_achievements}

    unlocked = []
    locked = []
    total_xp = 0
    for achievement in catalog:
        if achievement.id in unlocked_at:
            unlocked.append({"achievement": achievement, "unlocked_at": unlocked_at[achievement.id]})
            total_xp += achievement.xp_reward
        else:
            progress = achievement_progress(achievement, stats) if stats else None
            locked.append({"achievement": achievement, "progress": progress})

    # Most recent first
    unlocked.sort(key=lambda x: x["unlocked_at"], reverse=True)

    return {
        "unlocked": unlocked,
        "locked": locked,
        "total_unlocked": len(unlocked),
        "total_achievements": len(catalog),
        "total_xp_from_achievements": total_xp,
    }
