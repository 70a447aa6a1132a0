"""
XP Ledger

Append-only record of XP grants plus the per-user running total.

XP Award Rules (flat, per event):
- Finish a book: 100 XP
- Start a book: 10 XP
- Log reading: 10 XP
- Write a review: 25 XP
- Rate a book: 5 XP
- Join a club: 25 XP
- Create a club: 50 XP
- Daily streak: 5 XP x streak days, capped at 50
- Quests and achievements: per catalog row (xp_reward)

Every grant is a read-modify-write of the user's xp inside a store
transaction, so concurrent grants for one user never lose updates.
"""

from typing import Dict, List, Optional
import logging

from reading_journey.db.base import GamificationSession, GamificationStore
from reading_journey.exceptions import NotAuthenticatedError, ValidationError
from reading_journey.gamification.level_curve import level_for_xp, level_name, xp_progress
from reading_journey.models.gamification import XPAwardResult, XPEvent
from reading_journey.monitoring.prometheus_metrics import record_xp_award

logger = logging.getLogger(__name__)

XP_AMOUNTS = {
    "FINISH_BOOK": 100,
    "START_BOOK": 10,
    "LOG_READING": 10,
    "WRITE_REVIEW": 25,
    "RATE_BOOK": 5,
    "JOIN_CLUB": 25,
    "CREATE_CLUB": 50,
    "DAILY_STREAK_BONUS": 5,
}


def require_user(user_id: Optional[str], operation: str) -> str:
    """Reject events that cannot be attributed to a user"""
    if not user_id or not str(user_id).strip():
        raise NotAuthenticatedError(operation=operation)
    return str(user_id)


def _validate_grant(user_id: str, amount: int, reason: str) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("XP amount must be an integer", field="amount", value=amount, user_id=user_id)
    if amount < 0:
        raise ValidationError("XP amount cannot be negative", field="amount", value=amount, user_id=user_id)
    if not reason or not reason.strip():
        raise ValidationError("XP reason is required", field="reason", value=reason, user_id=user_id)


async def award_xp_in_session(
    session: GamificationSession,
    user_id: str,
    amount: int,
    reason: str,
    reference_id: Optional[str] = None,
    dedupe: bool = False,
) -> XPAwardResult:
    """
    Award XP inside an open transaction for `user_id`

    Args:
        session: Session from store.transaction(user_id)
        user_id: User receiving the XP
        amount: Non-negative integer amount
        reason: Classification tag ("finished_book", "daily_streak", ...)
        reference_id: Book/club/quest/achievement that triggered the grant
        dedupe: Skip the grant if (reason, reference_id) was already paid

    Returns:
        XPAwardResult with new_xp, new_level and leveled_up
    """
    user_id = require_user(user_id, "award_xp")
    _validate_grant(user_id, amount, reason)

    state = await session.get_game_state(user_id)
    old_level = state.level

    if dedupe and reference_id is not None:
        existing = await session.find_xp_event(user_id, reason, reference_id)
        if existing is not None:
            logger.debug(
                f"Skipped duplicate XP grant for user {user_id}: {reason} ({reference_id})"
            )
            return XPAwardResult(
                amount=0,
                reason=reason,
                new_xp=state.xp,
                new_level=old_level,
                previous_level=old_level,
                leveled_up=False,
                deduplicated=True,
            )

    state.xp += amount
    new_level = level_for_xp(state.xp)
    leveled_up = new_level > old_level

    await session.append_xp_event(
        XPEvent(user_id=user_id, amount=amount, reason=reason, reference_id=reference_id)
    )
    await session.save_game_state(state)

    logger.info(
        f"Awarded {amount} XP to user {user_id} for {reason}. "
        f"Total: {state.xp} XP, Level: {new_level}"
    )
    if leveled_up:
        logger.info(f"User {user_id} leveled up from {old_level} to {new_level}!")

    record_xp_award(reason, amount, leveled_up)

    return XPAwardResult(
        amount=amount,
        reason=reason,
        new_xp=state.xp,
        new_level=new_level,
        previous_level=old_level,
        leveled_up=leveled_up,
    )


async def award_xp(
    store: GamificationStore,
    user_id: str,
    amount: int,
    reason: str,
    reference_id: Optional[str] = None,
    dedupe: bool = False,
) -> XPAwardResult:
    """Award XP in its own transaction (first grant provisions the user)"""
    user_id = require_user(user_id, "award_xp")
    async with store.transaction(user_id) as session:
        return await award_xp_in_session(session, user_id, amount, reason, reference_id, dedupe)


async def get_user_xp(store: GamificationStore, user_id: str) -> Dict[str, any]:
    """
    Get user's current XP and level information

    Returns:
        {
            'user_id': str,
            'xp': int,
            'level': int,
            'level_name': str,
            'progress': XPProgress
        }
    """
    async with store.reader() as session:
        state = await session.get_game_state(user_id)

    return {
        "user_id": user_id,
        "xp": state.xp,
        "level": state.level,
        "level_name": level_name(state.level),
        "progress": xp_progress(state.xp),
    }


async def get_xp_history(store: GamificationStore, user_id: str, limit: int = 20) -> List[XPEvent]:
    """
    Get recent XP grants, newest first

    Args:
        user_id: User ID
        limit: Maximum number of events to return
    """
    async with store.reader() as session:
        return await session.list_xp_events(user_id, limit=limit)
