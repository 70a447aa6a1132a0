"""
Gamification Integration Hooks

Best-effort wrappers for book, review and club features. Call these after
the reading-tracker action has been saved: a gamification failure is logged
and swallowed so marking a book as read never fails because of XP
bookkeeping.

Usage:
    from reading_journey.gamification.integrations import handle_book_finished_gamification

    # After saving the book status
    await handle_book_finished_gamification(service, user_id, book_id, genres=["fantasy"])
"""

import logging
from typing import Awaitable, Iterable, Optional

from reading_journey.exceptions import ReadingJourneyError
from reading_journey.models.gamification import GamificationResult
from reading_journey.monitoring.prometheus_metrics import record_hook_failure
from reading_journey.services.gamification_service import GamificationService

logger = logging.getLogger(__name__)


async def _best_effort(
    event: str,
    user_id: str,
    pending: Awaitable[GamificationResult],
) -> Optional[GamificationResult]:
    logger.info(f"[GAMIFICATION] {event} hook called: user={user_id}")
    try:
        return await pending
    except ReadingJourneyError as e:
        # Already logged with context when raised
        logger.warning(
            f"[GAMIFICATION] {event} skipped for user={user_id}: {e.message} "
            f"(request_id={e.request_id})"
        )
        record_hook_failure(event)
        return None


async def handle_book_started_gamification(
    service: GamificationService,
    user_id: str,
    book_id: Optional[str] = None,
) -> Optional[GamificationResult]:
    return await _best_effort("book_started", user_id, service.on_book_started(user_id, book_id))


async def handle_book_finished_gamification(
    service: GamificationService,
    user_id: str,
    book_id: Optional[str] = None,
    genres: Optional[Iterable[str]] = None,
) -> Optional[GamificationResult]:
    """
    Handle gamification for a finished book

    Returns:
        The GamificationResult, or None when gamification failed
    """
    return await _best_effort(
        "book_finished", user_id, service.on_book_finished(user_id, book_id, genres)
    )


async def handle_review_written_gamification(
    service: GamificationService,
    user_id: str,
    book_id: Optional[str] = None,
) -> Optional[GamificationResult]:
    return await _best_effort("review_written", user_id, service.on_review_written(user_id, book_id))


async def handle_book_rated_gamification(
    service: GamificationService,
    user_id: str,
    book_id: Optional[str] = None,
) -> Optional[GamificationResult]:
    return await _best_effort("book_rated", user_id, service.on_book_rated(user_id, book_id))


async def handle_reading_logged_gamification(
    service: GamificationService,
    user_id: str,
    log_id: Optional[str] = None,
    pages: Optional[int] = None,
    minutes: Optional[int] = None,
) -> Optional[GamificationResult]:
    return await _best_effort(
        "reading_logged", user_id, service.on_reading_logged(user_id, log_id, pages, minutes)
    )


async def handle_club_joined_gamification(
    service: GamificationService,
    user_id: str,
    club_id: Optional[str] = None,
) -> Optional[GamificationResult]:
    return await _best_effort("club_joined", user_id, service.on_club_joined(user_id, club_id))


async def handle_club_created_gamification(
    service: GamificationService,
    user_id: str,
    club_id: Optional[str] = None,
) -> Optional[GamificationResult]:
    return await _best_effort("club_created", user_id, service.on_club_created(user_id, club_id))


def format_gamification_message(result: Optional[GamificationResult]) -> str:
    """One consolidated notification for a processed event"""
    if result is None or (result.xp_gained == 0 and not result.achievements_unlocked):
        return ""

    message_parts = [f"⭐ +{result.xp_gained} XP"]

    if result.leveled_up:
        message_parts.append(f"🎉 Level {result.level}!")

    if result.streak_increased and result.current_streak > 1:
        message_parts.append(f"🔥 {result.current_streak}-day reading streak")

    for quest in result.quests_completed:
        message_parts.append(f"🎯 Quest complete: {quest.name} (+{quest.xp_reward} XP)")

    for achievement in result.achievements_unlocked:
        message_parts.append(
            f"{achievement.icon or '🏆'} {achievement.name} (+{achievement.xp_reward} XP)"
        )

    return "\n".join(message_parts)
