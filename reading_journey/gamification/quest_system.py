"""
Quest Engine

Tracks UserQuest progress toward Quest.requirement.count and completes each
quest exactly once. Assigning and retiring daily/weekly/monthly instances is
an external policy; the engine only consumes already-assigned rows.

Features:
- Progress clamped at the requirement count
- Completion pays quest.xp_reward once (reason "quest_completed")
- Completed quests are frozen; repeat progress or completion is a no-op
- Expired or deactivated quests stop accruing
"""

import logging
from datetime import datetime
from typing import List, Optional

from reading_journey.db.base import GamificationSession, GamificationStore
from reading_journey.exceptions import InvalidRequirementError, RecordNotFoundError, ValidationError
from reading_journey.gamification.requirements import Metric, Requirement, parse_requirement
from reading_journey.gamification.xp_system import award_xp_in_session, require_user
from reading_journey.models.gamification import Quest, QuestCompletion, UserQuest
from reading_journey.monitoring.prometheus_metrics import record_quest_completion
from reading_journey.utils.datetime_helpers import now_utc, to_utc

logger = logging.getLogger(__name__)

QUEST_REASON = "quest_completed"


def _quest_requirement(quest: Quest) -> Optional[Requirement]:
    try:
        requirement = parse_requirement(quest.requirement, catalog_id=quest.id)
    except InvalidRequirementError as e:
        logger.warning(f"Quest {quest.id} has an invalid requirement, skipping: {e.message}")
        return None
    if not requirement.is_counter:
        logger.warning(
            f"Quest {quest.id} uses non-additive metric {requirement.metric.value}, skipping"
        )
        return None
    return requirement


async def _complete(
    session: GamificationSession,
    user_quest: UserQuest,
    quest: Quest,
    now: datetime,
) -> QuestCompletion:
    user_quest.completed = True
    user_quest.completed_at = now
    await session.save_user_quest(user_quest)

    xp_result = None
    if quest.xp_reward > 0:
        xp_result = await award_xp_in_session(
            session, user_quest.user_id, quest.xp_reward, QUEST_REASON, quest.id
        )

    record_quest_completion()
    logger.info(
        f"User {user_quest.user_id} completed quest {quest.id} "
        f"({quest.name}) +{quest.xp_reward} XP"
    )
    return QuestCompletion(user_quest=user_quest, quest=quest, xp_result=xp_result)


async def record_progress_in_session(
    session: GamificationSession,
    user_id: str,
    metric: str,
    delta: int,
    now: Optional[datetime] = None,
) -> List[QuestCompletion]:
    """
    Advance every open quest tracking `metric` by `delta`

    Args:
        session: Session from store.transaction(user_id)
        user_id: User ID
        metric: Counter metric tag (e.g. "books_read")
        delta: Non-negative increment
        now: Completion/expiry reference time (defaults to now)

    Returns:
        One QuestCompletion per quest touched; `user_quest.completed` tells
        whether this call finished it
    """
    user_id = require_user(user_id, "record_quest_progress")
    if isinstance(delta, bool) or not isinstance(delta, int) or delta < 0:
        raise ValidationError("Quest progress delta must be a non-negative integer",
                              field="delta", value=delta, user_id=user_id)
    if delta == 0:
        return []
    if now is None:
        now = now_utc()

    try:
        metric = Metric(metric).value
    except ValueError:
        raise ValidationError(f"Unknown quest metric {metric!r}", field="metric",
                              value=metric, user_id=user_id) from None

    quests = {q.id: q for q in await session.list_quests(active_only=True)}
    touched = []

    for user_quest in await session.list_user_quests(user_id, include_completed=False):
        quest = quests.get(user_quest.quest_id)
        if quest is None or not user_quest.is_open(now):
            continue
        requirement = _quest_requirement(quest)
        if requirement is None or requirement.metric.value != metric:
            continue

        user_quest.progress = min(user_quest.progress + delta, requirement.count)
        if user_quest.progress >= requirement.count:
            touched.append(await _complete(session, user_quest, quest, now))
        else:
            await session.save_user_quest(user_quest)
            touched.append(QuestCompletion(user_quest=user_quest, quest=quest))
            logger.debug(
                f"Quest {quest.id} progress for user {user_id}: "
                f"{user_quest.progress}/{requirement.count}"
            )

    return touched


async def record_progress(
    store: GamificationStore,
    user_id: str,
    metric: str,
    delta: int = 1,
) -> List[QuestCompletion]:
    """Advance matching quests in their own transaction"""
    user_id = require_user(user_id, "record_quest_progress")
    async with store.transaction(user_id) as session:
        return await record_progress_in_session(session, user_id, metric, delta)


async def complete_quest(
    store: GamificationStore,
    user_id: str,
    quest_id: str,
) -> Optional[QuestCompletion]:
    """
    Mark an assigned quest complete regardless of progress

    Returns:
        The completion, or None when the quest was already completed
        (idempotent, not an error)

    Raises:
        RecordNotFoundError: quest unknown or not assigned to the user
    """
    user_id = require_user(user_id, "complete_quest")
    async with store.transaction(user_id) as session:
        quest = await session.get_quest(quest_id)
        if quest is None:
            raise RecordNotFoundError(f"Quest {quest_id} not found", record_type="Quest",
                                      record_id=quest_id, user_id=user_id)

        assigned = [uq for uq in await session.list_user_quests(user_id) if uq.quest_id == quest_id]
        if not assigned:
            raise RecordNotFoundError(f"Quest {quest_id} is not assigned to user {user_id}",
                                      record_type="UserQuest", record_id=quest_id, user_id=user_id)

        open_quests = [uq for uq in assigned if not uq.completed]
        if not open_quests:
            logger.debug(f"Quest {quest_id} already completed for user {user_id}")
            return None

        user_quest = open_quests[-1]
        requirement = _quest_requirement(quest)
        if requirement is not None:
            user_quest.progress = max(user_quest.progress, requirement.count)
        return await _complete(session, user_quest, quest, now_utc())


async def assign_quest(
    store: GamificationStore,
    user_id: str,
    quest_id: str,
    expires_at: Optional[datetime] = None,
) -> UserQuest:
    """Create a UserQuest row; a naive expiry is read in the canonical timezone"""
    user_id = require_user(user_id, "assign_quest")
    async with store.transaction(user_id) as session:
        quest = await session.get_quest(quest_id)
        if quest is None:
            raise RecordNotFoundError(f"Quest {quest_id} not found", record_type="Quest",
                                      record_id=quest_id, user_id=user_id)
        # game state row must exist before quest rows reference it
        await session.get_game_state(user_id)
        user_quest = UserQuest(
            user_id=user_id,
            quest_id=quest_id,
            expires_at=to_utc(expires_at) if expires_at else None,
        )
        await session.insert_user_quest(user_quest)

    logger.info(f"Assigned quest {quest_id} to user {user_id}")
    return user_quest


async def get_active_quests(store: GamificationStore) -> List[Quest]:
    async with store.reader() as session:
        return await session.list_quests(active_only=True)


async def get_user_quests(
    store: GamificationStore,
    user_id: str,
    include_completed: bool = False,
) -> List[dict]:
    """
    Get the user's quests joined with their catalog rows

    Returns:
        [{'user_quest': UserQuest, 'quest': Quest | None, 'required': int}]
    """
    async with store.reader() as session:
        user_quests = await session.list_user_quests(user_id, include_completed=include_completed)
        quests = {q.id: q for q in await session.list_quests(active_only=False)}

    result = []
    for user_quest in user_quests:
        quest = quests.get(user_quest.quest_id)
        required = 1
        if quest is not None:
            requirement = _quest_requirement(quest)
            required = requirement.count if requirement else 1
        result.append({"user_quest": user_quest, "quest": quest, "required": required})
    return result
