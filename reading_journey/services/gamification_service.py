"""
GamificationService - Gamification Facade

The single entry point book, review and club features call after a user
action. Each event runs as one unit of work inside
store.transaction(user_id), in a fixed order:

1. Direct event XP (flat amount from XP_AMOUNTS), activity counters, genres
   and reading goals
2. Streak touch (book started/finished, reading logged)
3. Quest progress for every counter the event moved
4. Achievement re-evaluation against the materialized stats

A storage failure anywhere rolls the whole event back and propagates.
Callers that must never be blocked by gamification go through
reading_journey.gamification.integrations instead.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Any

from reading_journey.db.base import GamificationSession, GamificationStore
from reading_journey.exceptions import (
    InvalidRequirementError,
    ReadingJourneyError,
    ValidationError,
    wrap_external_exception,
)
from reading_journey.gamification import achievement_system, quest_system, reading_goals
from reading_journey.gamification.achievement_system import unlock_in_session
from reading_journey.gamification.level_curve import level_name, xp_progress
from reading_journey.gamification.quest_system import record_progress_in_session
from reading_journey.gamification.requirements import Metric, Requirement, is_satisfied, parse_requirement
from reading_journey.gamification.streak_system import get_streak_info, touch_activity_in_session
from reading_journey.gamification.xp_system import (
    XP_AMOUNTS,
    award_xp_in_session,
    get_user_xp,
    get_xp_history,
    require_user,
)
from reading_journey.models.gamification import (
    Achievement,
    AchievementCategory,
    ActivityStats,
    GamificationResult,
    Quest,
    QuestCompletion,
    ReadingGoal,
    ReadingGoalType,
    UserQuest,
    UserStats,
    XPEvent,
    XPProgress,
)
from reading_journey.monitoring.prometheus_metrics import track_gamification_event
from reading_journey.utils.datetime_helpers import today_canonical

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventRule:
    """How one external event maps onto the engines"""
    xp_key: str
    reason: str
    counter: Metric
    touches_streak: bool = False
    categories: frozenset = field(default_factory=frozenset)


EVENT_RULES: Dict[str, EventRule] = {
    "book_started": EventRule(
        xp_key="START_BOOK",
        reason="started_book",
        counter=Metric.BOOKS_STARTED,
        touches_streak=True,
    ),
    "book_finished": EventRule(
        xp_key="FINISH_BOOK",
        reason="finished_book",
        counter=Metric.BOOKS_READ,
        touches_streak=True,
        categories=frozenset({
            AchievementCategory.MILESTONE,
            AchievementCategory.STREAK,
            AchievementCategory.GENRE,
        }),
    ),
    "review_written": EventRule(
        xp_key="WRITE_REVIEW",
        reason="wrote_review",
        counter=Metric.REVIEWS_WRITTEN,
        categories=frozenset({AchievementCategory.ENGAGEMENT}),
    ),
    "book_rated": EventRule(
        xp_key="RATE_BOOK",
        reason="rated_book",
        counter=Metric.BOOKS_RATED,
        categories=frozenset({AchievementCategory.ENGAGEMENT}),
    ),
    "reading_logged": EventRule(
        xp_key="LOG_READING",
        reason="logged_reading",
        counter=Metric.READING_SESSIONS,
        touches_streak=True,
    ),
    "club_joined": EventRule(
        xp_key="JOIN_CLUB",
        reason="joined_club",
        counter=Metric.CLUBS_JOINED,
        categories=frozenset({AchievementCategory.ENGAGEMENT}),
    ),
    "club_created": EventRule(
        xp_key="CREATE_CLUB",
        reason="created_club",
        counter=Metric.CLUBS_CREATED,
        categories=frozenset({AchievementCategory.ENGAGEMENT}),
    ),
}

# Unlocks that pay XP can push the user over a level threshold
LEVEL_UP_CATEGORIES = frozenset({AchievementCategory.MILESTONE, AchievementCategory.SPECIAL})


def _check_amount(name: str, value: Optional[int], user_id: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer", field=name,
                              value=value, user_id=user_id)
    return value


def _achievement_requirement(achievement: Achievement) -> Optional[Requirement]:
    try:
        return parse_requirement(achievement.requirement, catalog_id=achievement.id)
    except InvalidRequirementError as e:
        logger.warning(
            f"Achievement {achievement.id} has an invalid requirement, "
            f"treating as locked: {e.message}"
        )
        return None


class GamificationService:
    """
    Facade over the gamification engines.

    Responsibilities:
    - Translate reading/club events into XP, streak, quest and achievement updates
    - Keep each event all-or-nothing per user
    - Serve the read-only query surface for display layers
    """

    def __init__(self, store: GamificationStore):
        """
        Initialize GamificationService.

        Args:
            store: Storage backend (MemoryStore or PostgresStore)
        """
        self.store = store
        logger.debug("GamificationService initialized")

    # ==========================================
    # Event entry points
    # ==========================================

    async def on_book_started(self, user_id: str, book_id: Optional[str] = None) -> GamificationResult:
        return await self._process("book_started", user_id, reference_id=book_id)

    async def on_book_finished(
        self,
        user_id: str,
        book_id: Optional[str] = None,
        genres: Optional[Iterable[str]] = None,
    ) -> GamificationResult:
        """
        Book marked as read

        Args:
            user_id: User ID
            book_id: Book ID; repeated calls for the same book pay only once
            genres: Book genres, feeding the genre explorer achievements
        """
        return await self._process("book_finished", user_id, reference_id=book_id, genres=genres)

    async def on_review_written(self, user_id: str, book_id: Optional[str] = None) -> GamificationResult:
        return await self._process("review_written", user_id, reference_id=book_id)

    async def on_book_rated(self, user_id: str, book_id: Optional[str] = None) -> GamificationResult:
        return await self._process("book_rated", user_id, reference_id=book_id)

    async def on_reading_logged(
        self,
        user_id: str,
        log_id: Optional[str] = None,
        pages: Optional[int] = None,
        minutes: Optional[int] = None,
    ) -> GamificationResult:
        """
        Reading session logged

        Args:
            user_id: User ID
            log_id: Reading log entry ID, used to drop retried submissions
            pages: Pages read in the session
            minutes: Minutes read in the session
        """
        return await self._process(
            "reading_logged", user_id, reference_id=log_id, pages=pages, minutes=minutes
        )

    async def on_club_joined(self, user_id: str, club_id: Optional[str] = None) -> GamificationResult:
        return await self._process("club_joined", user_id, reference_id=club_id)

    async def on_club_created(self, user_id: str, club_id: Optional[str] = None) -> GamificationResult:
        return await self._process("club_created", user_id, reference_id=club_id)

    async def handle_event(
        self,
        event: str,
        user_id: str,
        reference_id: Optional[str] = None,
        genres: Optional[Iterable[str]] = None,
        pages: Optional[int] = None,
        minutes: Optional[int] = None,
    ) -> GamificationResult:
        """
        Dispatch by event name (book_started, book_finished, ...)

        genres only apply to book_finished; pages and minutes only to
        reading_logged.
        """
        if event not in EVENT_RULES:
            raise ValidationError(f"Unknown gamification event '{event}'", field="event",
                                  value=event, user_id=user_id)
        return await self._process(
            event, user_id, reference_id=reference_id, genres=genres, pages=pages, minutes=minutes
        )

    # ==========================================
    # Orchestration
    # ==========================================

    async def _process(
        self,
        event: str,
        user_id: str,
        reference_id: Optional[str] = None,
        genres: Optional[Iterable[str]] = None,
        pages: Optional[int] = None,
        minutes: Optional[int] = None,
    ) -> GamificationResult:
        user_id = require_user(user_id, f"on_{event}")
        pages = _check_amount("pages", pages, user_id)
        minutes = _check_amount("minutes", minutes, user_id)
        genres = [g for g in (genres or []) if isinstance(g, str) and g.strip()]

        async with track_gamification_event(event):
            try:
                async with self.store.transaction(user_id) as session:
                    result = await self._run_event(
                        session, event, user_id, reference_id, genres, pages, minutes
                    )
            except ReadingJourneyError:
                raise
            except Exception as e:
                raise wrap_external_exception(
                    e, operation=f"on_{event}", user_id=user_id,
                    context={"reference_id": reference_id},
                ) from e

        logger.info(
            f"Gamification processed for {event}: user={user_id}, "
            f"xp=+{result.xp_gained}, level={result.level}, streak={result.current_streak}, "
            f"quests={len(result.quests_completed)}, "
            f"achievements={len(result.achievements_unlocked)}"
        )
        return result

    async def _run_event(
        self,
        session: GamificationSession,
        event: str,
        user_id: str,
        reference_id: Optional[str],
        genres: List[str],
        pages: int,
        minutes: int,
    ) -> GamificationResult:
        rule = EVENT_RULES[event]
        today = today_canonical()

        start = await session.get_game_state(user_id)
        start_xp, start_level = start.xp, start.level

        # 1. Direct event XP
        grant = await award_xp_in_session(
            session, user_id, XP_AMOUNTS[rule.xp_key], rule.reason,
            reference_id=reference_id, dedupe=reference_id is not None,
        )
        replayed = grant.deduplicated

        deltas: Dict[str, int] = {}
        if replayed:
            logger.debug(f"Replayed {event} for user {user_id} ({reference_id}); counters unchanged")
        else:
            deltas = {rule.counter.value: 1}
            if event == "reading_logged":
                deltas[Metric.PAGES_READ.value] = pages
                deltas[Metric.MINUTES_READ.value] = minutes
            for metric, delta in deltas.items():
                if delta > 0:
                    await session.increment_counter(user_id, metric, delta)
            if genres and event == "book_finished":
                await session.add_genres(user_id, genres)
            await self._bump_goals(session, user_id, event, pages, minutes, today)

        # 2. Streak
        streak_increased = False
        if rule.touches_streak:
            streak = await touch_activity_in_session(session, user_id, today)
            streak_increased = streak.increased

        # 3. Quests
        quests_completed: List[Quest] = []
        for metric, delta in deltas.items():
            completions = await record_progress_in_session(session, user_id, metric, delta)
            quests_completed.extend(c.quest for c in completions if c.user_quest.completed)

        # 4. Achievements
        categories = set(rule.categories)
        if streak_increased:
            categories.add(AchievementCategory.STREAK)
        state = await session.get_game_state(user_id)
        if state.level > start_level:
            categories |= LEVEL_UP_CATEGORIES
        achievements_unlocked = await self._evaluate_achievements(session, user_id, categories)

        state = await session.get_game_state(user_id)
        return GamificationResult(
            user_id=user_id,
            event=event,
            xp_gained=state.xp - start_xp,
            new_xp=state.xp,
            level=state.level,
            leveled_up=state.level > start_level,
            current_streak=state.current_streak,
            streak_increased=streak_increased,
            quests_completed=quests_completed,
            achievements_unlocked=achievements_unlocked,
            replayed=replayed,
        )

    async def _bump_goals(
        self,
        session: GamificationSession,
        user_id: str,
        event: str,
        pages: int,
        minutes: int,
        today: date,
    ) -> None:
        if event == "book_finished":
            await reading_goals.bump_goals_in_session(
                session, user_id,
                {ReadingGoalType.YEARLY_BOOKS, ReadingGoalType.MONTHLY_BOOKS}, 1, today,
            )
        elif event == "reading_logged":
            await reading_goals.bump_goals_in_session(
                session, user_id, {ReadingGoalType.DAILY_PAGES}, pages, today
            )
            await reading_goals.bump_goals_in_session(
                session, user_id, {ReadingGoalType.DAILY_MINUTES}, minutes, today
            )

    async def _evaluate_achievements(
        self,
        session: GamificationSession,
        user_id: str,
        categories: set,
    ) -> List[Achievement]:
        """
        Unlock every achievement in `categories` whose requirement now holds.

        An unlock that levels the user up re-runs the level-sensitive
        categories; the loop ends once a round unlocks nothing.
        """
        catalog = await session.list_achievements()
        owned = {ua.achievement_id for ua in await session.list_user_achievements(user_id)}
        unlocked: List[Achievement] = []

        while categories:
            stats = await self._build_stats(session, user_id)
            leveled_up = False

            for achievement in catalog:
                if achievement.id in owned or achievement.category not in categories:
                    continue
                requirement = _achievement_requirement(achievement)
                if requirement is None or not is_satisfied(requirement, stats):
                    continue

                result = await unlock_in_session(session, user_id, achievement.id, achievement)
                owned.add(achievement.id)
                if result.unlocked:
                    unlocked.append(achievement)
                    if result.xp_result and result.xp_result.leveled_up:
                        leveled_up = True

            categories = set(LEVEL_UP_CATEGORIES) if leveled_up else set()

        return unlocked

    async def _build_stats(self, session: GamificationSession, user_id: str) -> ActivityStats:
        state = await session.get_game_state(user_id)
        return ActivityStats(
            user_id=user_id,
            counters=await session.get_counters(user_id),
            genres=await session.get_genres(user_id),
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            xp=state.xp,
            level=state.level,
        )

    # ==========================================
    # Query surface (read-only)
    # ==========================================

    async def get_user_stats(self, user_id: str) -> UserStats:
        """
        Get comprehensive gamification stats for a user.

        Unknown users get the zero state; nothing is provisioned.
        """
        user_id = require_user(user_id, "get_user_stats")
        xp_data = await get_user_xp(self.store, user_id)
        streak = await get_streak_info(self.store, user_id)
        async with self.store.reader() as session:
            counters = await session.get_counters(user_id)
            genres = await session.get_genres(user_id)

        return UserStats(
            user_id=user_id,
            xp=xp_data["xp"],
            level=xp_data["level"],
            level_name=xp_data["level_name"],
            progress=xp_data["progress"],
            current_streak=streak["current_streak"],
            longest_streak=streak["longest_streak"],
            streak_freezes=streak["streak_freezes"],
            last_active_date=streak["last_active_date"],
            activity=counters,
            genres_explored=len(genres),
        )

    async def get_all_achievements(self) -> List[Achievement]:
        return await achievement_system.get_all_achievements(self.store)

    async def get_user_achievements(self, user_id: str) -> Dict[str, Any]:
        """Unlocked and locked achievements, with progress toward the locked ones"""
        user_id = require_user(user_id, "get_user_achievements")
        async with self.store.reader() as session:
            stats = await self._build_stats(session, user_id)
        return await achievement_system.get_user_achievements(self.store, user_id, stats)

    async def is_achievement_unlocked(self, user_id: str, achievement_id: str) -> bool:
        user_id = require_user(user_id, "is_achievement_unlocked")
        return await achievement_system.is_achievement_unlocked(self.store, user_id, achievement_id)

    async def get_active_quests(self) -> List[Quest]:
        return await quest_system.get_active_quests(self.store)

    async def get_user_quests(self, user_id: str, include_completed: bool = False) -> List[Dict[str, Any]]:
        user_id = require_user(user_id, "get_user_quests")
        return await quest_system.get_user_quests(self.store, user_id, include_completed)

    async def assign_quest(
        self,
        user_id: str,
        quest_id: str,
        expires_at: Optional[datetime] = None,
    ) -> UserQuest:
        return await quest_system.assign_quest(self.store, user_id, quest_id, expires_at)

    async def complete_quest(self, user_id: str, quest_id: str) -> Optional[QuestCompletion]:
        return await quest_system.complete_quest(self.store, user_id, quest_id)

    async def get_xp_history(self, user_id: str, limit: int = 20) -> List[XPEvent]:
        user_id = require_user(user_id, "get_xp_history")
        return await get_xp_history(self.store, user_id, limit)

    async def get_reading_goals(self, user_id: str) -> List[ReadingGoal]:
        user_id = require_user(user_id, "get_reading_goals")
        return await reading_goals.get_reading_goals(self.store, user_id)

    async def set_reading_goal(
        self,
        user_id: str,
        goal_type: ReadingGoalType,
        target: int,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> ReadingGoal:
        return await reading_goals.set_reading_goal(self.store, user_id, goal_type, target, year, month)

    async def update_goal_progress(self, goal_id: str, progress: int) -> ReadingGoal:
        return await reading_goals.update_goal_progress(self.store, goal_id, progress)

    @staticmethod
    def get_xp_progress(xp: int) -> XPProgress:
        return xp_progress(xp)

    @staticmethod
    def get_level_name(level: int) -> str:
        return level_name(level)
