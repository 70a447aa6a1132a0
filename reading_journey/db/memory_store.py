"""
In-memory gamification store

Backs tests and local development (STORE_BACKEND=memory). Nothing is
persisted across restarts. Per-user asyncio locks give the same
serialization guarantee as the postgres advisory lock, and a failed
transaction restores the user's snapshot so no partial event is visible.
"""

import asyncio
import copy
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Iterable, Optional

from reading_journey.db.base import GamificationSession, GamificationStore
from reading_journey.models.gamification import (
    Achievement,
    Quest,
    ReadingGoal,
    UserAchievement,
    UserGameState,
    UserQuest,
    XPEvent,
)

logger = logging.getLogger(__name__)


@dataclass
class _UserData:
    state: UserGameState
    xp_events: list[XPEvent] = field(default_factory=list)
    achievements: dict[str, UserAchievement] = field(default_factory=dict)
    quests: list[UserQuest] = field(default_factory=list)
    counters: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    genres: set[str] = field(default_factory=set)
    goals: list[ReadingGoal] = field(default_factory=list)


class MemorySession(GamificationSession):
    """Session over MemoryStore data"""

    def __init__(self, store: "MemoryStore", writable: bool):
        self._store = store
        self._writable = writable

    async def _io(self) -> None:
        # every call is a suspension point, like a driver round-trip
        await asyncio.sleep(self._store.latency)

    def _user(self, user_id: str) -> Optional[_UserData]:
        data = self._store._users.get(user_id)
        if data is None and self._writable:
            data = _UserData(state=UserGameState(user_id=user_id))
            self._store._users[user_id] = data
            logger.info(f"Created new game state for user {user_id}")
        return data

    async def get_game_state(self, user_id: str) -> UserGameState:
        await self._io()
        data = self._user(user_id)
        if data is None:
            return UserGameState(user_id=user_id)
        return data.state.model_copy()

    async def save_game_state(self, state: UserGameState) -> None:
        await self._io()
        self._user(state.user_id).state = state.model_copy()

    async def append_xp_event(self, event: XPEvent) -> None:
        await self._io()
        self._user(event.user_id).xp_events.append(event)

    async def find_xp_event(
        self, user_id: str, reason: str, reference_id: str
    ) -> Optional[XPEvent]:
        await self._io()
        data = self._store._users.get(user_id)
        if data is None:
            return None
        for event in data.xp_events:
            if event.reason == reason and event.reference_id == reference_id:
                return event
        return None

    async def list_xp_events(self, user_id: str, limit: int = 20) -> list[XPEvent]:
        await self._io()
        data = self._store._users.get(user_id)
        if data is None:
            return []
        return list(reversed(data.xp_events))[:limit]

    async def list_achievements(self) -> list[Achievement]:
        await self._io()
        return sorted(self._store._achievements.values(), key=lambda a: a.sort_order)

    async def get_achievement(self, achievement_id: str) -> Optional[Achievement]:
        await self._io()
        return self._store._achievements.get(achievement_id)

    async def list_user_achievements(self, user_id: str) -> list[UserAchievement]:
        await self._io()
        data = self._store._users.get(user_id)
        return list(data.achievements.values()) if data else []

    async def insert_user_achievement(self, user_achievement: UserAchievement) -> bool:
        await self._io()
        data = self._user(user_achievement.user_id)
        if user_achievement.achievement_id in data.achievements:
            return False
        data.achievements[user_achievement.achievement_id] = user_achievement
        return True

    async def list_quests(self, active_only: bool = True) -> list[Quest]:
        await self._io()
        quests = list(self._store._quests.values())
        if active_only:
            quests = [q for q in quests if q.is_active]
        return quests

    async def get_quest(self, quest_id: str) -> Optional[Quest]:
        await self._io()
        return self._store._quests.get(quest_id)

    async def list_user_quests(
        self, user_id: str, include_completed: bool = True
    ) -> list[UserQuest]:
        await self._io()
        data = self._store._users.get(user_id)
        if data is None:
            return []
        return [
            uq.model_copy() for uq in data.quests
            if include_completed or not uq.completed
        ]

    async def insert_user_quest(self, user_quest: UserQuest) -> None:
        await self._io()
        self._user(user_quest.user_id).quests.append(user_quest.model_copy())

    async def save_user_quest(self, user_quest: UserQuest) -> None:
        await self._io()
        quests = self._user(user_quest.user_id).quests
        for index, existing in enumerate(quests):
            if existing.id == user_quest.id:
                quests[index] = user_quest.model_copy()
                return
        quests.append(user_quest.model_copy())

    async def increment_counter(self, user_id: str, metric: str, delta: int) -> int:
        await self._io()
        counters = self._user(user_id).counters
        counters[metric] += delta
        return counters[metric]

    async def get_counters(self, user_id: str) -> dict[str, int]:
        await self._io()
        data = self._store._users.get(user_id)
        return dict(data.counters) if data else {}

    async def add_genres(self, user_id: str, genres: Iterable[str]) -> set[str]:
        await self._io()
        data = self._user(user_id)
        data.genres.update(g.strip().lower() for g in genres if g and g.strip())
        return set(data.genres)

    async def get_genres(self, user_id: str) -> set[str]:
        await self._io()
        data = self._store._users.get(user_id)
        return set(data.genres) if data else set()

    async def list_reading_goals(self, user_id: str) -> list[ReadingGoal]:
        await self._io()
        data = self._store._users.get(user_id)
        return [g.model_copy() for g in data.goals] if data else []

    async def get_reading_goal(self, goal_id: str) -> Optional[ReadingGoal]:
        await self._io()
        for data in self._store._users.values():
            for goal in data.goals:
                if goal.id == goal_id:
                    return goal.model_copy()
        return None

    async def upsert_reading_goal(self, goal: ReadingGoal) -> ReadingGoal:
        await self._io()
        goals = self._user(goal.user_id).goals
        for index, existing in enumerate(goals):
            if (existing.type, existing.year, existing.month) == (goal.type, goal.year, goal.month):
                stored = goal.model_copy(update={"id": existing.id})
                goals[index] = stored
                return stored.model_copy()
        goals.append(goal.model_copy())
        return goal.model_copy()

    async def save_reading_goal(self, goal: ReadingGoal) -> None:
        await self._io()
        goals = self._user(goal.user_id).goals
        for index, existing in enumerate(goals):
            if existing.id == goal.id:
                goals[index] = goal.model_copy()
                return
        goals.append(goal.model_copy())


class MemoryStore(GamificationStore):
    """Dict-backed store with per-user serialization"""

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._users: dict[str, _UserData] = {}
        self._achievements: dict[str, Achievement] = {}
        self._quests: dict[str, Quest] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def seed_catalog(
        self,
        achievements: Iterable[Achievement] = (),
        quests: Iterable[Quest] = (),
    ) -> None:
        """Load admin-defined catalog rows"""
        for achievement in achievements:
            self._achievements[achievement.id] = achievement
        for quest in quests:
            self._quests[quest.id] = quest
        logger.info(
            f"Seeded catalog: {len(self._achievements)} achievements, {len(self._quests)} quests"
        )

    @asynccontextmanager
    async def transaction(self, user_id: str) -> AsyncIterator[MemorySession]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        async with lock:
            snapshot = copy.deepcopy(self._users.get(user_id))
            try:
                yield MemorySession(self, writable=True)
            except BaseException:
                if snapshot is None:
                    self._users.pop(user_id, None)
                else:
                    self._users[user_id] = snapshot
                logger.debug(f"Rolled back transaction for user {user_id}")
                raise

    @asynccontextmanager
    async def reader(self) -> AsyncIterator[MemorySession]:
        yield MemorySession(self, writable=False)
