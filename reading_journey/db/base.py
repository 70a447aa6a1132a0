"""
Gamification storage interface

All per-user read-modify-write goes through a session obtained from
GamificationStore.transaction(user_id). Transactions for the same user are
serialized and commit or roll back as a whole; catalogs are read-only.
"""
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Iterable, Optional

from reading_journey.models.gamification import (
    Achievement,
    Quest,
    ReadingGoal,
    UserAchievement,
    UserGameState,
    UserQuest,
    XPEvent,
)


class GamificationSession(ABC):
    """Operations available inside one store transaction (or read-only view)"""

    # ---- game state ----

    @abstractmethod
    async def get_game_state(self, user_id: str) -> UserGameState:
        """Fetch the user's state, provisioning xp=0 on first use"""

    @abstractmethod
    async def save_game_state(self, state: UserGameState) -> None:
        ...

    # ---- XP ledger ----

    @abstractmethod
    async def append_xp_event(self, event: XPEvent) -> None:
        ...

    @abstractmethod
    async def find_xp_event(
        self, user_id: str, reason: str, reference_id: str
    ) -> Optional[XPEvent]:
        ...

    @abstractmethod
    async def list_xp_events(self, user_id: str, limit: int = 20) -> list[XPEvent]:
        """Newest first"""

    # ---- achievements ----

    @abstractmethod
    async def list_achievements(self) -> list[Achievement]:
        """Catalog ordered by sort_order"""

    @abstractmethod
    async def get_achievement(self, achievement_id: str) -> Optional[Achievement]:
        ...

    @abstractmethod
    async def list_user_achievements(self, user_id: str) -> list[UserAchievement]:
        ...

    @abstractmethod
    async def insert_user_achievement(self, user_achievement: UserAchievement) -> bool:
        """Insert the unlock; False when the (user, achievement) pair already exists"""

    # ---- quests ----

    @abstractmethod
    async def list_quests(self, active_only: bool = True) -> list[Quest]:
        ...

    @abstractmethod
    async def get_quest(self, quest_id: str) -> Optional[Quest]:
        ...

    @abstractmethod
    async def list_user_quests(
        self, user_id: str, include_completed: bool = True
    ) -> list[UserQuest]:
        ...

    @abstractmethod
    async def insert_user_quest(self, user_quest: UserQuest) -> None:
        ...

    @abstractmethod
    async def save_user_quest(self, user_quest: UserQuest) -> None:
        ...

    # ---- materialized activity stats ----

    @abstractmethod
    async def increment_counter(self, user_id: str, metric: str, delta: int) -> int:
        """Add delta to a per-user counter and return the new value"""

    @abstractmethod
    async def get_counters(self, user_id: str) -> dict[str, int]:
        ...

    @abstractmethod
    async def add_genres(self, user_id: str, genres: Iterable[str]) -> set[str]:
        """Record explored genres and return the full set"""

    @abstractmethod
    async def get_genres(self, user_id: str) -> set[str]:
        ...

    # ---- reading goals ----

    @abstractmethod
    async def list_reading_goals(self, user_id: str) -> list[ReadingGoal]:
        ...

    @abstractmethod
    async def get_reading_goal(self, goal_id: str) -> Optional[ReadingGoal]:
        ...

    @abstractmethod
    async def upsert_reading_goal(self, goal: ReadingGoal) -> ReadingGoal:
        """Insert or replace on (user, type, year, month); returns the stored goal"""

    @abstractmethod
    async def save_reading_goal(self, goal: ReadingGoal) -> None:
        ...


class GamificationStore(ABC):
    """Durable home of per-user game state"""

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    def transaction(self, user_id: str) -> AbstractAsyncContextManager[GamificationSession]:
        """Serialized, all-or-nothing unit of work for one user"""

    @abstractmethod
    def reader(self) -> AbstractAsyncContextManager[GamificationSession]:
        """Read-only session with no locking; never provisions rows"""
