"""Gamification models: per-user game state, catalogs and engine results"""
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field, model_validator


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AchievementCategory(str, Enum):
    """Achievement categories"""
    MILESTONE = "milestone"
    STREAK = "streak"
    GENRE = "genre"
    ENGAGEMENT = "engagement"
    SPECIAL = "special"


class QuestType(str, Enum):
    """Quest cadence; the activation window is implied by the type"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    EVENT = "event"


class ReadingGoalType(str, Enum):
    YEARLY_BOOKS = "yearly_books"
    MONTHLY_BOOKS = "monthly_books"
    DAILY_PAGES = "daily_pages"
    DAILY_MINUTES = "daily_minutes"


class UserGameState(BaseModel):
    """
    One row per user.

    `level` is a projection of `xp` and cannot be set independently.
    `streak_freezes` is stored but no rule consumes it yet.
    """
    user_id: str
    xp: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    streak_freezes: int = Field(default=0, ge=0)
    last_active_date: Optional[date] = None

    @computed_field  # type: ignore[misc]
    @property
    def level(self) -> int:
        from reading_journey.gamification.level_curve import level_for_xp

        return level_for_xp(self.xp)

    @model_validator(mode="after")
    def _longest_covers_current(self) -> "UserGameState":
        if self.longest_streak < self.current_streak:
            raise ValueError("longest_streak must be >= current_streak")
        return self


class XPEvent(BaseModel):
    """Immutable record of one XP grant"""
    model_config = {"frozen": True}

    id: str = Field(default_factory=_new_id)
    user_id: str
    amount: int
    reason: str = Field(min_length=1)
    reference_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class Achievement(BaseModel):
    """Achievement catalog row (admin-defined, read-only to the engine)"""
    id: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    xp_reward: int = Field(default=0, ge=0)
    category: AchievementCategory
    requirement: dict[str, Any] = Field(default_factory=dict)
    sort_order: int = 0


class UserAchievement(BaseModel):
    """User's unlocked achievement; at most one per (user, achievement)"""
    id: str = Field(default_factory=_new_id)
    user_id: str
    achievement_id: str
    unlocked_at: datetime = Field(default_factory=_utcnow)


class Quest(BaseModel):
    """Quest catalog row"""
    id: str
    name: str
    description: Optional[str] = None
    type: QuestType
    xp_reward: int = Field(default=0, ge=0)
    requirement: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True


class UserQuest(BaseModel):
    """Per-user quest instance; frozen in practice once completed"""
    id: str = Field(default_factory=_new_id)
    user_id: str
    quest_id: str
    progress: int = Field(default=0, ge=0)
    completed: bool = False
    completed_at: Optional[datetime] = None
    assigned_at: datetime = Field(default_factory=_utcnow)
    expires_at: Optional[datetime] = None

    def is_open(self, now: datetime) -> bool:
        """Not completed and not past its expiry"""
        if self.completed:
            return False
        return self.expires_at is None or self.expires_at > now


class ReadingGoal(BaseModel):
    """Simple counter goal; never emits XP"""
    id: str = Field(default_factory=_new_id)
    user_id: str
    type: ReadingGoalType
    target: int = Field(ge=1)
    year: Optional[int] = None
    month: Optional[int] = Field(default=None, ge=1, le=12)
    progress: int = Field(default=0, ge=0)


class ActivityStats(BaseModel):
    """Materialized aggregates that achievement conditions are evaluated against"""
    user_id: str
    counters: dict[str, int] = Field(default_factory=dict)
    genres: set[str] = Field(default_factory=set)
    current_streak: int = 0
    longest_streak: int = 0
    xp: int = 0
    level: int = 1


# ==========================================
# Engine results
# ==========================================

class XPProgress(BaseModel):
    current: int
    required: int
    percentage: int


class XPAwardResult(BaseModel):
    amount: int
    reason: str
    new_xp: int
    new_level: int
    previous_level: int
    leveled_up: bool
    deduplicated: bool = False


class StreakResult(BaseModel):
    streak: int
    increased: bool
    longest_streak: int
    bonus_xp: int = 0
    xp_result: Optional[XPAwardResult] = None


class UnlockResult(BaseModel):
    unlocked: bool
    achievement_id: str
    xp_awarded: int = 0
    xp_result: Optional[XPAwardResult] = None


class QuestCompletion(BaseModel):
    user_quest: UserQuest
    quest: Quest
    xp_result: Optional[XPAwardResult] = None


class GamificationResult(BaseModel):
    """Consolidated outcome of one Facade call, for a single notification"""
    user_id: str
    event: str
    xp_gained: int = 0
    new_xp: int = 0
    level: int = 1
    leveled_up: bool = False
    current_streak: int = 0
    streak_increased: bool = False
    quests_completed: list[Quest] = Field(default_factory=list)
    achievements_unlocked: list[Achievement] = Field(default_factory=list)
    replayed: bool = False


class UserStats(BaseModel):
    user_id: str
    xp: int
    level: int
    level_name: str
    progress: XPProgress
    current_streak: int
    longest_streak: int
    streak_freezes: int
    last_active_date: Optional[date] = None
    activity: dict[str, int] = Field(default_factory=dict)
    genres_explored: int = 0
