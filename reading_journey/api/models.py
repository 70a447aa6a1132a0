"""Pydantic models for API request/response validation"""
from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import datetime

from reading_journey.models.gamification import (
    Achievement,
    Quest,
    ReadingGoalType,
    UserQuest,
)


class EventRequest(BaseModel):
    """Body for a gamification event"""
    reference_id: Optional[str] = Field(
        default=None,
        description="Book, reading log or club ID; repeated IDs are not paid twice"
    )
    genres: Optional[List[str]] = Field(default=None, description="Genres of a finished book")
    pages: Optional[int] = Field(default=None, ge=0, description="Pages read (reading_logged)")
    minutes: Optional[int] = Field(default=None, ge=0, description="Minutes read (reading_logged)")


class ReadingGoalRequest(BaseModel):
    """Request to create or replace a reading goal"""
    type: ReadingGoalType
    target: int = Field(..., ge=1)
    year: Optional[int] = None
    month: Optional[int] = Field(default=None, ge=1, le=12)


class GoalProgressRequest(BaseModel):
    progress: int = Field(..., ge=0)


class AssignQuestRequest(BaseModel):
    expires_at: Optional[datetime] = Field(default=None, description="When the quest stops accruing")


class UnlockedAchievementResponse(BaseModel):
    achievement: Achievement
    unlocked_at: datetime


class AchievementProgressResponse(BaseModel):
    current: int
    required: int
    percentage: int


class LockedAchievementResponse(BaseModel):
    achievement: Achievement
    progress: Optional[AchievementProgressResponse] = None


class UserAchievementsResponse(BaseModel):
    """Response with a user's unlocked and locked achievements"""
    user_id: str
    unlocked: List[UnlockedAchievementResponse]
    locked: List[LockedAchievementResponse]
    total_unlocked: int
    total_achievements: int
    total_xp_from_achievements: int


class UserQuestResponse(BaseModel):
    user_quest: UserQuest
    quest: Optional[Quest] = None
    required: int


class QuestCompletionResponse(BaseModel):
    """Result of a manual quest completion"""
    quest_id: str
    completed: bool = Field(..., description="False when the quest was already completed")
    xp_awarded: int = 0


class LevelNameResponse(BaseModel):
    level: int
    name: str


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    store: str = Field(..., description="Store connection status")
    timestamp: datetime = Field(..., description="Check timestamp")


class ErrorResponse(BaseModel):
    """Error response model"""
    error: str = Field(..., description="Error class")
    message: str = Field(..., description="Error message")
    user_message: str = Field(..., description="Message safe to show to the end user")
    request_id: str
    timestamp: datetime
