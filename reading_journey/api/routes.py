"""API routes for the gamification engine"""
import logging
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Path, Query, Request, status

from reading_journey.api.auth import verify_api_key
from reading_journey.api.middleware import limiter
from reading_journey.api.models import (
    AssignQuestRequest,
    EventRequest,
    GoalProgressRequest,
    HealthCheckResponse,
    LevelNameResponse,
    QuestCompletionResponse,
    ReadingGoalRequest,
    UserAchievementsResponse,
    UserQuestResponse,
)
from reading_journey.exceptions import ReadingJourneyError
from reading_journey.models.gamification import (
    Achievement,
    GamificationResult,
    Quest,
    ReadingGoal,
    UserQuest,
    UserStats,
    XPEvent,
    XPProgress,
)
from reading_journey.services.gamification_service import GamificationService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_service(request: Request) -> GamificationService:
    """The GamificationService created by the application lifespan"""
    return request.app.state.service


# ==========================================
# Events
# ==========================================

@router.post("/api/v1/users/{user_id}/events/{event}", response_model=GamificationResult)
@limiter.limit("60/minute")
async def post_event(
    request: Request,
    user_id: str,
    event: str,
    body: EventRequest,
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_service),
):
    """
    Process one reading/club event (Rate limit: 60/minute)

    event: book_started, book_finished, review_written, book_rated,
    reading_logged, club_joined, club_created
    """
    return await service.handle_event(
        event,
        user_id,
        reference_id=body.reference_id,
        genres=body.genres,
        pages=body.pages,
        minutes=body.minutes,
    )


# ==========================================
# User queries
# ==========================================

@router.get("/api/v1/users/{user_id}/stats", response_model=UserStats)
@limiter.limit("30/minute")
async def get_stats(
    request: Request,
    user_id: str,
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_service),
):
    """Get user XP, level and streak (Rate limit: 30/minute)"""
    return await service.get_user_stats(user_id)


@router.get("/api/v1/users/{user_id}/xp-history", response_model=List[XPEvent])
@limiter.limit("30/minute")
async def get_xp_history(
    request: Request,
    user_id: str,
    limit: int = Query(default=20, ge=1, le=100),
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_service),
):
    """Recent XP grants, newest first (Rate limit: 30/minute)"""
    return await service.get_xp_history(user_id, limit)


@router.get("/api/v1/users/{user_id}/achievements", response_model=UserAchievementsResponse)
@limiter.limit("30/minute")
async def get_user_achievements(
    request: Request,
    user_id: str,
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_service),
):
    """Get user achievements (Rate limit: 30/minute)"""
    data = await service.get_user_achievements(user_id)
    return UserAchievementsResponse(user_id=user_id, **data)


@router.get("/api/v1/users/{user_id}/quests", response_model=List[UserQuestResponse])
@limiter.limit("30/minute")
async def get_user_quests(
    request: Request,
    user_id: str,
    include_completed: bool = False,
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_service),
):
    """Get the user's assigned quests (Rate limit: 30/minute)"""
    return await service.get_user_quests(user_id, include_completed)


@router.post(
    "/api/v1/users/{user_id}/quests/{quest_id}",
    response_model=UserQuest,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("20/minute")
async def assign_quest(
    request: Request,
    user_id: str,
    quest_id: str,
    body: AssignQuestRequest,
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_service),
):
    """Assign a quest to the user (Rate limit: 20/minute)"""
    return await service.assign_quest(user_id, quest_id, body.expires_at)


@router.post("/api/v1/users/{user_id}/quests/{quest_id}/complete", response_model=QuestCompletionResponse)
@limiter.limit("20/minute")
async def complete_quest(
    request: Request,
    user_id: str,
    quest_id: str,
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_service),
):
    """Complete an assigned quest; repeating the call is a no-op (Rate limit: 20/minute)"""
    completion = await service.complete_quest(user_id, quest_id)
    if completion is None:
        return QuestCompletionResponse(quest_id=quest_id, completed=False)
    return QuestCompletionResponse(
        quest_id=quest_id,
        completed=True,
        xp_awarded=completion.xp_result.amount if completion.xp_result else 0,
    )


@router.get("/api/v1/users/{user_id}/goals", response_model=List[ReadingGoal])
@limiter.limit("30/minute")
async def get_goals(
    request: Request,
    user_id: str,
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_service),
):
    """Get the user's reading goals (Rate limit: 30/minute)"""
    return await service.get_reading_goals(user_id)


@router.put("/api/v1/users/{user_id}/goals", response_model=ReadingGoal)
@limiter.limit("20/minute")
async def set_goal(
    request: Request,
    user_id: str,
    body: ReadingGoalRequest,
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_service),
):
    """Create or replace a reading goal; progress restarts at 0 (Rate limit: 20/minute)"""
    return await service.set_reading_goal(user_id, body.type, body.target, body.year, body.month)


@router.put("/api/v1/goals/{goal_id}/progress", response_model=ReadingGoal)
@limiter.limit("20/minute")
async def update_goal_progress(
    request: Request,
    goal_id: str,
    body: GoalProgressRequest,
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_service),
):
    """Overwrite a goal's progress (Rate limit: 20/minute)"""
    return await service.update_goal_progress(goal_id, body.progress)


# ==========================================
# Catalogs and level curve
# ==========================================

@router.get("/api/v1/achievements", response_model=List[Achievement])
@limiter.limit("30/minute")
async def list_achievements(
    request: Request,
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_service),
):
    return await service.get_all_achievements()


@router.get("/api/v1/quests", response_model=List[Quest])
@limiter.limit("30/minute")
async def list_active_quests(
    request: Request,
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_service),
):
    return await service.get_active_quests()


@router.get("/api/v1/levels/progress", response_model=XPProgress)
@limiter.limit("60/minute")
async def get_level_progress(
    request: Request,
    xp: int = Query(..., ge=0),
    api_key: str = Depends(verify_api_key),
):
    """Progress through the level that `xp` falls in"""
    return GamificationService.get_xp_progress(xp)


@router.get("/api/v1/levels/{level}/name", response_model=LevelNameResponse)
@limiter.limit("60/minute")
async def get_level_name(
    request: Request,
    level: int = Path(..., ge=1),
    api_key: str = Depends(verify_api_key),
):
    return LevelNameResponse(level=level, name=GamificationService.get_level_name(level))


# ==========================================
# Health
# ==========================================

@router.get("/health", response_model=HealthCheckResponse)
@limiter.limit("60/minute")
async def health_check(
    request: Request,
    service: GamificationService = Depends(get_service),
):
    """Health check endpoint (Rate limit: 60/minute for monitoring systems)"""
    try:
        await service.get_active_quests()
        store_status = "connected"
    except ReadingJourneyError as e:
        logger.error(f"Store health check failed: {e.message}")
        store_status = "disconnected"

    return HealthCheckResponse(
        status="healthy" if store_status == "connected" else "degraded",
        store=store_status,
        timestamp=datetime.now(timezone.utc)
    )
