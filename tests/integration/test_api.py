"""Integration tests for the HTTP API (in-process ASGI client)"""
import pytest
import pytest_asyncio
import httpx
from typing import AsyncGenerator, Dict
from unittest.mock import AsyncMock, patch

from reading_journey.api.middleware import limiter
from reading_journey.api.server import create_api_application, lifespan, status_code_for
from reading_journey.config import settings
from reading_journey.db.memory_store import MemoryStore
from reading_journey.exceptions import ConnectionError, QueryError, RecordNotFoundError, ValidationError

TEST_API_KEY = "test_key_123"


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {TEST_API_KEY}"}


@pytest.fixture
def api_keys(monkeypatch):
    monkeypatch.setattr(settings, "api_keys", TEST_API_KEY)


@pytest_asyncio.fixture
async def api_client(store, api_keys) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Client for an app over the seeded memory store, lifespan included"""
    limiter.reset()
    app = create_api_application(store=store)
    async with lifespan(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


# ============================================================================
# Authentication
# ============================================================================

@pytest.mark.asyncio
async def test_missing_credentials_rejected(api_client):
    response = await api_client.get("/api/v1/achievements")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_invalid_key_rejected(api_client):
    response = await api_client.get(
        "/api/v1/achievements", headers={"Authorization": "Bearer wrong-key"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_no_configured_keys_rejects_everything(api_client, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "api_keys", "")

    response = await api_client.get("/api/v1/achievements", headers=auth_headers)

    assert response.status_code == 503


# ============================================================================
# Events
# ============================================================================

@pytest.mark.asyncio
async def test_post_book_finished(api_client, auth_headers):
    response = await api_client.post(
        "/api/v1/users/reader-123/events/book_finished",
        json={"reference_id": "book-1", "genres": ["fantasy"]},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["xp_gained"] == 130
    assert data["level"] == 2
    assert [a["id"] for a in data["achievements_unlocked"]] == ["first_chapter"]


@pytest.mark.asyncio
async def test_post_reading_logged(api_client, auth_headers):
    response = await api_client.post(
        "/api/v1/users/reader-123/events/reading_logged",
        json={"reference_id": "log-1", "pages": 30, "minutes": 25},
        headers=auth_headers,
    )

    assert response.status_code == 200
    stats = (await api_client.get("/api/v1/users/reader-123/stats", headers=auth_headers)).json()
    assert stats["activity"] == {"reading_sessions": 1, "pages_read": 30, "minutes_read": 25}


@pytest.mark.asyncio
async def test_unknown_event_is_422(api_client, auth_headers):
    response = await api_client.post(
        "/api/v1/users/reader-123/events/book_burned", json={}, headers=auth_headers
    )

    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_negative_pages_rejected(api_client, auth_headers):
    response = await api_client.post(
        "/api/v1/users/reader-123/events/reading_logged",
        json={"pages": -3},
        headers=auth_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_storage_failure_is_503(api_client, auth_headers):
    with patch(
        "reading_journey.services.gamification_service.GamificationService.handle_event",
        AsyncMock(side_effect=ConnectionError("database unavailable")),
    ):
        response = await api_client.post(
            "/api/v1/users/reader-123/events/book_started", json={}, headers=auth_headers
        )

    assert response.status_code == 503
    assert response.json()["error"] == "ConnectionError"


# ============================================================================
# User queries
# ============================================================================

@pytest.mark.asyncio
async def test_stats_for_new_user(api_client, auth_headers):
    response = await api_client.get("/api/v1/users/newcomer/stats", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["xp"] == 0
    assert data["level"] == 1
    assert data["level_name"] == "Bookworm Egg"
    assert data["progress"] == {"current": 0, "required": 100, "percentage": 0}


@pytest.mark.asyncio
async def test_xp_history(api_client, auth_headers):
    await api_client.post(
        "/api/v1/users/reader-123/events/book_rated",
        json={"reference_id": "book-1"},
        headers=auth_headers,
    )

    response = await api_client.get(
        "/api/v1/users/reader-123/xp-history", params={"limit": 5}, headers=auth_headers
    )

    assert response.status_code == 200
    assert [(e["amount"], e["reason"]) for e in response.json()] == [(5, "rated_book")]


@pytest.mark.asyncio
async def test_user_achievements(api_client, auth_headers):
    await api_client.post(
        "/api/v1/users/reader-123/events/club_joined",
        json={"reference_id": "club-1"},
        headers=auth_headers,
    )

    response = await api_client.get("/api/v1/users/reader-123/achievements", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] == "reader-123"
    assert [u["achievement"]["id"] for u in data["unlocked"]] == ["social_reader"]
    assert data["total_xp_from_achievements"] == 25
    assert data["total_unlocked"] + len(data["locked"]) == data["total_achievements"]


@pytest.mark.asyncio
async def test_quest_lifecycle(api_client, auth_headers):
    assigned = await api_client.post(
        "/api/v1/users/reader-123/quests/weekly_reviews", json={}, headers=auth_headers
    )
    assert assigned.status_code == 201

    quests = await api_client.get("/api/v1/users/reader-123/quests", headers=auth_headers)
    assert [(q["quest"]["id"], q["required"]) for q in quests.json()] == [("weekly_reviews", 2)]

    completed = await api_client.post(
        "/api/v1/users/reader-123/quests/weekly_reviews/complete", headers=auth_headers
    )
    assert completed.json() == {"quest_id": "weekly_reviews", "completed": True, "xp_awarded": 50}

    repeated = await api_client.post(
        "/api/v1/users/reader-123/quests/weekly_reviews/complete", headers=auth_headers
    )
    assert repeated.json()["completed"] is False

    history = await api_client.get(
        "/api/v1/users/reader-123/quests", params={"include_completed": True}, headers=auth_headers
    )
    assert history.json()[0]["user_quest"]["completed"] is True


@pytest.mark.asyncio
async def test_naive_expiry_does_not_break_later_events(api_client, auth_headers):
    assigned = await api_client.post(
        "/api/v1/users/reader-123/quests/daily_session",
        json={"expires_at": "2099-01-01T00:00:00"},
        headers=auth_headers,
    )
    assert assigned.status_code == 201

    response = await api_client.post(
        "/api/v1/users/reader-123/events/reading_logged",
        json={"reference_id": "log-1", "pages": 5},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert [q["id"] for q in response.json()["quests_completed"]] == ["daily_session"]


@pytest.mark.asyncio
async def test_complete_unassigned_quest_is_404(api_client, auth_headers):
    response = await api_client.post(
        "/api/v1/users/reader-123/quests/daily_session/complete", headers=auth_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_assign_unknown_quest_is_404(api_client, auth_headers):
    response = await api_client.post(
        "/api/v1/users/reader-123/quests/no_such_quest", json={}, headers=auth_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_reading_goals(api_client, auth_headers):
    created = await api_client.put(
        "/api/v1/users/reader-123/goals",
        json={"type": "yearly_books", "target": 24, "year": 2024},
        headers=auth_headers,
    )
    assert created.status_code == 200
    goal_id = created.json()["id"]

    updated = await api_client.put(
        f"/api/v1/goals/{goal_id}/progress", json={"progress": 6}, headers=auth_headers
    )
    assert updated.json()["progress"] == 6

    goals = await api_client.get("/api/v1/users/reader-123/goals", headers=auth_headers)
    assert [(g["type"], g["target"], g["progress"]) for g in goals.json()] == [
        ("yearly_books", 24, 6)
    ]


@pytest.mark.asyncio
async def test_unknown_goal_is_404(api_client, auth_headers):
    response = await api_client.put(
        "/api/v1/goals/missing/progress", json={"progress": 1}, headers=auth_headers
    )
    assert response.status_code == 404


# ============================================================================
# Catalogs and level curve
# ============================================================================

@pytest.mark.asyncio
async def test_catalogs(api_client, auth_headers):
    achievements = await api_client.get("/api/v1/achievements", headers=auth_headers)
    quests = await api_client.get("/api/v1/quests", headers=auth_headers)

    assert achievements.json()[0]["id"] == "first_chapter"
    assert {q["id"] for q in quests.json()} >= {"daily_session", "weekly_finish"}


@pytest.mark.asyncio
async def test_level_progress(api_client, auth_headers):
    response = await api_client.get(
        "/api/v1/levels/progress", params={"xp": 4600}, headers=auth_headers
    )
    assert response.json() == {"current": 100, "required": 1000, "percentage": 10}

    negative = await api_client.get(
        "/api/v1/levels/progress", params={"xp": -1}, headers=auth_headers
    )
    assert negative.status_code == 422


@pytest.mark.asyncio
async def test_level_name(api_client, auth_headers):
    response = await api_client.get("/api/v1/levels/12/name", headers=auth_headers)
    assert response.json() == {"level": 12, "name": "Grand Reader III"}


# ============================================================================
# Health and metrics
# ============================================================================

@pytest.mark.asyncio
async def test_health_check_no_auth_required(api_client):
    response = await api_client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["store"] == "connected"


@pytest.mark.asyncio
async def test_health_check_degraded(api_client):
    with patch.object(MemoryStore, "reader", side_effect=QueryError("store unavailable")):
        response = await api_client.get("/health")

    assert response.json()["status"] == "degraded"


@pytest.mark.asyncio
async def test_metrics_endpoint(api_client):
    response = await api_client.get("/metrics")

    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]


@pytest.mark.parametrize("error,expected", [
    (ValidationError("bad"), 422),
    (RecordNotFoundError("missing"), 404),
    (QueryError("failed"), 503),
])
def test_status_code_mapping(error, expected):
    assert status_code_for(error) == expected
