"""Tests for the best-effort gamification hooks and notification formatting"""
import pytest
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

from reading_journey.db.memory_store import MemorySession
from reading_journey.exceptions import ConnectionError
from reading_journey.gamification.catalog import DEFAULT_ACHIEVEMENTS, DEFAULT_QUESTS
from reading_journey.gamification.integrations import (
    format_gamification_message,
    handle_book_finished_gamification,
    handle_book_rated_gamification,
    handle_book_started_gamification,
    handle_club_created_gamification,
    handle_club_joined_gamification,
    handle_reading_logged_gamification,
    handle_review_written_gamification,
)
from reading_journey.models.gamification import GamificationResult


@pytest.fixture(autouse=True)
def fixed_today():
    with patch(
        "reading_journey.services.gamification_service.today_canonical",
        return_value=date(2024, 3, 15),
    ):
        yield


@pytest.mark.asyncio
async def test_book_finished_hook_returns_result(service, test_user_id):
    result = await handle_book_finished_gamification(
        service, test_user_id, "book-1", genres=["fantasy"]
    )

    assert isinstance(result, GamificationResult)
    assert result.xp_gained == 130


@pytest.mark.asyncio
@pytest.mark.parametrize("hook,kwargs,event", [
    (handle_book_started_gamification, {"book_id": "b1"}, "book_started"),
    (handle_review_written_gamification, {"book_id": "b1"}, "review_written"),
    (handle_book_rated_gamification, {"book_id": "b1"}, "book_rated"),
    (handle_reading_logged_gamification, {"log_id": "l1", "pages": 12}, "reading_logged"),
    (handle_club_joined_gamification, {"club_id": "c1"}, "club_joined"),
    (handle_club_created_gamification, {"club_id": "c1"}, "club_created"),
])
async def test_every_hook_reaches_the_service(service, test_user_id, hook, kwargs, event):
    result = await hook(service, test_user_id, **kwargs)

    assert result.event == event


@pytest.mark.asyncio
async def test_hook_swallows_storage_failure(service, test_user_id, caplog):
    with patch.object(
        MemorySession, "increment_counter",
        AsyncMock(side_effect=ConnectionError("database unavailable")),
    ):
        with patch("reading_journey.gamification.integrations.record_hook_failure") as failures:
            with caplog.at_level("WARNING", logger="reading_journey.gamification.integrations"):
                result = await handle_book_finished_gamification(service, test_user_id, "book-1")

    assert result is None
    failures.assert_called_once_with("book_finished")
    assert "book_finished skipped" in caplog.text
    assert (await service.get_user_stats(test_user_id)).xp == 0


@pytest.mark.asyncio
async def test_hook_swallows_missing_user(service):
    assert await handle_review_written_gamification(service, None, "book-1") is None


@pytest.mark.asyncio
async def test_hook_does_not_hide_programming_errors():
    broken = MagicMock()
    broken.on_club_joined = AsyncMock(side_effect=TypeError("bad call"))

    with pytest.raises(TypeError):
        await handle_club_joined_gamification(broken, "reader-123", "club-1")


# ============================================================================
# Notification formatting
# ============================================================================

def _achievement(achievement_id):
    return next(a for a in DEFAULT_ACHIEVEMENTS if a.id == achievement_id)


def _quest(quest_id):
    return next(q for q in DEFAULT_QUESTS if q.id == quest_id)


def test_format_full_message():
    result = GamificationResult(
        user_id="reader-123",
        event="book_finished",
        xp_gained=240,
        new_xp=1040,
        level=5,
        leveled_up=True,
        current_streak=4,
        streak_increased=True,
        quests_completed=[_quest("weekly_finish")],
        achievements_unlocked=[_achievement("first_chapter")],
    )

    lines = format_gamification_message(result).split("\n")

    assert lines == [
        "⭐ +240 XP",
        "🎉 Level 5!",
        "🔥 4-day reading streak",
        "🎯 Quest complete: Weekly Finisher (+75 XP)",
        "📖 First Chapter (+25 XP)",
    ]


def test_format_first_streak_day_is_quiet():
    result = GamificationResult(
        user_id="reader-123", event="book_started", xp_gained=15,
        current_streak=1, streak_increased=True,
    )

    assert format_gamification_message(result) == "⭐ +15 XP"


@pytest.mark.parametrize("result", [
    None,
    GamificationResult(user_id="reader-123", event="book_finished", replayed=True),
])
def test_format_nothing_to_report(result):
    assert format_gamification_message(result) == ""
