"""Global test fixtures for reading-journey tests"""
import pytest
from datetime import date, timedelta

from reading_journey.db.memory_store import MemoryStore
from reading_journey.gamification.catalog import DEFAULT_ACHIEVEMENTS, DEFAULT_QUESTS
from reading_journey.models.gamification import UserGameState
from reading_journey.services.gamification_service import GamificationService


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture
def empty_store():
    """Memory store with no catalog rows"""
    return MemoryStore()


@pytest.fixture
def store():
    """Memory store seeded with the default achievement and quest catalogs"""
    memory_store = MemoryStore()
    memory_store.seed_catalog(DEFAULT_ACHIEVEMENTS, DEFAULT_QUESTS)
    return memory_store


@pytest.fixture
def service(store):
    """GamificationService over the seeded memory store"""
    return GamificationService(store)


@pytest.fixture
def seed_state(store):
    """Write a UserGameState directly into the store"""
    async def _seed(user_id: str, **fields) -> UserGameState:
        async with store.transaction(user_id) as session:
            state = UserGameState(user_id=user_id, **fields)
            await session.save_game_state(state)
        return state

    return _seed


# ============================================================================
# User & Date Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "reader-123"


@pytest.fixture
def today():
    """Fixed canonical calendar date"""
    return date(2024, 3, 15)


@pytest.fixture
def yesterday(today):
    return today - timedelta(days=1)
