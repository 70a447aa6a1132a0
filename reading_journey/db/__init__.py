"""Gamification storage backends"""
from reading_journey.config import settings
from reading_journey.db.base import GamificationSession, GamificationStore


def create_store(backend: str = settings.store_backend) -> GamificationStore:
    """Build the store selected by STORE_BACKEND"""
    if backend == "postgres":
        from reading_journey.db.postgres_store import PostgresStore
        return PostgresStore()

    from reading_journey.db.memory_store import MemoryStore
    from reading_journey.gamification.catalog import DEFAULT_ACHIEVEMENTS, DEFAULT_QUESTS

    store = MemoryStore()
    store.seed_catalog(DEFAULT_ACHIEVEMENTS, DEFAULT_QUESTS)
    return store


__all__ = ["GamificationSession", "GamificationStore", "create_store"]
