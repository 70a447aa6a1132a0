"""Service layer for Reading Journey"""
from reading_journey.services.gamification_service import GamificationService

__all__ = ["GamificationService"]
