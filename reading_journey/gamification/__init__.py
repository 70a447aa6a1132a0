"""
Gamification engines for Reading Journey

This package implements the reader motivation layer:
- Level curve (XP -> level, titles, progress)
- XP ledger with per-user serialized grants
- Daily reading streak
- Quests and one-time achievements
- Reading goals

The GamificationService facade in reading_journey.services composes these
into one transaction per reading event.
"""

from reading_journey.gamification.level_curve import level_for_xp, level_name, xp_progress
from reading_journey.gamification.xp_system import award_xp, get_user_xp, get_xp_history
from reading_journey.gamification.streak_system import touch_activity, get_streak_info
from reading_journey.gamification.quest_system import record_progress, complete_quest
from reading_journey.gamification.achievement_system import unlock, get_user_achievements

__all__ = [
    "level_for_xp",
    "level_name",
    "xp_progress",
    "award_xp",
    "get_user_xp",
    "get_xp_history",
    "touch_activity",
    "get_streak_info",
    "record_progress",
    "complete_quest",
    "unlock",
    "get_user_achievements",
]
