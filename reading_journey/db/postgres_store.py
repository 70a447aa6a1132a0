"""PostgreSQL gamification store (psycopg 3)"""
import logging
from contextlib import asynccontextmanager
from importlib import resources
from typing import AsyncIterator, Iterable, Optional

import psycopg
from psycopg.types.json import Jsonb

from reading_journey.db.base import GamificationSession, GamificationStore
from reading_journey.db.connection import Database
from reading_journey.exceptions import wrap_external_exception
from reading_journey.models.gamification import (
    Achievement,
    Quest,
    ReadingGoal,
    UserAchievement,
    UserGameState,
    UserQuest,
    XPEvent,
)

logger = logging.getLogger(__name__)

_STATE_COLUMNS = "user_id, xp, current_streak, longest_streak, streak_freezes, last_active_date"
_QUEST_COLUMNS = "id, user_id, quest_id, progress, completed, completed_at, assigned_at, expires_at"
_GOAL_COLUMNS = "id, user_id, type, target, year, month, progress"


class PostgresSession(GamificationSession):
    """Session bound to one pooled connection"""

    def __init__(self, conn: psycopg.AsyncConnection, writable: bool):
        self.conn = conn
        self.writable = writable

    async def _fetchone(self, query: str, params: tuple = ()) -> Optional[dict]:
        async with self.conn.cursor() as cur:
            await cur.execute(query, params)
            return await cur.fetchone()

    async def _fetchall(self, query: str, params: tuple = ()) -> list[dict]:
        async with self.conn.cursor() as cur:
            await cur.execute(query, params)
            return await cur.fetchall()

    async def _execute(self, query: str, params: tuple = ()) -> int:
        async with self.conn.cursor() as cur:
            await cur.execute(query, params)
            return cur.rowcount

    # ==========================================
    # Game state
    # ==========================================

    async def get_game_state(self, user_id: str) -> UserGameState:
        if not self.writable:
            row = await self._fetchone(
                f"SELECT {_STATE_COLUMNS} FROM user_game_state WHERE user_id = %s",
                (user_id,)
            )
            return UserGameState(**row) if row else UserGameState(user_id=user_id)

        inserted = await self._execute(
            "INSERT INTO user_game_state (user_id) VALUES (%s) ON CONFLICT (user_id) DO NOTHING",
            (user_id,)
        )
        if inserted:
            logger.info(f"Created new game state for user {user_id}")

        # Row lock for the rest of the transaction
        row = await self._fetchone(
            f"SELECT {_STATE_COLUMNS} FROM user_game_state WHERE user_id = %s FOR UPDATE",
            (user_id,)
        )
        return UserGameState(**row)

    async def save_game_state(self, state: UserGameState) -> None:
        await self._execute(
            """
            UPDATE user_game_state
            SET xp = %s,
                level = %s,
                current_streak = %s,
                longest_streak = %s,
                streak_freezes = %s,
                last_active_date = %s,
                updated_at = CURRENT_TIMESTAMP
            WHERE user_id = %s
            """,
            (
                state.xp,
                state.level,
                state.current_streak,
                state.longest_streak,
                state.streak_freezes,
                state.last_active_date,
                state.user_id,
            )
        )

    # ==========================================
    # XP ledger
    # ==========================================

    async def append_xp_event(self, event: XPEvent) -> None:
        await self._execute(
            """
            INSERT INTO xp_events (id, user_id, amount, reason, reference_id, created_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            (event.id, event.user_id, event.amount, event.reason, event.reference_id, event.created_at)
        )

    async def find_xp_event(
        self, user_id: str, reason: str, reference_id: str
    ) -> Optional[XPEvent]:
        row = await self._fetchone(
            """
            SELECT id, user_id, amount, reason, reference_id, created_at
            FROM xp_events
            WHERE user_id = %s AND reason = %s AND reference_id = %s
            LIMIT 1
            """,
            (user_id, reason, reference_id)
        )
        return XPEvent(**row) if row else None

    async def list_xp_events(self, user_id: str, limit: int = 20) -> list[XPEvent]:
        rows = await self._fetchall(
            """
            SELECT id, user_id, amount, reason, reference_id, created_at
            FROM xp_events
            WHERE user_id = %s
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (user_id, limit)
        )
        return [XPEvent(**row) for row in rows]

    # ==========================================
    # Achievements
    # ==========================================

    async def list_achievements(self) -> list[Achievement]:
        rows = await self._fetchall(
            """
            SELECT id, name, description, icon, xp_reward, category, requirement, sort_order
            FROM achievements
            ORDER BY sort_order ASC
            """
        )
        return [Achievement(**row) for row in rows]

    async def get_achievement(self, achievement_id: str) -> Optional[Achievement]:
        row = await self._fetchone(
            """
            SELECT id, name, description, icon, xp_reward, category, requirement, sort_order
            FROM achievements
            WHERE id = %s
            """,
            (achievement_id,)
        )
        return Achievement(**row) if row else None

    async def list_user_achievements(self, user_id: str) -> list[UserAchievement]:
        rows = await self._fetchall(
            """
            SELECT id, user_id, achievement_id, unlocked_at
            FROM user_achievements
            WHERE user_id = %s
            ORDER BY unlocked_at DESC
            """,
            (user_id,)
        )
        return [UserAchievement(**row) for row in rows]

    async def insert_user_achievement(self, user_achievement: UserAchievement) -> bool:
        inserted = await self._execute(
            """
            INSERT INTO user_achievements (id, user_id, achievement_id, unlocked_at)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (user_id, achievement_id) DO NOTHING
            """,
            (
                user_achievement.id,
                user_achievement.user_id,
                user_achievement.achievement_id,
                user_achievement.unlocked_at,
            )
        )
        return inserted == 1

    # ==========================================
    # Quests
    # ==========================================

    async def list_quests(self, active_only: bool = True) -> list[Quest]:
        query = "SELECT id, name, description, type, xp_reward, requirement, is_active FROM quests"
        if active_only:
            query += " WHERE is_active = TRUE"
        rows = await self._fetchall(query + " ORDER BY id")
        return [Quest(**row) for row in rows]

    async def get_quest(self, quest_id: str) -> Optional[Quest]:
        row = await self._fetchone(
            "SELECT id, name, description, type, xp_reward, requirement, is_active FROM quests WHERE id = %s",
            (quest_id,)
        )
        return Quest(**row) if row else None

    async def list_user_quests(
        self, user_id: str, include_completed: bool = True
    ) -> list[UserQuest]:
        query = f"SELECT {_QUEST_COLUMNS} FROM user_quests WHERE user_id = %s"
        if not include_completed:
            query += " AND completed = FALSE"
        rows = await self._fetchall(query + " ORDER BY assigned_at", (user_id,))
        return [UserQuest(**row) for row in rows]

    async def insert_user_quest(self, user_quest: UserQuest) -> None:
        await self._execute(
            f"INSERT INTO user_quests ({_QUEST_COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)",
            (
                user_quest.id,
                user_quest.user_id,
                user_quest.quest_id,
                user_quest.progress,
                user_quest.completed,
                user_quest.completed_at,
                user_quest.assigned_at,
                user_quest.expires_at,
            )
        )

    async def save_user_quest(self, user_quest: UserQuest) -> None:
        await self._execute(
            """
            UPDATE user_quests
            SET progress = %s, completed = %s, completed_at = %s
            WHERE id = %s AND completed = FALSE
            """,
            (user_quest.progress, user_quest.completed, user_quest.completed_at, user_quest.id)
        )

    # ==========================================
    # Activity stats
    # ==========================================

    async def increment_counter(self, user_id: str, metric: str, delta: int) -> int:
        row = await self._fetchone(
            """
            INSERT INTO user_activity_counters (user_id, metric, value)
            VALUES (%s, %s, %s)
            ON CONFLICT (user_id, metric)
            DO UPDATE SET value = user_activity_counters.value + EXCLUDED.value
            RETURNING value
            """,
            (user_id, metric, delta)
        )
        return row["value"]

    async def get_counters(self, user_id: str) -> dict[str, int]:
        rows = await self._fetchall(
            "SELECT metric, value FROM user_activity_counters WHERE user_id = %s",
            (user_id,)
        )
        return {row["metric"]: row["value"] for row in rows}

    async def add_genres(self, user_id: str, genres: Iterable[str]) -> set[str]:
        cleaned = {g.strip().lower() for g in genres if g and g.strip()}
        for genre in cleaned:
            await self._execute(
                "INSERT INTO user_genres (user_id, genre) VALUES (%s, %s) ON CONFLICT DO NOTHING",
                (user_id, genre)
            )
        return await self.get_genres(user_id)

    async def get_genres(self, user_id: str) -> set[str]:
        rows = await self._fetchall("SELECT genre FROM user_genres WHERE user_id = %s", (user_id,))
        return {row["genre"] for row in rows}

    # ==========================================
    # Reading goals
    # ==========================================

    async def list_reading_goals(self, user_id: str) -> list[ReadingGoal]:
        rows = await self._fetchall(
            f"SELECT {_GOAL_COLUMNS} FROM reading_goals WHERE user_id = %s",
            (user_id,)
        )
        return [ReadingGoal(**row) for row in rows]

    async def get_reading_goal(self, goal_id: str) -> Optional[ReadingGoal]:
        row = await self._fetchone(
            f"SELECT {_GOAL_COLUMNS} FROM reading_goals WHERE id = %s",
            (goal_id,)
        )
        return ReadingGoal(**row) if row else None

    async def upsert_reading_goal(self, goal: ReadingGoal) -> ReadingGoal:
        row = await self._fetchone(
            f"""
            INSERT INTO reading_goals ({_GOAL_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (user_id, type, year, month)
            DO UPDATE SET target = EXCLUDED.target, progress = EXCLUDED.progress
            RETURNING {_GOAL_COLUMNS}
            """,
            (goal.id, goal.user_id, goal.type.value, goal.target, goal.year, goal.month, goal.progress)
        )
        return ReadingGoal(**row)

    async def save_reading_goal(self, goal: ReadingGoal) -> None:
        await self._execute(
            "UPDATE reading_goals SET target = %s, progress = %s WHERE id = %s",
            (goal.target, goal.progress, goal.id)
        )


class PostgresStore(GamificationStore):
    """Store backed by a psycopg connection pool"""

    def __init__(self, database: Optional[Database] = None):
        self.db = database or Database()

    async def open(self) -> None:
        await self.db.init_pool()

    async def close(self) -> None:
        await self.db.close_pool()

    async def apply_schema(self) -> None:
        """Create tables if they do not exist"""
        ddl = resources.files("reading_journey.db").joinpath("schema.sql").read_text()
        async with self.db.connection() as conn:
            await conn.execute(ddl)
            await conn.commit()
        logger.info("Gamification schema applied")

    async def seed_catalog(
        self,
        achievements: Iterable[Achievement] = (),
        quests: Iterable[Quest] = (),
    ) -> None:
        """Upsert admin-defined catalog rows"""
        async with self.db.connection() as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    for a in achievements:
                        await cur.execute(
                            """
                            INSERT INTO achievements (id, name, description, icon, xp_reward, category, requirement, sort_order)
                            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                            ON CONFLICT (id) DO UPDATE SET
                                name = EXCLUDED.name, description = EXCLUDED.description,
                                icon = EXCLUDED.icon, xp_reward = EXCLUDED.xp_reward,
                                category = EXCLUDED.category, requirement = EXCLUDED.requirement,
                                sort_order = EXCLUDED.sort_order
                            """,
                            (a.id, a.name, a.description, a.icon, a.xp_reward,
                             a.category.value, Jsonb(a.requirement), a.sort_order)
                        )
                    for q in quests:
                        await cur.execute(
                            """
                            INSERT INTO quests (id, name, description, type, xp_reward, requirement, is_active)
                            VALUES (%s, %s, %s, %s, %s, %s, %s)
                            ON CONFLICT (id) DO UPDATE SET
                                name = EXCLUDED.name, description = EXCLUDED.description,
                                type = EXCLUDED.type, xp_reward = EXCLUDED.xp_reward,
                                requirement = EXCLUDED.requirement, is_active = EXCLUDED.is_active
                            """,
                            (q.id, q.name, q.description, q.type.value, q.xp_reward,
                             Jsonb(q.requirement), q.is_active)
                        )

    @asynccontextmanager
    async def transaction(self, user_id: str) -> AsyncIterator[PostgresSession]:
        try:
            async with self.db.connection() as conn:
                async with conn.transaction():
                    await conn.execute(
                        "SELECT pg_advisory_xact_lock(hashtext(%s))", (user_id,)
                    )
                    yield PostgresSession(conn, writable=True)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="gamification_transaction", user_id=user_id) from e

    @asynccontextmanager
    async def reader(self) -> AsyncIterator[PostgresSession]:
        try:
            async with self.db.connection() as conn:
                yield PostgresSession(conn, writable=False)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="gamification_read") from e
