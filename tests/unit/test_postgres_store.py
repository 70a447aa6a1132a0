"""Unit tests for the PostgreSQL store with a mocked psycopg connection"""
import pytest
from contextlib import asynccontextmanager
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import psycopg

from reading_journey.db.postgres_store import PostgresSession, PostgresStore
from reading_journey.exceptions import ConnectionError, QueryError
from reading_journey.models.gamification import UserAchievement, UserGameState


def _mock_conn(fetchone=None, fetchall=None, rowcount=1):
    cursor = AsyncMock()
    cursor.fetchone = AsyncMock(return_value=fetchone)
    cursor.fetchall = AsyncMock(return_value=fetchall or [])
    cursor.rowcount = rowcount

    conn = MagicMock()
    conn.cursor.return_value.__aenter__.return_value = cursor
    conn.execute = AsyncMock()
    return conn, cursor


def _mock_database(conn):
    database = MagicMock()

    @asynccontextmanager
    async def connection():
        yield conn

    database.connection = connection
    return database


_STATE_ROW = {
    "user_id": "reader-123",
    "xp": 350,
    "current_streak": 2,
    "longest_streak": 5,
    "streak_freezes": 0,
    "last_active_date": date(2024, 3, 14),
}


# ============================================================================
# Session queries
# ============================================================================

@pytest.mark.asyncio
async def test_writable_state_provisions_then_locks_row():
    conn, cursor = _mock_conn(fetchone=_STATE_ROW, rowcount=0)
    session = PostgresSession(conn, writable=True)

    state = await session.get_game_state("reader-123")

    assert state.xp == 350
    assert state.level == 3
    queries = [call.args[0] for call in cursor.execute.call_args_list]
    assert "ON CONFLICT (user_id) DO NOTHING" in queries[0]
    assert "FOR UPDATE" in queries[1]


@pytest.mark.asyncio
async def test_reader_state_never_inserts():
    conn, cursor = _mock_conn(fetchone=None)
    session = PostgresSession(conn, writable=False)

    state = await session.get_game_state("ghost")

    assert state == UserGameState(user_id="ghost")
    assert cursor.execute.call_count == 1
    assert "INSERT" not in cursor.execute.call_args.args[0]


@pytest.mark.asyncio
async def test_save_state_writes_cached_level():
    conn, cursor = _mock_conn()
    session = PostgresSession(conn, writable=True)

    await session.save_game_state(UserGameState(user_id="reader-123", xp=1000))

    params = cursor.execute.call_args.args[1]
    assert params[0] == 1000
    assert params[1] == 5


@pytest.mark.asyncio
@pytest.mark.parametrize("rowcount,expected", [(1, True), (0, False)])
async def test_insert_user_achievement_reports_conflict(rowcount, expected):
    conn, _ = _mock_conn(rowcount=rowcount)
    session = PostgresSession(conn, writable=True)

    inserted = await session.insert_user_achievement(
        UserAchievement(user_id="reader-123", achievement_id="first_chapter")
    )

    assert inserted is expected


@pytest.mark.asyncio
async def test_increment_counter_returns_new_value():
    conn, cursor = _mock_conn(fetchone={"value": 7})
    session = PostgresSession(conn, writable=True)

    assert await session.increment_counter("reader-123", "books_read", 1) == 7
    assert "RETURNING value" in cursor.execute.call_args.args[0]


@pytest.mark.asyncio
async def test_genres_are_normalized():
    conn, cursor = _mock_conn(fetchall=[{"genre": "fantasy"}])
    session = PostgresSession(conn, writable=True)

    genres = await session.add_genres("reader-123", ["Fantasy", " fantasy", ""])

    inserts = [c.args[1] for c in cursor.execute.call_args_list if "INSERT" in c.args[0]]
    assert inserts == [("reader-123", "fantasy")]
    assert genres == {"fantasy"}


# ============================================================================
# Transactions
# ============================================================================

@pytest.mark.asyncio
async def test_transaction_takes_advisory_lock():
    conn, _ = _mock_conn()
    store = PostgresStore(database=_mock_database(conn))

    async with store.transaction("reader-123") as session:
        assert session.writable is True

    conn.transaction.assert_called_once()
    lock_sql, lock_params = conn.execute.call_args.args
    assert "pg_advisory_xact_lock" in lock_sql
    assert lock_params == ("reader-123",)


@pytest.mark.asyncio
async def test_transaction_wraps_connection_failures():
    conn, _ = _mock_conn()
    conn.execute = AsyncMock(side_effect=psycopg.OperationalError("server closed the connection"))
    store = PostgresStore(database=_mock_database(conn))

    with pytest.raises(ConnectionError) as exc_info:
        async with store.transaction("reader-123"):
            pass

    assert exc_info.value.user_id == "reader-123"


@pytest.mark.asyncio
async def test_transaction_wraps_query_failures():
    conn, cursor = _mock_conn()
    cursor.execute = AsyncMock(side_effect=psycopg.errors.UniqueViolation("duplicate key"))
    store = PostgresStore(database=_mock_database(conn))

    with pytest.raises(QueryError):
        async with store.transaction("reader-123") as session:
            await session.increment_counter("reader-123", "books_read", 1)


@pytest.mark.asyncio
async def test_reader_skips_advisory_lock():
    conn, _ = _mock_conn()
    store = PostgresStore(database=_mock_database(conn))

    async with store.reader() as session:
        assert session.writable is False

    conn.execute.assert_not_called()
    conn.transaction.assert_not_called()
