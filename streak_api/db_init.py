from __future__ import annotations

import logging

from sqlalchemy import text as sql_text

from streak_api.db import get_engine

logger = logging.getLogger(__name__)

CALENDARS_TABLE = "calendars"
HABITS_TABLE = "habits"
COMPLETIONS_TABLE = "completions"
PREFERENCES_TABLE = "preferences"


async def init_db():
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {CALENDARS_TABLE} (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    color_theme TEXT NOT NULL,
                    position INTEGER,
                    created_at TEXT NOT NULL,
                    updated_at TEXT
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {HABITS_TABLE} (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    calendar_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    timer_duration INTEGER,
                    position INTEGER,
                    created_at TEXT NOT NULL,
                    updated_at TEXT
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {COMPLETIONS_TABLE} (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    habit_id TEXT NOT NULL,
                    completed_at BIGINT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {PREFERENCES_TABLE} (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
                """
            )
        )

    async def ensure_index(index_sql: str) -> None:
        try:
            async with engine.begin() as conn:
                await conn.execute(sql_text(index_sql))
        except Exception:
            logger.warning("Index creation failed: %s", index_sql, exc_info=True)

    await ensure_index(
        f"CREATE INDEX IF NOT EXISTS idx_{CALENDARS_TABLE}_user "
        f"ON {CALENDARS_TABLE} (user_id)"
    )
    await ensure_index(
        f"CREATE INDEX IF NOT EXISTS idx_{HABITS_TABLE}_calendar "
        f"ON {HABITS_TABLE} (calendar_id)"
    )
    await ensure_index(
        f"CREATE INDEX IF NOT EXISTS idx_{COMPLETIONS_TABLE}_habit "
        f"ON {COMPLETIONS_TABLE} (habit_id)"
    )
    await ensure_index(
        f"CREATE INDEX IF NOT EXISTS idx_{COMPLETIONS_TABLE}_user_date "
        f"ON {COMPLETIONS_TABLE} (user_id, completed_at)"
    )

    updated = await backfill_habit_positions()
    if updated:
        logger.info("Updated positions for %s habits", updated)


async def backfill_habit_positions() -> int:
    """Give habits created before ordering existed a rank inside their calendar.

    Only unpositioned habits are touched; they are numbered 1..n per calendar
    in creation order.
    """
    engine = get_engine()
    async with engine.begin() as conn:
        rows = (await conn.execute(
            sql_text(
                f"""
                SELECT id, calendar_id
                FROM {HABITS_TABLE}
                WHERE position IS NULL
                ORDER BY created_at, id
                """
            )
        )).mappings().all()
        by_calendar: dict[str, list[str]] = {}
        for row in rows:
            by_calendar.setdefault(row["calendar_id"], []).append(row["id"])
        for habit_ids in by_calendar.values():
            for index, habit_id in enumerate(habit_ids):
                await conn.execute(
                    sql_text(f"UPDATE {HABITS_TABLE} SET position = :position WHERE id = :id"),
                    {"position": index + 1, "id": habit_id},
                )
    return len(rows)
