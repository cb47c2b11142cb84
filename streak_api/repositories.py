from __future__ import annotations

import json
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import text as sql_text

from streak_api.db import get_sessionmaker
from streak_api.dates import day_bounds_ms, resolve_timezone
from streak_api.errors import InvalidInput, NotFound, Unauthorized

CALENDARS_TABLE = "calendars"
HABITS_TABLE = "habits"
COMPLETIONS_TABLE = "completions"
PREFERENCES_TABLE = "preferences"

CALENDAR_COLUMNS = ["id", "user_id", "name", "color_theme", "position", "created_at", "updated_at"]
HABIT_COLUMNS = [
    "id",
    "user_id",
    "calendar_id",
    "name",
    "timer_duration",
    "position",
    "created_at",
    "updated_at",
]
COMPLETION_COLUMNS = ["id", "user_id", "habit_id", "completed_at"]

# Unpositioned rows sort after ranked ones.
POSITION_ORDER = "position IS NULL, position, created_at, id"

MAX_COMPLETIONS_PAGE = 10000

PREFERENCE_CHOICES = {
    "calendar_view": ("monthGrid", "monthRow"),
}
PREFERENCE_DEFAULTS = {
    "calendar_view": "monthGrid",
}


def _new_id() -> str:
    return uuid4().hex


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_name(value, label: str) -> str:
    name = str(value or "")
    if not name.strip():
        raise InvalidInput(f"{label} name cannot be empty")
    return name


def _parse_duration(value):
    if value is None:
        return None
    try:
        minutes = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInput("Invalid timer duration") from exc
    if minutes < 0:
        raise InvalidInput("Invalid timer duration")
    return minutes


def _parse_position(value):
    if value is None:
        return None
    try:
        position = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInput("Invalid position") from exc
    if position < 1:
        raise InvalidInput("Invalid position")
    return position


def _require_owner(row: dict | None, user_id: str, label: str) -> dict:
    if not row:
        raise NotFound(f"{label} not found")
    if row.get("user_id") != user_id:
        raise Unauthorized("Not authorized")
    return row


async def _fetch_by_id(table: str, columns: list[str], row_id: str) -> dict | None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        row = (await session.execute(
            sql_text(f"SELECT {', '.join(columns)} FROM {table} WHERE id = :id"),
            {"id": row_id},
        )).mappings().fetchone()
    return dict(row) if row else None


async def _insert(table: str, record: dict) -> None:
    columns = list(record.keys())
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"INSERT INTO {table} ({', '.join(columns)}) "
                f"VALUES ({', '.join(f':{col}' for col in columns)})"
            ),
            record,
        )
        await session.commit()


async def _patch(table: str, row_id: str, user_id: str, values: dict) -> None:
    if not values:
        return
    params = {"id": row_id, "user_id": user_id, "updated_at": _now_iso(), **values}
    assignments = [f"{key} = :{key}" for key in values] + ["updated_at = :updated_at"]
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"UPDATE {table} SET {', '.join(assignments)} WHERE id = :id AND user_id = :user_id"
            ),
            params,
        )
        await session.commit()


async def _delete(table: str, row_id: str) -> None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(sql_text(f"DELETE FROM {table} WHERE id = :id"), {"id": row_id})
        await session.commit()


# Calendars


async def list_calendars(user_id: str) -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT {', '.join(CALENDAR_COLUMNS)}
                FROM {CALENDARS_TABLE}
                WHERE user_id = :user_id
                ORDER BY {POSITION_ORDER}
                """
            ),
            {"user_id": user_id},
        )).mappings().all()
    return [dict(row) for row in rows]


async def get_calendar(user_id: str, calendar_id: str) -> dict:
    row = await _fetch_by_id(CALENDARS_TABLE, CALENDAR_COLUMNS, calendar_id)
    return _require_owner(row, user_id, "Calendar")


async def create_calendar(user_id: str, name: str, color_theme: str, position: int | None = None) -> dict:
    name = _require_name(name, "Calendar")
    position = _parse_position(position)
    if position is None:
        position = len(await list_calendars(user_id)) + 1
    now = _now_iso()
    record = {
        "id": _new_id(),
        "user_id": user_id,
        "name": name,
        "color_theme": str(color_theme or ""),
        "position": position,
        "created_at": now,
        "updated_at": now,
    }
    await _insert(CALENDARS_TABLE, record)
    return record


async def update_calendar(user_id: str, calendar_id: str, fields: dict) -> dict:
    calendar = await get_calendar(user_id, calendar_id)
    values = {}
    if "name" in fields:
        values["name"] = _require_name(fields["name"], "Calendar")
    if fields.get("color_theme") is not None:
        values["color_theme"] = str(fields["color_theme"])
    if "position" in fields:
        new_position = _parse_position(fields["position"])
        values["position"] = new_position
        if new_position is not None and new_position != calendar.get("position"):
            siblings = await list_calendars(user_id)
            old_position = calendar.get("position") or len(siblings)
            for other in siblings:
                if other["id"] == calendar_id:
                    continue
                current = other.get("position") or len(siblings)
                if new_position <= current < old_position:
                    await _patch(CALENDARS_TABLE, other["id"], user_id, {"position": current + 1})
                elif old_position < current <= new_position:
                    await _patch(CALENDARS_TABLE, other["id"], user_id, {"position": current - 1})
    await _patch(CALENDARS_TABLE, calendar_id, user_id, values)
    return {**calendar, **values}


async def overwrite_calendar(user_id: str, calendar_id: str, color_theme: str, position: int | None) -> None:
    """Write theme and rank as given, leaving sibling ranks alone."""
    await _patch(
        CALENDARS_TABLE,
        calendar_id,
        user_id,
        {"color_theme": color_theme, "position": _parse_position(position)},
    )


async def remove_calendar(user_id: str, calendar_id: str) -> None:
    calendar = await get_calendar(user_id, calendar_id)

    for habit in await _habits_in_calendar(calendar_id):
        await _delete_habit_completions(habit["id"])
        await _delete(HABITS_TABLE, habit["id"])

    siblings = await list_calendars(user_id)
    deleted_position = calendar.get("position") or len(siblings)
    for other in siblings:
        if other["id"] == calendar_id:
            continue
        current = other.get("position") or len(siblings)
        if current > deleted_position:
            await _patch(CALENDARS_TABLE, other["id"], user_id, {"position": current - 1})

    await _delete(CALENDARS_TABLE, calendar_id)


# Habits


async def _habits_in_calendar(calendar_id: str) -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT {', '.join(HABIT_COLUMNS)}
                FROM {HABITS_TABLE}
                WHERE calendar_id = :calendar_id
                ORDER BY {POSITION_ORDER}
                """
            ),
            {"calendar_id": calendar_id},
        )).mappings().all()
    return [dict(row) for row in rows]


async def list_habits(user_id: str, calendar_id: str | None = None) -> list[dict]:
    clauses = ["user_id = :user_id"]
    params = {"user_id": user_id}
    if calendar_id:
        clauses.append("calendar_id = :calendar_id")
        params["calendar_id"] = calendar_id
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT {', '.join(HABIT_COLUMNS)}
                FROM {HABITS_TABLE}
                WHERE {' AND '.join(clauses)}
                ORDER BY {POSITION_ORDER}
                """
            ),
            params,
        )).mappings().all()
    return [dict(row) for row in rows]


async def get_habit(user_id: str, habit_id: str) -> dict:
    row = await _fetch_by_id(HABITS_TABLE, HABIT_COLUMNS, habit_id)
    return _require_owner(row, user_id, "Habit")


async def create_habit(
    user_id: str,
    calendar_id: str,
    name: str,
    timer_duration: int | None = None,
    position: int | None = None,
) -> dict:
    await get_calendar(user_id, calendar_id)
    name = _require_name(name, "Habit")
    position = _parse_position(position)
    if position is None:
        habits = await _habits_in_calendar(calendar_id)
        position = max((habit.get("position") or 0 for habit in habits), default=0) + 1
    now = _now_iso()
    record = {
        "id": _new_id(),
        "user_id": user_id,
        "calendar_id": calendar_id,
        "name": name,
        "timer_duration": _parse_duration(timer_duration),
        "position": position,
        "created_at": now,
        "updated_at": now,
    }
    await _insert(HABITS_TABLE, record)
    return record


async def update_habit(user_id: str, habit_id: str, fields: dict) -> dict:
    habit = await get_habit(user_id, habit_id)
    values = {}
    if "name" in fields:
        values["name"] = _require_name(fields["name"], "Habit")
    if "timer_duration" in fields:
        values["timer_duration"] = _parse_duration(fields["timer_duration"])

    target_calendar_id = fields.get("calendar_id") or habit["calendar_id"]
    if fields.get("calendar_id"):
        await get_calendar(user_id, target_calendar_id)
    moving = target_calendar_id != habit["calendar_id"]
    requested = _parse_position(fields.get("position"))

    if requested is not None or moving:
        habits = await _habits_in_calendar(target_calendar_id)
        new_position = len(habits) + 1 if moving else requested
        if new_position < 1 or new_position > len(habits) + 1:
            raise InvalidInput("Invalid position")

        old_position = habit.get("position") or 0
        if not moving and old_position != new_position:
            for other in habits:
                if other["id"] == habit_id:
                    continue
                current = other.get("position") or 0
                if old_position < new_position and old_position < current <= new_position:
                    await _patch(HABITS_TABLE, other["id"], user_id, {"position": current - 1})
                elif new_position < old_position and new_position <= current < old_position:
                    await _patch(HABITS_TABLE, other["id"], user_id, {"position": current + 1})
        values["calendar_id"] = target_calendar_id
        values["position"] = new_position

    await _patch(HABITS_TABLE, habit_id, user_id, values)
    return {**habit, **values}


async def overwrite_habit(user_id: str, habit_id: str, timer_duration: int | None, position: int | None) -> None:
    """Write timer and rank as given, leaving sibling ranks alone."""
    await _patch(
        HABITS_TABLE,
        habit_id,
        user_id,
        {"timer_duration": _parse_duration(timer_duration), "position": _parse_position(position)},
    )


async def remove_habit(user_id: str, habit_id: str) -> None:
    await get_habit(user_id, habit_id)
    await _delete_habit_completions(habit_id)
    await _delete(HABITS_TABLE, habit_id)


# Completions


async def _delete_habit_completions(habit_id: str) -> None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(f"DELETE FROM {COMPLETIONS_TABLE} WHERE habit_id = :habit_id"),
            {"habit_id": habit_id},
        )
        await session.commit()


async def _completions_between(habit_id: str, start_ms: int, end_ms: int) -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT {', '.join(COMPLETION_COLUMNS)}
                FROM {COMPLETIONS_TABLE}
                WHERE habit_id = :habit_id
                  AND completed_at BETWEEN :start_ms AND :end_ms
                ORDER BY completed_at, created_at, id
                """
            ),
            {"habit_id": habit_id, "start_ms": start_ms, "end_ms": end_ms},
        )).mappings().all()
    return [dict(row) for row in rows]


async def _insert_completions(user_id: str, habit_id: str, timestamps: list[int]) -> int:
    if not timestamps:
        return 0
    now = _now_iso()
    rows = [
        {
            "id": _new_id(),
            "user_id": user_id,
            "habit_id": habit_id,
            "completed_at": int(completed_at),
            "created_at": now,
        }
        for completed_at in timestamps
    ]
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                INSERT INTO {COMPLETIONS_TABLE} (id, user_id, habit_id, completed_at, created_at)
                VALUES (:id, :user_id, :habit_id, :completed_at, :created_at)
                """
            ),
            rows,
        )
        await session.commit()
    return len(rows)


async def list_habit_completions(user_id: str, habit_id: str) -> list[dict]:
    await get_habit(user_id, habit_id)
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT {', '.join(COMPLETION_COLUMNS)}
                FROM {COMPLETIONS_TABLE}
                WHERE habit_id = :habit_id
                ORDER BY completed_at, created_at, id
                """
            ),
            {"habit_id": habit_id},
        )).mappings().all()
    return [dict(row) for row in rows]


async def add_completions(user_id: str, habit_id: str, timestamps: list[int]) -> int:
    await get_habit(user_id, habit_id)
    return await _insert_completions(user_id, habit_id, timestamps)


async def mark_completion(user_id: str, habit_id: str, completed_at: int) -> dict:
    """Toggle the completion stored at exactly ``completed_at``."""
    await get_habit(user_id, habit_id)
    existing = await _completions_between(habit_id, completed_at, completed_at)
    if existing:
        await _delete(COMPLETIONS_TABLE, existing[0]["id"])
        return {"habit_id": habit_id, "completed_at": completed_at, "completed": False}
    await _insert_completions(user_id, habit_id, [completed_at])
    return {"habit_id": habit_id, "completed_at": completed_at, "completed": True}


async def set_completion_count(
    user_id: str,
    habit_id: str,
    completed_at: int,
    count: int | None = None,
) -> int:
    """Bring the number of completions on ``completed_at``'s local day to ``count``.

    Without ``count`` one completion is added. Surplus completions are removed
    from the latest end; new ones are spaced one second apart starting at
    ``completed_at``.
    """
    if count is not None and count < 0:
        raise InvalidInput("Count cannot be negative")
    await get_habit(user_id, habit_id)
    start_ms, end_ms = day_bounds_ms(completed_at, resolve_timezone())
    existing = await _completions_between(habit_id, start_ms, end_ms)
    current = len(existing)
    target = count if count is not None else current + 1

    if target < current:
        for completion in existing[target:]:
            await _delete(COMPLETIONS_TABLE, completion["id"])
    elif target > current:
        await _insert_completions(
            user_id,
            habit_id,
            [completed_at + index * 1000 for index in range(target - current)],
        )
    return target


async def list_completions(
    user_id: str,
    start_ms: int,
    end_ms: int,
    habit_id: str | None = None,
    calendar_id: str | None = None,
    cursor: str | None = None,
    limit: int | None = None,
) -> dict:
    if end_ms < start_ms:
        raise InvalidInput("End date must be after start date")
    try:
        offset = int(cursor) if cursor else 0
    except ValueError as exc:
        raise InvalidInput("Invalid cursor") from exc
    if offset < 0:
        raise InvalidInput("Invalid cursor")
    page_size = min(limit if limit is not None else MAX_COMPLETIONS_PAGE, MAX_COMPLETIONS_PAGE)
    if page_size < 1:
        raise InvalidInput("Invalid limit")

    joins = ""
    clauses = ["c.user_id = :user_id", "c.completed_at BETWEEN :start_ms AND :end_ms"]
    params = {
        "user_id": user_id,
        "start_ms": start_ms,
        "end_ms": end_ms,
        "limit": page_size + 1,
        "offset": offset,
    }
    if habit_id:
        await get_habit(user_id, habit_id)
        clauses.append("c.habit_id = :habit_id")
        params["habit_id"] = habit_id
    if calendar_id:
        await get_calendar(user_id, calendar_id)
        joins = f"JOIN {HABITS_TABLE} h ON h.id = c.habit_id"
        clauses.append("h.calendar_id = :calendar_id")
        params["calendar_id"] = calendar_id

    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT c.id, c.user_id, c.habit_id, c.completed_at
                FROM {COMPLETIONS_TABLE} c
                {joins}
                WHERE {' AND '.join(clauses)}
                ORDER BY c.completed_at DESC, c.id
                LIMIT :limit OFFSET :offset
                """
            ),
            params,
        )).mappings().all()
    items = [dict(row) for row in rows[:page_size]]
    has_more = len(rows) > page_size
    return {
        "items": items,
        "cursor": str(offset + page_size) if has_more else None,
        "has_more": has_more,
    }


# Preferences


async def _get_raw_preference(setting_key: str) -> str | None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        row = (await session.execute(
            sql_text(f"SELECT value FROM {PREFERENCES_TABLE} WHERE key = :key"),
            {"key": setting_key},
        )).fetchone()
    return row[0] if row else None


async def get_preference(user_id: str, key: str) -> str:
    if key not in PREFERENCE_CHOICES:
        raise InvalidInput(f"Unknown preference: {key}")
    raw = await _get_raw_preference(f"{user_id}::{key}")
    if not raw:
        return PREFERENCE_DEFAULTS[key]
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return PREFERENCE_DEFAULTS[key]
    if value not in PREFERENCE_CHOICES[key]:
        return PREFERENCE_DEFAULTS[key]
    return value


async def set_preference(user_id: str, key: str, value: str) -> None:
    if key not in PREFERENCE_CHOICES:
        raise InvalidInput(f"Unknown preference: {key}")
    if value not in PREFERENCE_CHOICES[key]:
        raise InvalidInput(f"Invalid value for {key}")
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"INSERT INTO {PREFERENCES_TABLE} (key, value) VALUES (:key, :value) "
                "ON CONFLICT(key) DO UPDATE SET value=EXCLUDED.value"
            ),
            {"key": f"{user_id}::{key}", "value": json.dumps(value, ensure_ascii=False)},
        )
        await session.commit()
