"""Snapshot export and import.

A snapshot is the whole calendar -> habit -> completion graph of one user
without ids, in the camelCase file format described by ``schemas.Snapshot``.
Importing merges a snapshot into the caller's data: calendars and habits are
matched by exact name (first match wins), their theme, timer and rank are
overwritten, and completions are added only when the habit has none at the
same timestamp. Nothing is ever deleted by an import.

Each repository call commits on its own, so an import or export that fails
halfway leaves whatever was already written.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import date

from pydantic import ValidationError

from streak_api import repositories
from streak_api.errors import InvalidInput
from streak_api.schemas import CalendarSnapshot, CompletionSnapshot, HabitSnapshot, Snapshot

logger = logging.getLogger(__name__)


def parse_snapshot(raw) -> Snapshot:
    try:
        payload = json.loads(raw) if isinstance(raw, (str, bytes, bytearray)) else raw
        return Snapshot.model_validate(payload)
    except (ValueError, ValidationError) as exc:
        raise InvalidInput("Invalid file format") from exc


def export_filename(day: date) -> str:
    return f"streak-calendar-export-{day.isoformat()}.json"


def _position_key(item) -> float:
    return item.position if item.position is not None else math.inf


def _find_by_name(records: list[dict], name: str) -> tuple[int, dict | None]:
    for index, record in enumerate(records):
        if record["name"] == name:
            return index, record
    return -1, None


async def export_snapshot(user_id: str) -> Snapshot:
    calendars = await repositories.list_calendars(user_id)
    exported = []
    for calendar in calendars:
        try:
            habits = await repositories.list_habits(user_id, calendar["id"])
        except Exception:
            logger.exception("Error fetching habits for calendar %s", calendar["id"])
            habits = []
        exported.append(
            CalendarSnapshot(
                name=calendar["name"],
                color_theme=calendar["color_theme"],
                position=calendar.get("position"),
                habits=[await _export_habit(user_id, habit) for habit in habits],
            )
        )
    return Snapshot(calendars=exported)


async def _export_habit(user_id: str, habit: dict) -> HabitSnapshot:
    try:
        completions = await repositories.list_habit_completions(user_id, habit["id"])
    except Exception:
        logger.exception("Error fetching completions for habit %s", habit["id"])
        completions = []
    return HabitSnapshot(
        name=habit["name"],
        timer_duration=habit.get("timer_duration"),
        position=habit.get("position"),
        completions=[CompletionSnapshot(completed_at=item["completed_at"]) for item in completions],
    )


async def import_snapshot(user_id: str, snapshot: Snapshot) -> dict:
    summary = {
        "calendars_created": 0,
        "calendars_updated": 0,
        "habits_created": 0,
        "habits_updated": 0,
        "completions_created": 0,
    }
    existing_calendars = await repositories.list_calendars(user_id)

    for calendar_data in sorted(snapshot.calendars, key=_position_key):
        index, existing = _find_by_name(existing_calendars, calendar_data.name)
        if existing:
            position = calendar_data.position if calendar_data.position is not None else index + 1
            await repositories.overwrite_calendar(user_id, existing["id"], calendar_data.color_theme, position)
            summary["calendars_updated"] += 1
            calendar_id = existing["id"]
            existing_habits = await repositories.list_habits(user_id, calendar_id)
            created_now = False
        else:
            position = calendar_data.position
            if position is None:
                position = len(existing_calendars) + 1
            record = await repositories.create_calendar(
                user_id, calendar_data.name, calendar_data.color_theme, position
            )
            summary["calendars_created"] += 1
            calendar_id = record["id"]
            existing_habits = []
            created_now = True

        await _import_habits(user_id, calendar_id, calendar_data.habits, existing_habits, created_now, summary)

    logger.info("Imported snapshot for %s: %s", user_id, summary)
    return summary


async def _import_habits(
    user_id: str,
    calendar_id: str,
    habits: list[HabitSnapshot],
    existing_habits: list[dict],
    created_now: bool,
    summary: dict,
) -> None:
    ordered = sorted(enumerate(habits), key=lambda pair: _position_key(pair[1]))
    for snapshot_index, habit_data in ordered:
        index, existing = _find_by_name(existing_habits, habit_data.name)
        if existing:
            position = habit_data.position if habit_data.position is not None else index + 1
            await repositories.overwrite_habit(user_id, existing["id"], habit_data.timer_duration, position)
            summary["habits_updated"] += 1
            habit_id = existing["id"]
            known = {item["completed_at"] for item in await repositories.list_habit_completions(user_id, habit_id)}
        else:
            position = habit_data.position
            if position is None:
                # A calendar made by this import ranks habits by their place in the file.
                position = snapshot_index + 1 if created_now else len(existing_habits) + 1
            record = await repositories.create_habit(
                user_id, calendar_id, habit_data.name, habit_data.timer_duration, position
            )
            summary["habits_created"] += 1
            habit_id = record["id"]
            known = set()

        fresh = []
        for completion in habit_data.completions:
            if completion.completed_at in known:
                continue
            known.add(completion.completed_at)
            fresh.append(completion.completed_at)
        summary["completions_created"] += await repositories.add_completions(user_id, habit_id, fresh)
