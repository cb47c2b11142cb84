from __future__ import annotations

from datetime import date, timedelta
from zoneinfo import ZoneInfo

from streak_api import repositories
from streak_api.dates import local_date, resolve_timezone, today as local_today


def current_streak(days: set[date], today: date) -> int:
    yesterday = today - timedelta(days=1)
    if today in days:
        current = today
    elif yesterday in days:
        current = yesterday
    else:
        return 0
    count = 0
    while current in days:
        count += 1
        current -= timedelta(days=1)
    return count


def off_streak(days: set[date], today: date, streak: int) -> int:
    if streak > 0:
        return 0
    past = [day for day in days if day <= today]
    if not past:
        return today.day
    return (today - max(past)).days


def compute_habit_stats(timestamps: list[int], today: date, tz: ZoneInfo) -> dict:
    local_days = [local_date(ts, tz) for ts in timestamps]
    days = set(local_days)
    streak = current_streak(days, today)
    return {
        "total_completions": len(timestamps),
        "month_completions": sum(
            1 for day in local_days if day.year == today.year and day.month == today.month
        ),
        "current_streak": streak,
        "off_streak": off_streak(days, today, streak),
    }


async def habit_stats(user_id: str, habit_id: str) -> dict:
    completions = await repositories.list_habit_completions(user_id, habit_id)
    tz = resolve_timezone()
    payload = compute_habit_stats([item["completed_at"] for item in completions], local_today(tz), tz)
    return {"habit_id": habit_id, **payload}
