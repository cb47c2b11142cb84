from __future__ import annotations

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from streak_api.settings import get_settings


def resolve_timezone(tz_name: str | None = None) -> ZoneInfo:
    name = tz_name or get_settings().calendar_timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def local_date(timestamp_ms: int, tz: ZoneInfo) -> date:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz).date()


def day_bounds_ms(timestamp_ms: int, tz: ZoneInfo) -> tuple[int, int]:
    """First and last millisecond of the local day holding ``timestamp_ms``."""
    day = local_date(timestamp_ms, tz)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return int(start.timestamp() * 1000), int(end.timestamp() * 1000) - 1


def today(tz: ZoneInfo) -> date:
    return datetime.now(tz).date()
