"""Date windows for the spending screens.

All boundaries are computed here, once: local midnights in the caller's
timezone converted to naive UTC (the storage convention for timestamps).
Every window is half-open, ``start <= ts < end``, and the database query is
the only filter applied.
"""

import os
from datetime import date, datetime, time, timedelta, timezone
from typing import NamedTuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

PRESET_DAYS = {
    "7days": 7,
    "30days": 30,
    "90days": 90,
    "180days": 180,
    "365days": 365,
}
PRESETS = ("today", "yesterday", *PRESET_DAYS, "custom")
DEFAULT_PRESET = "30days"


class Period(NamedTuple):
    start: datetime  # inclusive, naive UTC
    end: datetime  # exclusive, naive UTC

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts < self.end


def get_timezone(name: str | None = None) -> ZoneInfo:
    name = name or os.getenv("APP_TIMEZONE", "UTC")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {name}")


def _as_utc(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def local_today(tz: ZoneInfo, now: datetime | None = None) -> date:
    return _as_utc(now).astimezone(tz).date()


def local_midnight_utc(day: date, tz: ZoneInfo) -> datetime:
    """Naive-UTC instant of 00:00 on ``day`` in ``tz``."""
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc).replace(tzinfo=None)


def day_range(first: date, last: date, tz: ZoneInfo) -> Period:
    """Calendar days first..last, both inclusive."""
    return Period(local_midnight_utc(first, tz), local_midnight_utc(last + timedelta(days=1), tz))


def resolve_period(
    preset: str = DEFAULT_PRESET,
    *,
    now: datetime | None = None,
    tz: ZoneInfo | None = None,
    start: date | None = None,
    end: date | None = None,
) -> Period:
    """Turn a preset (or a custom start/end) into a half-open UTC window.

    ``Nd`` presets cover the last N calendar days including today.
    """
    tz = tz or get_timezone()
    today = local_today(tz, now)

    if preset == "today":
        return day_range(today, today, tz)
    if preset == "yesterday":
        yesterday = today - timedelta(days=1)
        return day_range(yesterday, yesterday, tz)
    if preset in PRESET_DAYS:
        return day_range(today - timedelta(days=PRESET_DAYS[preset] - 1), today, tz)
    if preset == "custom":
        if start is None or end is None:
            raise ValueError("Custom period needs both start and end")
        if end < start:
            raise ValueError("Period end is before its start")
        return day_range(start, end, tz)
    raise ValueError(f"Unknown period: {preset}")
