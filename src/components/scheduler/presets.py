"""
Quick-pick scheduling presets offered by the admin UI.

Wall-clock presets (9:00) are computed in the schedule's timezone and
returned as absolute UTC instants.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo

PRESET_HOUR = 9


@dataclass(frozen=True)
class SchedulePreset:
    key: str
    label: str
    scheduled_date: datetime


def _at_local_hour(local_day: datetime, tz: ZoneInfo) -> datetime:
    local = datetime.combine(local_day.date(), time(PRESET_HOUR), tzinfo=tz)
    return local.astimezone(UTC)


def _add_month(local: datetime) -> datetime:
    year, month = (local.year + 1, 1) if local.month == 12 else (local.year, local.month + 1)
    day = min(local.day, calendar.monthrange(year, month)[1])
    return local.replace(year=year, month=month, day=day)


def compute_presets(now_utc: datetime, tz: ZoneInfo) -> list[SchedulePreset]:
    local_now = now_utc.astimezone(tz)
    return [
        SchedulePreset("in-1-hour", "In 1 hour", now_utc + timedelta(hours=1)),
        SchedulePreset("in-4-hours", "In 4 hours", now_utc + timedelta(hours=4)),
        SchedulePreset(
            "tomorrow-9am",
            "Tomorrow at 9:00 AM",
            _at_local_hour(local_now + timedelta(days=1), tz),
        ),
        SchedulePreset(
            "next-week",
            "Next week",
            _at_local_hour(local_now + timedelta(days=7), tz),
        ),
        SchedulePreset("next-month", "Next month", _at_local_hour(_add_month(local_now), tz)),
    ]
