"""
Wall-clock adapter.

Every timestamp the scheduler stores or compares is timezone-aware UTC;
local zones only matter for display.
"""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo


class SystemClock:
    """Host clock, always in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


def as_local(moment: datetime, timezone: str) -> datetime:
    """Render a stored UTC instant in a schedule's display zone."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(ZoneInfo(timezone))
