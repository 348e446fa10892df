"""
Scheduler component port definitions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from src.core.entities import (
    ContentRecord,
    ContentType,
    Schedule,
    ScheduleStatus,
)

from .models import ScheduleFilter


class ScheduleRepoPort(Protocol):
    """Durable store for schedules. Create, read and conditional update only."""

    def create(self, schedule: Schedule) -> Schedule:
        """Validate and persist a new pending schedule."""
        ...

    def get(self, schedule_id: UUID) -> Schedule | None:
        """Get schedule by ID."""
        ...

    def list_due(self, now_utc: datetime, limit: int | None = None) -> list[Schedule]:
        """Pending schedules with scheduled_date <= now, earliest first."""
        ...

    def list_filtered(
        self,
        criteria: ScheduleFilter,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Schedule], int]:
        """Filtered page of schedules plus the total match count."""
        ...

    def list_for_content(
        self,
        content_id: str,
        content_type: ContentType | None = None,
    ) -> list[Schedule]:
        """Every schedule that targets a content item."""
        ...

    def transition(
        self,
        schedule_id: UUID,
        from_status: ScheduleStatus,
        to_status: ScheduleStatus,
        fields: dict[str, Any] | None = None,
    ) -> bool:
        """
        Compare-and-swap on status.

        Returns False (and changes nothing) if the stored status is not
        from_status at the time of the write.
        """
        ...


class ContentStorePort(Protocol):
    """External Content Store capability."""

    def get(self, content_type: ContentType, content_id: str) -> ContentRecord | None:
        """Read a content item."""
        ...

    def apply_status(
        self,
        content_type: ContentType,
        content_id: str,
        status: str,
        now_utc: datetime,
        *,
        mark_published: bool = False,
    ) -> ContentRecord:
        """
        Set the content status in one transaction.

        mark_published sets published_at to now_utc when it is unset.
        Raises ContentNotFoundError when the item does not exist.
        """
        ...


class ClockPort(Protocol):
    def now(self) -> datetime:
        """Return current UTC time."""
        ...
