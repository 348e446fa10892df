"""
Scheduling entities.

- Schedule: a persisted request to change one content item's status later
- ContentRecord: the Content Store's view of a news item, program or publication

All instants are timezone-aware UTC. The schedule's ``timezone`` is kept for
display only; comparisons always use the absolute instant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

__all__ = [
    "CONTENT_STATUSES",
    "ContentRecord",
    "ContentStatusSet",
    "ContentType",
    "Schedule",
    "ScheduleAction",
    "ScheduleStatus",
    "ensure_utc",
    "utc_now",
]


# --- Enums ---


class ContentType(str, Enum):
    """Content categories a schedule can target."""

    NEWS = "news"
    PROGRAM = "program"
    PUBLICATION = "publication"


class ScheduleAction(str, Enum):
    """Status change applied when a schedule runs."""

    PUBLISH = "publish"
    UNPUBLISH = "unpublish"
    ARCHIVE = "archive"


class ScheduleStatus(str, Enum):
    """
    Schedule lifecycle.

    PROCESSING is the claim marker held while the executor talks to the
    Content Store; it is never a resting state.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    EXECUTED = "executed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# --- Time helpers ---


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Naive datetimes are treated as UTC; aware ones are converted."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


# --- Schedule ---


@dataclass
class Schedule:
    """
    Scheduled content action.

    Invariants:
    - scheduled_date is strictly in the future when the record is created
    - executed_at / failure_reason are only written by an execution attempt
    - records are never deleted by the engine
    """

    content_id: str
    content_type: ContentType
    action: ScheduleAction
    scheduled_date: datetime
    created_by: str
    timezone: str = "UTC"
    id: UUID = field(default_factory=uuid4)
    status: ScheduleStatus = ScheduleStatus.PENDING
    executed_at: datetime | None = None
    failure_reason: str | None = None
    cancelled_by: str | None = None
    attempts: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


# --- Content Store view ---


@dataclass(frozen=True)
class ContentStatusSet:
    """Status values a content type uses for each schedule action."""

    published: str
    unpublished: str
    archived: str


CONTENT_STATUSES: dict[ContentType, ContentStatusSet] = {
    ContentType.NEWS: ContentStatusSet("PUBLISHED", "DRAFT", "ARCHIVED"),
    ContentType.PROGRAM: ContentStatusSet("ACTIVE", "PLANNING", "CANCELLED"),
    ContentType.PUBLICATION: ContentStatusSet("PUBLISHED", "DRAFT", "ARCHIVED"),
}


@dataclass
class ContentRecord:
    """A content item as seen through the Content Store."""

    id: str
    content_type: ContentType
    status: str
    title: str = ""
    published_at: datetime | None = None
    updated_at: datetime = field(default_factory=utc_now)
