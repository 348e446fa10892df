"""
Scheduler component input/output models.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from src.core.entities import (
    ContentType,
    Schedule,
    ScheduleAction,
    ScheduleStatus,
)

# --- Query Models ---


@dataclass(frozen=True)
class ScheduleFilter:
    """Criteria for listing schedules. None means "any"."""

    content_type: ContentType | None = None
    status: ScheduleStatus | None = None
    action: ScheduleAction | None = None
    scheduled_after: datetime | None = None
    scheduled_before: datetime | None = None
    created_by: str | None = None
    search: str | None = None


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total_count: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.limit) if self.limit else 0


@dataclass(frozen=True)
class SchedulePage:
    schedules: list[Schedule]
    pagination: Pagination


# --- Batch Scheduling ---


@dataclass(frozen=True)
class BatchItemError:
    """One content item that could not be scheduled."""

    content_id: str
    error: str


@dataclass(frozen=True)
class BatchScheduleResult:
    scheduled_count: int
    errors: list[BatchItemError] = field(default_factory=list)
    schedules: list[Schedule] = field(default_factory=list)


# --- Execution ---


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one execution attempt."""

    schedule_id: UUID
    content_id: str
    action: ScheduleAction
    status: ScheduleStatus
    executed_at: datetime
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status == ScheduleStatus.EXECUTED


@dataclass(frozen=True)
class ProcessingError:
    """A due schedule the processor could not run (schedule_id None: whole run)."""

    schedule_id: UUID | None
    error: str


@dataclass(frozen=True)
class ProcessResult:
    """
    Result of one processor run.

    processed counts terminal outcomes (executed + failed); per-schedule
    success is read from the schedule itself.
    """

    processed: int
    errors: list[ProcessingError]
    timestamp: datetime
    executed: int = 0
    failed: int = 0
    skipped: int = 0
    results: tuple[ExecutionResult, ...] = ()


# --- Component Inputs ---


@dataclass(frozen=True)
class ScheduleContentInput:
    content_id: str
    content_type: ContentType | str
    action: ScheduleAction | str
    scheduled_date: datetime
    created_by: str
    timezone: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class BatchScheduleInput:
    content_ids: list[str]
    content_type: ContentType | str
    action: ScheduleAction | str
    scheduled_date: datetime
    created_by: str
    stagger_interval_minutes: int = 0
    timezone: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class CancelScheduleInput:
    schedule_id: UUID
    cancelled_by: str


@dataclass(frozen=True)
class RetryScheduleInput:
    schedule_id: UUID


@dataclass(frozen=True)
class ListSchedulesInput:
    filters: ScheduleFilter = field(default_factory=ScheduleFilter)
    page: int = 1
    limit: int | None = None


@dataclass(frozen=True)
class ProcessPendingInput:
    now_utc: datetime | None = None
