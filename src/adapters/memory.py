"""
In-memory schedule store and content store.

Used for development and tests. A single lock guards every read-modify-write,
which gives transition() the same compare-and-swap guarantee the SQLite store
gets from a conditional UPDATE.
"""

from __future__ import annotations

import json
import threading
from dataclasses import replace
from datetime import datetime
from typing import Any
from uuid import UUID

from src.adapters.clock import SystemClock
from src.components.scheduler.models import ScheduleFilter
from src.components.scheduler.ports import ClockPort
from src.core.entities import (
    ContentRecord,
    ContentType,
    Schedule,
    ScheduleStatus,
    ensure_utc,
)
from src.core.errors import ContentNotFoundError, InvalidStateError
from src.domain.state import TRANSITION_FIELDS, can_transition, validate_new_schedule


def matches_filter(schedule: Schedule, criteria: ScheduleFilter) -> bool:
    if criteria.content_type and schedule.content_type != criteria.content_type:
        return False
    if criteria.status and schedule.status != criteria.status:
        return False
    if criteria.action and schedule.action != criteria.action:
        return False
    if criteria.scheduled_after and schedule.scheduled_date < ensure_utc(criteria.scheduled_after):
        return False
    if criteria.scheduled_before and schedule.scheduled_date > ensure_utc(
        criteria.scheduled_before
    ):
        return False
    if criteria.created_by and schedule.created_by != criteria.created_by:
        return False
    if criteria.search:
        needle = criteria.search.casefold()
        haystack = [
            str(schedule.id),
            schedule.content_id,
            schedule.created_by,
            json.dumps(schedule.metadata, default=str, ensure_ascii=False),
        ]
        if not any(needle in h.casefold() for h in haystack):
            return False
    return True


def _copy(schedule: Schedule) -> Schedule:
    # Callers never share the stored metadata dict
    return replace(schedule, metadata=dict(schedule.metadata))


class InMemoryScheduleRepo:
    """In-memory schedule repository for testing/dev."""

    def __init__(self, clock: ClockPort | None = None) -> None:
        self._clock = clock or SystemClock()
        self._schedules: dict[UUID, Schedule] = {}
        self._lock = threading.Lock()

    def create(self, schedule: Schedule) -> Schedule:
        now = self._clock.now()
        validate_new_schedule(schedule, now)
        stored = replace(
            schedule, created_at=now, updated_at=now, metadata=dict(schedule.metadata)
        )
        with self._lock:
            self._schedules[schedule.id] = stored
            return _copy(stored)

    def get(self, schedule_id: UUID) -> Schedule | None:
        with self._lock:
            stored = self._schedules.get(schedule_id)
            return _copy(stored) if stored else None

    def list_due(self, now_utc: datetime, limit: int | None = None) -> list[Schedule]:
        now = ensure_utc(now_utc)
        with self._lock:
            due = [
                _copy(s)
                for s in self._schedules.values()
                if s.status == ScheduleStatus.PENDING and s.scheduled_date <= now
            ]
        due.sort(key=lambda s: s.scheduled_date)
        return due[:limit] if limit is not None else due

    def list_filtered(
        self,
        criteria: ScheduleFilter,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Schedule], int]:
        with self._lock:
            results = [_copy(s) for s in self._schedules.values() if matches_filter(s, criteria)]
        results.sort(key=lambda s: s.scheduled_date)
        offset = (page - 1) * limit
        return results[offset : offset + limit], len(results)

    def list_for_content(
        self,
        content_id: str,
        content_type: ContentType | None = None,
    ) -> list[Schedule]:
        with self._lock:
            results = [
                _copy(s)
                for s in self._schedules.values()
                if s.content_id == content_id
                and (content_type is None or s.content_type == content_type)
            ]
        results.sort(key=lambda s: s.scheduled_date)
        return results

    def transition(
        self,
        schedule_id: UUID,
        from_status: ScheduleStatus,
        to_status: ScheduleStatus,
        fields: dict[str, Any] | None = None,
    ) -> bool:
        if not can_transition(from_status, to_status):
            raise InvalidStateError(
                schedule_id,
                ScheduleStatus(from_status).value,
                f"move to {ScheduleStatus(to_status).value}",
            )
        updates = dict(fields or {})
        unknown = set(updates) - TRANSITION_FIELDS
        if unknown:
            raise ValueError(f"Fields not writable by a transition: {sorted(unknown)}")

        with self._lock:
            stored = self._schedules.get(schedule_id)
            if stored is None or stored.status != from_status:
                return False
            if to_status == ScheduleStatus.PROCESSING:
                updates["attempts"] = stored.attempts + 1
            self._schedules[schedule_id] = replace(
                stored,
                status=ScheduleStatus(to_status),
                updated_at=self._clock.now(),
                **updates,
            )
            return True

    def clear(self) -> None:
        """Clear all schedules (for testing)."""
        with self._lock:
            self._schedules.clear()


class InMemoryContentStore:
    """In-memory content store for testing/dev."""

    def __init__(self, records: list[ContentRecord] | None = None) -> None:
        self._records: dict[tuple[ContentType, str], ContentRecord] = {}
        self._lock = threading.Lock()
        for record in records or []:
            self.add(record)

    def add(self, record: ContentRecord) -> ContentRecord:
        with self._lock:
            self._records[(ContentType(record.content_type), record.id)] = record
        return record

    def get(self, content_type: ContentType, content_id: str) -> ContentRecord | None:
        with self._lock:
            record = self._records.get((ContentType(content_type), content_id))
            return replace(record) if record else None

    def apply_status(
        self,
        content_type: ContentType,
        content_id: str,
        status: str,
        now_utc: datetime,
        *,
        mark_published: bool = False,
    ) -> ContentRecord:
        key = (ContentType(content_type), content_id)
        with self._lock:
            record = self._records.get(key)
            if record is None:
                raise ContentNotFoundError(ContentType(content_type).value, content_id)
            published_at = record.published_at
            if mark_published and published_at is None:
                published_at = now_utc
            updated = replace(record, status=status, published_at=published_at, updated_at=now_utc)
            self._records[key] = updated
            return replace(updated)
