"""
Schedule executor - applies one schedule's action to the Content Store.

Key behaviors:
- Claim first: compare-and-swap from pending (or failed, for retries) to
  processing. A lost claim raises ClaimConflict and touches nothing.
- Dispatch through a closed action -> handler table
- Every failure after the claim (missing content, rejected mutation, timeout)
  is recorded on the schedule as failed and returned, never raised
- Content Store calls are bounded by execution_timeout_seconds
"""

from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from src.adapters.clock import SystemClock
from src.core.entities import (
    CONTENT_STATUSES,
    ContentRecord,
    Schedule,
    ScheduleAction,
    ScheduleStatus,
)
from src.core.errors import ClaimConflict, ExecutionError, ExecutionTimeoutError

from .config import DEFAULT_CONFIG, SchedulerConfig
from .models import ExecutionResult
from .ports import ClockPort, ContentStorePort, ScheduleRepoPort

logger = logging.getLogger(__name__)


# --- Action Handlers ---

ActionHandler = Callable[[ContentStorePort, Schedule, datetime], ContentRecord]


def publish_content(store: ContentStorePort, schedule: Schedule, now: datetime) -> ContentRecord:
    status = CONTENT_STATUSES[schedule.content_type].published
    return store.apply_status(
        schedule.content_type, schedule.content_id, status, now, mark_published=True
    )


def unpublish_content(store: ContentStorePort, schedule: Schedule, now: datetime) -> ContentRecord:
    status = CONTENT_STATUSES[schedule.content_type].unpublished
    return store.apply_status(schedule.content_type, schedule.content_id, status, now)


def archive_content(store: ContentStorePort, schedule: Schedule, now: datetime) -> ContentRecord:
    status = CONTENT_STATUSES[schedule.content_type].archived
    return store.apply_status(schedule.content_type, schedule.content_id, status, now)


ACTION_HANDLERS: dict[ScheduleAction, ActionHandler] = {
    ScheduleAction.PUBLISH: publish_content,
    ScheduleAction.UNPUBLISH: unpublish_content,
    ScheduleAction.ARCHIVE: archive_content,
}


# --- Executor ---


class ScheduleExecutor:
    """Runs a single schedule through claim -> mutate -> record."""

    def __init__(
        self,
        repo: ScheduleRepoPort,
        content_store: ContentStorePort,
        clock: ClockPort | None = None,
        config: SchedulerConfig | None = None,
    ) -> None:
        self._repo = repo
        self._content = content_store
        self._clock = clock or SystemClock()
        self._config = config or DEFAULT_CONFIG

    def execute(
        self,
        schedule: Schedule,
        claim_from: ScheduleStatus = ScheduleStatus.PENDING,
    ) -> ExecutionResult:
        """
        Execute a schedule.

        Args:
            schedule: The schedule to run (a snapshot; the claim re-checks status)
            claim_from: Status the claim expects, FAILED for retries

        Raises:
            ClaimConflict: the schedule was not in claim_from status
            Exception: the store failed while claiming or recording the outcome
        """
        if not self._repo.transition(schedule.id, claim_from, ScheduleStatus.PROCESSING):
            raise ClaimConflict(schedule.id)

        try:
            self._apply(schedule)
        except Exception as e:
            executed_at = self._clock.now()
            reason = str(e) or e.__class__.__name__
            self._record(
                schedule,
                ScheduleStatus.FAILED,
                {"executed_at": executed_at, "failure_reason": reason},
            )
            logger.warning(
                "Schedule %s failed: %s %s '%s': %s",
                schedule.id,
                schedule.action.value,
                schedule.content_type.value,
                schedule.content_id,
                reason,
            )
            return ExecutionResult(
                schedule_id=schedule.id,
                content_id=schedule.content_id,
                action=schedule.action,
                status=ScheduleStatus.FAILED,
                executed_at=executed_at,
                error=reason,
            )

        executed_at = self._clock.now()
        self._record(
            schedule,
            ScheduleStatus.EXECUTED,
            {"executed_at": executed_at, "failure_reason": None},
        )
        logger.info(
            "Schedule %s executed: %s %s '%s'",
            schedule.id,
            schedule.action.value,
            schedule.content_type.value,
            schedule.content_id,
        )
        return ExecutionResult(
            schedule_id=schedule.id,
            content_id=schedule.content_id,
            action=schedule.action,
            status=ScheduleStatus.EXECUTED,
            executed_at=executed_at,
        )

    def _apply(self, schedule: Schedule) -> ContentRecord:
        handler = ACTION_HANDLERS[ScheduleAction(schedule.action)]
        now = self._clock.now()
        timeout = self._config.execution_timeout_seconds
        if not timeout:
            return handler(self._content, schedule, now)

        # One thread per call: a hung mutation must not hold up the next schedule
        pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="schedule-action"
        )
        try:
            future = pool.submit(handler, self._content, schedule, now)
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            raise ExecutionTimeoutError(schedule.id, timeout) from None
        finally:
            # The worker thread cannot be killed; it finishes in the background
            pool.shutdown(wait=False)

    def _record(
        self,
        schedule: Schedule,
        outcome: ScheduleStatus,
        fields: dict[str, Any],
    ) -> None:
        if not self._repo.transition(schedule.id, ScheduleStatus.PROCESSING, outcome, fields):
            # Only the claim holder moves a schedule out of processing
            raise ExecutionError(f"Schedule {schedule.id} left processing while claimed")
