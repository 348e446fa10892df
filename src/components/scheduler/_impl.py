"""
SchedulerService - caller-facing scheduling operations.

Creates single and staggered batch schedules, cancels and retries them, and
lists them with filters.

Key behaviors:
- scheduled_date must be strictly in the future (absolute instant, UTC)
- timezone is an IANA zone kept for display; defaults to the configured zone
- batch items are created independently: one failure never blocks the rest
- cancel is a pending -> cancelled compare-and-swap, so it races cleanly
  against a processor claiming the same schedule
- retry re-runs a failed schedule through the executor immediately
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from src.adapters.clock import SystemClock
from src.core.entities import (
    ContentType,
    Schedule,
    ScheduleAction,
    ScheduleStatus,
    ensure_utc,
)
from src.core.errors import (
    ClaimConflict,
    ExecutionError,
    FieldError,
    InvalidStateError,
    ScheduleNotFoundError,
    ValidationError,
)
from src.domain.state import parse_enum, resolve_timezone, validate_new_schedule

from .config import DEFAULT_CONFIG, SchedulerConfig
from .executor import ScheduleExecutor
from .models import (
    BatchItemError,
    BatchScheduleResult,
    ExecutionResult,
    Pagination,
    ScheduleFilter,
    SchedulePage,
)
from .ports import ClockPort, ScheduleRepoPort
from .presets import SchedulePreset, compute_presets

logger = logging.getLogger(__name__)


class SchedulerService:
    """Scheduler API over a schedule store and an executor."""

    def __init__(
        self,
        repo: ScheduleRepoPort,
        executor: ScheduleExecutor | None = None,
        clock: ClockPort | None = None,
        config: SchedulerConfig | None = None,
    ) -> None:
        self._repo = repo
        self._executor = executor
        self._clock = clock or SystemClock()
        self._config = config or DEFAULT_CONFIG

    @property
    def default_timezone(self) -> str:
        return self._config.default_timezone

    # --- Creation ---

    def schedule_content(
        self,
        content_id: str,
        content_type: ContentType | str,
        action: ScheduleAction | str,
        scheduled_date: datetime,
        timezone: str | None,
        created_by: str,
        metadata: dict[str, Any] | None = None,
    ) -> Schedule:
        """
        Schedule one content action.

        Raises:
            ValidationError: past date, unknown content type or action
            InvalidTimezoneError: timezone is not an IANA zone
        """
        schedule = Schedule(
            content_id=content_id,
            content_type=content_type,  # type: ignore[arg-type]  # coerced by validation
            action=action,  # type: ignore[arg-type]
            scheduled_date=scheduled_date,
            created_by=created_by,
            timezone=timezone or self._config.default_timezone,
            metadata=dict(metadata or {}),
        )
        validate_new_schedule(schedule, self._clock.now())

        saved = self._repo.create(schedule)
        logger.info(
            "Scheduled %s of %s '%s' at %s (%s) by %s",
            saved.action.value,
            saved.content_type.value,
            saved.content_id,
            saved.scheduled_date.isoformat(),
            saved.timezone,
            saved.created_by,
        )
        return saved

    def batch_schedule(
        self,
        content_ids: list[str],
        content_type: ContentType | str,
        action: ScheduleAction | str,
        scheduled_date: datetime,
        created_by: str,
        stagger_interval_minutes: int = 0,
        timezone: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> BatchScheduleResult:
        """
        Schedule the same action for many content items.

        Item i runs at scheduled_date + i * stagger_interval_minutes. Items are
        created one by one; failures are reported in the result's errors.

        Raises:
            ValidationError: the request as a whole is malformed
        """
        now = self._clock.now()
        errors: list[FieldError] = []

        if not content_ids:
            errors.append(FieldError("content_ids", "At least one content item is required"))
        elif len(content_ids) > self._config.max_batch_size:
            errors.append(
                FieldError(
                    "content_ids",
                    f"At most {self._config.max_batch_size} content items per batch",
                )
            )
        if stagger_interval_minutes < 0:
            errors.append(FieldError("stagger_interval_minutes", "Must not be negative"))
        elif stagger_interval_minutes > self._config.max_stagger_minutes:
            errors.append(
                FieldError(
                    "stagger_interval_minutes",
                    f"Must be at most {self._config.max_stagger_minutes}",
                )
            )
        try:
            content_type = parse_enum(ContentType, content_type, "content_type")
        except ValidationError as e:
            errors.extend(e.errors)
        try:
            action = parse_enum(ScheduleAction, action, "action")
        except ValidationError as e:
            errors.extend(e.errors)

        if not isinstance(scheduled_date, datetime):
            errors.append(FieldError("scheduled_date", "Invalid date format"))
        else:
            base = ensure_utc(scheduled_date)
            if base <= now:
                errors.append(
                    FieldError("scheduled_date", "Scheduled date must be in the future")
                )

        if errors:
            raise ValidationError(errors)

        tz_name = timezone or self._config.default_timezone
        resolve_timezone(tz_name)

        created: list[Schedule] = []
        item_errors: list[BatchItemError] = []
        step = timedelta(minutes=stagger_interval_minutes)

        for index, content_id in enumerate(content_ids):
            schedule = Schedule(
                content_id=content_id,
                content_type=content_type,
                action=action,
                scheduled_date=base + index * step,
                created_by=created_by,
                timezone=tz_name,
                metadata=dict(metadata or {}),
            )
            try:
                created.append(self._repo.create(schedule))
            except Exception as e:
                logger.warning("Batch item %d (%s) not scheduled: %s", index, content_id, e)
                item_errors.append(BatchItemError(content_id=content_id, error=str(e)))

        logger.info(
            "Batch scheduled %d/%d %s actions for %s (stagger %d min)",
            len(created),
            len(content_ids),
            action.value,
            content_type.value,
            stagger_interval_minutes,
        )
        return BatchScheduleResult(
            scheduled_count=len(created),
            errors=item_errors,
            schedules=created,
        )

    # --- State Changes ---

    def cancel_schedule(self, schedule_id: UUID, cancelled_by: str) -> Schedule:
        """
        Cancel a pending schedule.

        Raises:
            ScheduleNotFoundError: unknown id
            InvalidStateError: schedule is not pending (executed, failed,
                cancelled, or claimed by a processor run first)
        """
        cancelled = self._repo.transition(
            schedule_id,
            ScheduleStatus.PENDING,
            ScheduleStatus.CANCELLED,
            {"cancelled_by": cancelled_by},
        )
        current = self._repo.get(schedule_id)
        if current is None:
            raise ScheduleNotFoundError(schedule_id)
        if not cancelled:
            raise InvalidStateError(schedule_id, current.status.value, "cancel")

        logger.info("Schedule %s cancelled by %s", schedule_id, cancelled_by)
        return current

    def retry_schedule(self, schedule_id: UUID) -> ExecutionResult:
        """
        Re-run a failed schedule now.

        Success moves it to executed; another failure leaves it failed with a
        new failure_reason.

        Raises:
            ScheduleNotFoundError: unknown id
            InvalidStateError: schedule is not failed
        """
        schedule = self.get_schedule(schedule_id)
        if schedule.status != ScheduleStatus.FAILED:
            raise InvalidStateError(schedule_id, schedule.status.value, "retry")
        if self._executor is None:
            raise ExecutionError("No executor configured")

        try:
            result = self._executor.execute(schedule, claim_from=ScheduleStatus.FAILED)
        except ClaimConflict:
            current = self._repo.get(schedule_id)
            status = current.status.value if current else "unknown"
            raise InvalidStateError(schedule_id, status, "retry") from None

        logger.info("Schedule %s retried: %s", schedule_id, result.status.value)
        return result

    # --- Queries ---

    def get_schedule(self, schedule_id: UUID) -> Schedule:
        schedule = self._repo.get(schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError(schedule_id)
        return schedule

    def list_schedules(
        self,
        filters: ScheduleFilter | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> SchedulePage:
        """Filtered, paginated listing ordered by scheduled_date."""
        limit = self._config.default_page_size if limit is None else limit
        errors: list[FieldError] = []
        if page < 1:
            errors.append(FieldError("page", "Must be at least 1"))
        if not 1 <= limit <= self._config.max_page_size:
            errors.append(
                FieldError("limit", f"Must be between 1 and {self._config.max_page_size}")
            )
        if errors:
            raise ValidationError(errors)

        schedules, total = self._repo.list_filtered(filters or ScheduleFilter(), page, limit)
        return SchedulePage(
            schedules=schedules,
            pagination=Pagination(page=page, limit=limit, total_count=total),
        )

    def list_for_content(
        self,
        content_id: str,
        content_type: ContentType | str | None = None,
    ) -> list[Schedule]:
        if content_type is not None:
            content_type = parse_enum(ContentType, content_type, "content_type")
        return self._repo.list_for_content(content_id, content_type)  # type: ignore[arg-type]

    def presets(self, timezone: str | None = None) -> list[SchedulePreset]:
        tz = resolve_timezone(timezone or self._config.default_timezone)
        return compute_presets(self._clock.now(), tz)


def create_scheduler_service(
    repo: ScheduleRepoPort,
    executor: ScheduleExecutor | None = None,
    clock: ClockPort | None = None,
    config: SchedulerConfig | None = None,
) -> SchedulerService:
    """Create a SchedulerService."""
    return SchedulerService(repo=repo, executor=executor, clock=clock, config=config)
