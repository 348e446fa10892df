"""
Scheduler component - content scheduling engine entry points.

Invariants:
- scheduled_date is strictly in the future at creation
- status moves only along pending -> processing -> executed|failed,
  pending -> cancelled, failed -> processing
- a schedule's action reaches the Content Store at most once per claim;
  claims are compare-and-swap on status
- one failing schedule never aborts a batch or a processor run
"""

from __future__ import annotations

from src.core.entities import Schedule

from ._impl import SchedulerService
from .config import SchedulerConfig
from .executor import ScheduleExecutor
from .models import (
    BatchScheduleInput,
    BatchScheduleResult,
    CancelScheduleInput,
    ExecutionResult,
    ListSchedulesInput,
    ProcessPendingInput,
    ProcessResult,
    RetryScheduleInput,
    ScheduleContentInput,
    SchedulePage,
)
from .ports import ClockPort, ContentStorePort, ScheduleRepoPort
from .processor import PendingProcessor

ComponentInput = (
    ScheduleContentInput
    | BatchScheduleInput
    | CancelScheduleInput
    | RetryScheduleInput
    | ListSchedulesInput
    | ProcessPendingInput
)
ComponentOutput = Schedule | BatchScheduleResult | ExecutionResult | SchedulePage | ProcessResult


def _create_service(
    repo: ScheduleRepoPort,
    content_store: ContentStorePort | None,
    clock: ClockPort | None,
    config: SchedulerConfig | None,
) -> SchedulerService:
    executor = (
        ScheduleExecutor(repo, content_store, clock=clock, config=config)
        if content_store is not None
        else None
    )
    return SchedulerService(repo=repo, executor=executor, clock=clock, config=config)


# --- Component Entry Points ---


def run_schedule(
    inp: ScheduleContentInput,
    *,
    repo: ScheduleRepoPort,
    clock: ClockPort | None = None,
    config: SchedulerConfig | None = None,
) -> Schedule:
    """Schedule one content action."""
    service = _create_service(repo, None, clock, config)
    return service.schedule_content(
        content_id=inp.content_id,
        content_type=inp.content_type,
        action=inp.action,
        scheduled_date=inp.scheduled_date,
        timezone=inp.timezone,
        created_by=inp.created_by,
        metadata=inp.metadata,
    )


def run_batch_schedule(
    inp: BatchScheduleInput,
    *,
    repo: ScheduleRepoPort,
    clock: ClockPort | None = None,
    config: SchedulerConfig | None = None,
) -> BatchScheduleResult:
    """Schedule a staggered batch."""
    service = _create_service(repo, None, clock, config)
    return service.batch_schedule(
        content_ids=inp.content_ids,
        content_type=inp.content_type,
        action=inp.action,
        scheduled_date=inp.scheduled_date,
        created_by=inp.created_by,
        stagger_interval_minutes=inp.stagger_interval_minutes,
        timezone=inp.timezone,
        metadata=inp.metadata,
    )


def run_cancel(
    inp: CancelScheduleInput,
    *,
    repo: ScheduleRepoPort,
    clock: ClockPort | None = None,
    config: SchedulerConfig | None = None,
) -> Schedule:
    """Cancel a pending schedule."""
    service = _create_service(repo, None, clock, config)
    return service.cancel_schedule(inp.schedule_id, inp.cancelled_by)


def run_retry(
    inp: RetryScheduleInput,
    *,
    repo: ScheduleRepoPort,
    content_store: ContentStorePort,
    clock: ClockPort | None = None,
    config: SchedulerConfig | None = None,
) -> ExecutionResult:
    """Re-run a failed schedule immediately."""
    service = _create_service(repo, content_store, clock, config)
    return service.retry_schedule(inp.schedule_id)


def run_list(
    inp: ListSchedulesInput,
    *,
    repo: ScheduleRepoPort,
    clock: ClockPort | None = None,
    config: SchedulerConfig | None = None,
) -> SchedulePage:
    """List schedules with filters and pagination."""
    service = _create_service(repo, None, clock, config)
    return service.list_schedules(inp.filters, inp.page, inp.limit)


def run_process_pending(
    inp: ProcessPendingInput,
    *,
    repo: ScheduleRepoPort,
    content_store: ContentStorePort,
    clock: ClockPort | None = None,
    config: SchedulerConfig | None = None,
) -> ProcessResult:
    """Process every due schedule (one Trigger invocation)."""
    executor = ScheduleExecutor(repo, content_store, clock=clock, config=config)
    processor = PendingProcessor(repo, executor, clock=clock, config=config)
    return processor.process_pending_schedules(inp.now_utc)


def run(
    inp: ComponentInput,
    *,
    repo: ScheduleRepoPort,
    content_store: ContentStorePort | None = None,
    clock: ClockPort | None = None,
    config: SchedulerConfig | None = None,
) -> ComponentOutput:
    """
    Main entry point for the scheduler component.

    Dispatches to the handler for the input type. Retry and process need a
    content store.
    """
    if isinstance(inp, ScheduleContentInput):
        return run_schedule(inp, repo=repo, clock=clock, config=config)
    elif isinstance(inp, BatchScheduleInput):
        return run_batch_schedule(inp, repo=repo, clock=clock, config=config)
    elif isinstance(inp, CancelScheduleInput):
        return run_cancel(inp, repo=repo, clock=clock, config=config)
    elif isinstance(inp, ListSchedulesInput):
        return run_list(inp, repo=repo, clock=clock, config=config)
    elif isinstance(inp, (RetryScheduleInput, ProcessPendingInput)):
        if content_store is None:
            raise ValueError("ContentStorePort is required for retry and process operations")
        if isinstance(inp, RetryScheduleInput):
            return run_retry(
                inp, repo=repo, content_store=content_store, clock=clock, config=config
            )
        return run_process_pending(
            inp, repo=repo, content_store=content_store, clock=clock, config=config
        )
    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
