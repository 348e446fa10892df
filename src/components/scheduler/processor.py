"""
Pending processor - the entry point the external Trigger calls.

Finds every due pending schedule and runs the executor over each one.
Per-schedule problems are collected; the run never stops early.
"""

from __future__ import annotations

import concurrent.futures
import logging
from datetime import datetime

from src.adapters.clock import SystemClock
from src.core.entities import Schedule, ScheduleStatus, ensure_utc
from src.core.errors import ClaimConflict

from .config import DEFAULT_CONFIG, SchedulerConfig
from .executor import ScheduleExecutor
from .models import ExecutionResult, ProcessingError, ProcessResult
from .ports import ClockPort, ScheduleRepoPort

logger = logging.getLogger(__name__)

# Outcome of one due schedule: ran, could not run, or skipped (None)
_Outcome = ExecutionResult | ProcessingError | None


class PendingProcessor:
    """
    Processes due schedules.

    Safe to invoke repeatedly and concurrently: the executor's claim makes a
    schedule that another run already holds fall out as skipped.
    """

    def __init__(
        self,
        repo: ScheduleRepoPort,
        executor: ScheduleExecutor,
        clock: ClockPort | None = None,
        config: SchedulerConfig | None = None,
    ) -> None:
        self._repo = repo
        self._executor = executor
        self._clock = clock or SystemClock()
        self._config = config or DEFAULT_CONFIG

    def process_pending_schedules(self, now_utc: datetime | None = None) -> ProcessResult:
        """
        Run every schedule due at now_utc (defaults to the clock).

        Returns:
            ProcessResult; processed counts executed and failed outcomes alike
        """
        now = ensure_utc(now_utc) if now_utc else self._clock.now()

        try:
            due = self._repo.list_due(now, limit=self._config.max_due_per_run)
        except Exception as e:
            logger.exception("Failed to fetch pending schedules")
            return ProcessResult(
                processed=0,
                errors=[ProcessingError(None, f"Failed to fetch pending schedules: {e}")],
                timestamp=now,
            )

        outcomes = self._run_all(due)

        results = tuple(o for o in outcomes if isinstance(o, ExecutionResult))
        errors = [o for o in outcomes if isinstance(o, ProcessingError)]
        executed = sum(1 for r in results if r.status == ScheduleStatus.EXECUTED)
        failed = len(results) - executed
        skipped = sum(1 for o in outcomes if o is None)

        if due:
            logger.info(
                "Processed %d of %d due schedules: %d executed, %d failed, %d skipped, %d errors",
                len(results),
                len(due),
                executed,
                failed,
                skipped,
                len(errors),
            )

        return ProcessResult(
            processed=len(results),
            errors=errors,
            timestamp=now,
            executed=executed,
            failed=failed,
            skipped=skipped,
            results=results,
        )

    def _run_all(self, due: list[Schedule]) -> list[_Outcome]:
        workers = self._config.processor_workers
        if workers <= 1 or len(due) <= 1:
            return [self._run_one(s) for s in due]

        # Submitted in due order; results come back in the same order
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="schedule-run"
        ) as pool:
            return list(pool.map(self._run_one, due))

    def _run_one(self, schedule: Schedule) -> _Outcome:
        try:
            return self._executor.execute(schedule)
        except ClaimConflict:
            logger.debug("Schedule %s already claimed, skipping", schedule.id)
            return None
        except Exception as e:
            logger.exception("Could not run schedule %s", schedule.id)
            return ProcessingError(schedule.id, str(e) or e.__class__.__name__)
