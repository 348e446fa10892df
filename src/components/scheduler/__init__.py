"""
Scheduler component - content scheduling engine.
"""

from ._impl import SchedulerService, create_scheduler_service
from .component import (
    run,
    run_batch_schedule,
    run_cancel,
    run_list,
    run_process_pending,
    run_retry,
    run_schedule,
)
from .config import DEFAULT_CONFIG, SchedulerConfig
from .executor import ACTION_HANDLERS, ScheduleExecutor
from .models import (
    BatchItemError,
    BatchScheduleInput,
    BatchScheduleResult,
    CancelScheduleInput,
    ExecutionResult,
    ListSchedulesInput,
    Pagination,
    ProcessingError,
    ProcessPendingInput,
    ProcessResult,
    RetryScheduleInput,
    ScheduleContentInput,
    ScheduleFilter,
    SchedulePage,
)
from .ports import ClockPort, ContentStorePort, ScheduleRepoPort
from .presets import SchedulePreset, compute_presets
from .processor import PendingProcessor

__all__ = [
    # Entry points
    "run",
    "run_batch_schedule",
    "run_cancel",
    "run_list",
    "run_process_pending",
    "run_retry",
    "run_schedule",
    # Input models
    "BatchScheduleInput",
    "CancelScheduleInput",
    "ListSchedulesInput",
    "ProcessPendingInput",
    "RetryScheduleInput",
    "ScheduleContentInput",
    "ScheduleFilter",
    # Output models
    "BatchItemError",
    "BatchScheduleResult",
    "ExecutionResult",
    "Pagination",
    "ProcessingError",
    "ProcessResult",
    "SchedulePage",
    "SchedulePreset",
    # Ports
    "ClockPort",
    "ContentStorePort",
    "ScheduleRepoPort",
    # Services
    "ACTION_HANDLERS",
    "DEFAULT_CONFIG",
    "PendingProcessor",
    "ScheduleExecutor",
    "SchedulerConfig",
    "SchedulerService",
    "compute_presets",
    "create_scheduler_service",
]
