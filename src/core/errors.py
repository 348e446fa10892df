"""
Scheduling error types.

Single-schedule operations raise these to the caller. Batch scheduling and
processor runs catch them per item and report them alongside the successes.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class FieldError:
    """One invalid input field."""

    field: str
    message: str


class SchedulingError(Exception):
    """Base scheduling error."""

    pass


class ValidationError(SchedulingError):
    """Malformed input: past date, unknown enum value, bad timezone."""

    def __init__(self, errors: list[FieldError]) -> None:
        self.errors = errors
        messages = [f"{e.field}: {e.message}" for e in errors]
        super().__init__(f"Validation failed: {'; '.join(messages)}")

    @classmethod
    def single(cls, field: str, message: str) -> ValidationError:
        return cls([FieldError(field, message)])


class InvalidTimezoneError(ValidationError):
    """Timezone name does not resolve to a known IANA zone."""

    def __init__(self, timezone: str) -> None:
        self.timezone = timezone
        super().__init__([FieldError("timezone", f"Unknown timezone '{timezone}'")])


class ScheduleNotFoundError(SchedulingError):
    def __init__(self, schedule_id: UUID) -> None:
        self.schedule_id = schedule_id
        super().__init__(f"Schedule {schedule_id} not found")


class InvalidStateError(SchedulingError):
    """Operation attempted against a schedule in the wrong state."""

    def __init__(self, schedule_id: UUID | None, current: str, operation: str) -> None:
        self.schedule_id = schedule_id
        self.current = current
        self.operation = operation
        super().__init__(f"Cannot {operation} schedule {schedule_id} in '{current}' status")


class ContentNotFoundError(SchedulingError):
    """Target content no longer exists in the Content Store."""

    def __init__(self, content_type: str, content_id: str) -> None:
        self.content_type = content_type
        self.content_id = content_id
        super().__init__(f"{content_type} '{content_id}' not found")


class ExecutionError(SchedulingError):
    """Applying the action failed for any other reason."""

    pass


class ExecutionTimeoutError(ExecutionError):
    def __init__(self, schedule_id: UUID, timeout_seconds: float) -> None:
        self.schedule_id = schedule_id
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Schedule {schedule_id} timed out after {timeout_seconds}s")


class ClaimConflict(SchedulingError):
    """Compare-and-swap claim lost: another run claimed or resolved the schedule."""

    def __init__(self, schedule_id: UUID) -> None:
        self.schedule_id = schedule_id
        super().__init__(f"Schedule {schedule_id} already claimed or resolved")
