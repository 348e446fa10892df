from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.core.entities import (
    ContentType,
    Schedule,
    ScheduleAction,
    ScheduleStatus,
    ensure_utc,
)
from src.core.errors import FieldError, InvalidTimezoneError, ValidationError

# Allowed (from -> to) status moves. Anything else is rejected by the stores.
TRANSITIONS: dict[ScheduleStatus, frozenset[ScheduleStatus]] = {
    ScheduleStatus.PENDING: frozenset({ScheduleStatus.PROCESSING, ScheduleStatus.CANCELLED}),
    ScheduleStatus.PROCESSING: frozenset({ScheduleStatus.EXECUTED, ScheduleStatus.FAILED}),
    ScheduleStatus.FAILED: frozenset({ScheduleStatus.PROCESSING}),
    ScheduleStatus.EXECUTED: frozenset(),
    ScheduleStatus.CANCELLED: frozenset(),
}

# Fields a transition may write besides status/updated_at.
TRANSITION_FIELDS = frozenset({"executed_at", "failure_reason", "cancelled_by", "attempts"})


def can_transition(current: ScheduleStatus, new: ScheduleStatus) -> bool:
    return new in TRANSITIONS[ScheduleStatus(current)]


def resolve_timezone(name: str) -> ZoneInfo:
    """Raises InvalidTimezoneError for names that are not IANA zones."""
    if not name:
        raise InvalidTimezoneError(name)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezoneError(name) from e


def parse_enum(enum_cls: Any, value: Any, field: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError.single(field, f"Must be one of: {allowed}") from None


def validate_new_schedule(schedule: Schedule, now: datetime) -> Schedule:
    """
    Check a schedule before it is persisted.

    Returns the schedule with enums coerced and scheduled_date normalised to UTC.
    Collects every field problem before raising.
    """
    errors: list[FieldError] = []

    if not schedule.content_id or not str(schedule.content_id).strip():
        errors.append(FieldError("content_id", "Content ID is required"))
    if not schedule.created_by or not str(schedule.created_by).strip():
        errors.append(FieldError("created_by", "Creator ID is required"))

    try:
        schedule.content_type = parse_enum(ContentType, schedule.content_type, "content_type")
    except ValidationError as e:
        errors.extend(e.errors)
    try:
        schedule.action = parse_enum(ScheduleAction, schedule.action, "action")
    except ValidationError as e:
        errors.extend(e.errors)

    if not isinstance(schedule.scheduled_date, datetime):
        errors.append(FieldError("scheduled_date", "Invalid date format"))
    else:
        schedule.scheduled_date = ensure_utc(schedule.scheduled_date)
        if schedule.scheduled_date <= ensure_utc(now):
            errors.append(FieldError("scheduled_date", "Scheduled date must be in the future"))

    if schedule.status != ScheduleStatus.PENDING:
        errors.append(FieldError("status", "New schedules must be pending"))
    if schedule.executed_at is not None or schedule.failure_reason is not None:
        errors.append(FieldError("status", "Execution fields are set by the executor only"))

    if errors:
        raise ValidationError(errors)

    resolve_timezone(schedule.timezone)
    return schedule
