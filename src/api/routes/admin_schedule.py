"""
Admin Scheduling API Routes.

Provides scheduling endpoints for timed publish, unpublish and archive
actions on news, programs and publications.

- POST /            single schedule, or a staggered batch when content_ids is sent
- GET /             filtered, paginated listing
- GET /presets      quick-pick instants for the scheduling form
- GET /content/{id} every schedule for one content item
- GET|PATCH|DELETE /{schedule_id}
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from src.api.deps import get_current_actor, get_scheduler_service
from src.components.scheduler import (
    BatchScheduleResult,
    ScheduleFilter,
    SchedulerService,
)
from src.core.entities import ContentType, Schedule, ScheduleAction, ScheduleStatus
from src.core.errors import (
    ClaimConflict,
    ContentNotFoundError,
    InvalidStateError,
    ScheduleNotFoundError,
    SchedulingError,
    ValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Request/Response Models ---


class CreateScheduleRequest(BaseModel):
    """Single schedule, or a batch when content_ids is present."""

    content_id: str | None = None
    content_ids: list[str] | None = None
    content_type: str
    action: str
    scheduled_date: datetime = Field(..., description="Absolute instant; naive values are UTC")
    timezone: str | None = None
    stagger_interval_minutes: int = 0
    metadata: dict[str, Any] | None = None


class UpdateScheduleRequest(BaseModel):
    action: Literal["cancel", "retry"]


class ScheduleResponse(BaseModel):
    id: UUID
    content_id: str
    content_type: str
    action: str
    scheduled_date: datetime
    timezone: str
    status: str
    executed_at: datetime | None = None
    failure_reason: str | None = None
    cancelled_by: str | None = None
    attempts: int
    created_by: str
    metadata: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class BatchItemErrorResponse(BaseModel):
    content_id: str
    error: str


class BatchScheduleResponse(BaseModel):
    scheduled_count: int
    errors: list[BatchItemErrorResponse]
    schedules: list[ScheduleResponse]


class PaginationResponse(BaseModel):
    page: int
    limit: int
    total_count: int
    total_pages: int


class ScheduleListResponse(BaseModel):
    schedules: list[ScheduleResponse]
    pagination: PaginationResponse


class PresetResponse(BaseModel):
    key: str
    label: str
    scheduled_date: datetime


class PresetListResponse(BaseModel):
    timezone: str
    presets: list[PresetResponse]


# --- Helpers ---


def schedule_to_response(schedule: Schedule) -> ScheduleResponse:
    """Convert Schedule to response model."""
    return ScheduleResponse(
        id=schedule.id,
        content_id=schedule.content_id,
        content_type=schedule.content_type.value,
        action=schedule.action.value,
        scheduled_date=schedule.scheduled_date,
        timezone=schedule.timezone,
        status=schedule.status.value,
        executed_at=schedule.executed_at,
        failure_reason=schedule.failure_reason,
        cancelled_by=schedule.cancelled_by,
        attempts=schedule.attempts,
        created_by=schedule.created_by,
        metadata=schedule.metadata,
        created_at=schedule.created_at,
        updated_at=schedule.updated_at,
    )


def batch_to_response(result: BatchScheduleResult) -> BatchScheduleResponse:
    return BatchScheduleResponse(
        scheduled_count=result.scheduled_count,
        errors=[
            BatchItemErrorResponse(content_id=e.content_id, error=e.error) for e in result.errors
        ],
        schedules=[schedule_to_response(s) for s in result.schedules],
    )


def to_http_error(e: SchedulingError) -> HTTPException:
    """Map a scheduling error to the HTTP status the admin UI expects."""
    if isinstance(e, ValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"errors": [{"field": fe.field, "message": fe.message} for fe in e.errors]},
        )
    if isinstance(e, (ScheduleNotFoundError, ContentNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, (InvalidStateError, ClaimConflict)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


# --- Routes ---


@router.post(
    "/",
    response_model=ScheduleResponse | BatchScheduleResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_schedule(
    request: CreateScheduleRequest,
    actor: str = Depends(get_current_actor),
    service: SchedulerService = Depends(get_scheduler_service),
) -> Any:
    """
    Schedule one content item, or a batch when content_ids is sent.

    A batch answers 201 even when some items failed; they are listed in errors.
    """
    try:
        if request.content_ids is not None:
            result = service.batch_schedule(
                content_ids=request.content_ids,
                content_type=request.content_type,
                action=request.action,
                scheduled_date=request.scheduled_date,
                created_by=actor,
                stagger_interval_minutes=request.stagger_interval_minutes,
                timezone=request.timezone,
                metadata=request.metadata,
            )
            return batch_to_response(result)

        if not request.content_id:
            raise ValidationError.single("content_id", "Content ID is required")

        schedule = service.schedule_content(
            content_id=request.content_id,
            content_type=request.content_type,
            action=request.action,
            scheduled_date=request.scheduled_date,
            timezone=request.timezone,
            created_by=actor,
            metadata=request.metadata,
        )
        return schedule_to_response(schedule)
    except SchedulingError as e:
        raise to_http_error(e) from e


@router.get("/", response_model=ScheduleListResponse)
def list_schedules(
    content_type: ContentType | None = None,
    status_filter: ScheduleStatus | None = Query(None, alias="status"),
    action: ScheduleAction | None = None,
    scheduled_after: datetime | None = None,
    scheduled_before: datetime | None = None,
    created_by: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int | None = None,
    _actor: str = Depends(get_current_actor),
    service: SchedulerService = Depends(get_scheduler_service),
) -> ScheduleListResponse:
    """List schedules ordered by scheduled_date."""
    filters = ScheduleFilter(
        content_type=content_type,
        status=status_filter,
        action=action,
        scheduled_after=scheduled_after,
        scheduled_before=scheduled_before,
        created_by=created_by,
        search=search,
    )
    try:
        result = service.list_schedules(filters, page=page, limit=limit)
    except SchedulingError as e:
        raise to_http_error(e) from e

    pagination = result.pagination
    return ScheduleListResponse(
        schedules=[schedule_to_response(s) for s in result.schedules],
        pagination=PaginationResponse(
            page=pagination.page,
            limit=pagination.limit,
            total_count=pagination.total_count,
            total_pages=pagination.total_pages,
        ),
    )


@router.get("/presets", response_model=PresetListResponse)
def get_presets(
    timezone: str | None = None,
    _actor: str = Depends(get_current_actor),
    service: SchedulerService = Depends(get_scheduler_service),
) -> PresetListResponse:
    """Quick-pick instants computed in the given (or default) timezone."""
    try:
        presets = service.presets(timezone)
    except SchedulingError as e:
        raise to_http_error(e) from e

    return PresetListResponse(
        timezone=timezone or service.default_timezone,
        presets=[
            PresetResponse(key=p.key, label=p.label, scheduled_date=p.scheduled_date)
            for p in presets
        ],
    )


@router.get("/content/{content_id}", response_model=list[ScheduleResponse])
def get_schedules_for_content(
    content_id: str,
    content_type: ContentType | None = None,
    _actor: str = Depends(get_current_actor),
    service: SchedulerService = Depends(get_scheduler_service),
) -> Any:
    """Every schedule for a content item, whatever its status."""
    schedules = service.list_for_content(content_id, content_type)
    return [schedule_to_response(s) for s in schedules]


@router.get("/{schedule_id}", response_model=ScheduleResponse)
def get_schedule(
    schedule_id: UUID,
    _actor: str = Depends(get_current_actor),
    service: SchedulerService = Depends(get_scheduler_service),
) -> Any:
    try:
        return schedule_to_response(service.get_schedule(schedule_id))
    except SchedulingError as e:
        raise to_http_error(e) from e


@router.patch("/{schedule_id}", response_model=ScheduleResponse)
def update_schedule(
    schedule_id: UUID,
    request: UpdateScheduleRequest,
    actor: str = Depends(get_current_actor),
    service: SchedulerService = Depends(get_scheduler_service),
) -> Any:
    """
    Cancel a pending schedule or retry a failed one.

    A retry answers 200 with the schedule whether the new attempt executed or
    failed again; read status and failure_reason to tell which.
    """
    try:
        if request.action == "cancel":
            schedule = service.cancel_schedule(schedule_id, cancelled_by=actor)
        else:
            service.retry_schedule(schedule_id)
            schedule = service.get_schedule(schedule_id)
    except SchedulingError as e:
        raise to_http_error(e) from e

    logger.info("Schedule %s: %s by %s", schedule_id, request.action, actor)
    return schedule_to_response(schedule)


@router.delete("/{schedule_id}", response_model=ScheduleResponse)
def cancel_schedule(
    schedule_id: UUID,
    actor: str = Depends(get_current_actor),
    service: SchedulerService = Depends(get_scheduler_service),
) -> Any:
    """Cancel a pending schedule. The record is kept with status cancelled."""
    try:
        return schedule_to_response(service.cancel_schedule(schedule_id, cancelled_by=actor))
    except SchedulingError as e:
        raise to_http_error(e) from e
