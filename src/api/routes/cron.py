"""
Cron trigger routes.

An external scheduler (platform cron, OS cron via curl) calls
POST /process-schedules every minute or so with
``Authorization: Bearer <CRON_SECRET>``. Each call runs the pending processor
once; overlapping calls are safe because claims are compare-and-swap.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel

from src.api.deps import Settings, get_pending_processor, get_rules, get_settings
from src.components.scheduler import PendingProcessor, ProcessResult
from src.rules.models import Rules

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Response Models ---


class ProcessingErrorResponse(BaseModel):
    schedule_id: UUID | None
    error: str


class ProcessSchedulesResponse(BaseModel):
    success: bool
    processed: int
    executed: int
    failed: int
    skipped: int
    errors: list[ProcessingErrorResponse]
    timestamp: datetime


# --- Auth ---


def verify_cron_secret(
    authorization: Annotated[str | None, Header()] = None,
    settings: Settings = Depends(get_settings),
) -> None:
    """Require ``Bearer <CRON_SECRET>``. With no secret configured nothing passes."""
    expected = settings.cron_secret
    if not expected:
        logger.warning("Cron trigger rejected: CRON_SECRET is not configured")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(
        token.strip().encode(), expected.encode()
    ):
        logger.warning("Cron trigger rejected: bad or missing bearer token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


# --- Helpers ---


def result_to_response(result: ProcessResult) -> ProcessSchedulesResponse:
    return ProcessSchedulesResponse(
        success=True,
        processed=result.processed,
        executed=result.executed,
        failed=result.failed,
        skipped=result.skipped,
        errors=[
            ProcessingErrorResponse(schedule_id=e.schedule_id, error=e.error)
            for e in result.errors
        ],
        timestamp=result.timestamp,
    )


def _run(processor: PendingProcessor) -> ProcessSchedulesResponse:
    logger.info("Cron: processing pending schedules")
    result = processor.process_pending_schedules()
    logger.info(
        "Cron: processed=%d executed=%d failed=%d skipped=%d errors=%d",
        result.processed,
        result.executed,
        result.failed,
        result.skipped,
        len(result.errors),
    )
    for error in result.errors:
        logger.error("Cron: schedule %s: %s", error.schedule_id, error.error)
    return result_to_response(result)


# --- Routes ---


@router.post(
    "/process-schedules",
    response_model=ProcessSchedulesResponse,
    dependencies=[Depends(verify_cron_secret)],
)
def process_schedules(
    processor: PendingProcessor = Depends(get_pending_processor),
) -> ProcessSchedulesResponse:
    """Run every due schedule once."""
    return _run(processor)


def reject_in_production(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
) -> None:
    if settings.environment in rules.trigger.get_disabled_in:
        raise HTTPException(
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            detail="Method not allowed",
        )


@router.get(
    "/process-schedules",
    response_model=ProcessSchedulesResponse,
    dependencies=[Depends(reject_in_production), Depends(verify_cron_secret)],
)
def process_schedules_manual(
    processor: PendingProcessor = Depends(get_pending_processor),
) -> ProcessSchedulesResponse:
    """Same run as POST, for manual testing. Refused in production."""
    return _run(processor)
