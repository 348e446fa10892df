import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from src.adapters.clock import SystemClock
from src.adapters.sqlite.repos import SQLiteContentStore, SQLiteScheduleRepo
from src.components.scheduler import (
    ClockPort,
    ContentStorePort,
    PendingProcessor,
    ScheduleExecutor,
    SchedulerConfig,
    SchedulerService,
    ScheduleRepoPort,
)
from src.rules.loader import load_rules
from src.rules.models import Rules

PROJECT_ROOT = Path(__file__).resolve().parents[2]


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = PROJECT_ROOT
        self.data_dir = Path(os.environ.get("SCHED_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / "scheduler.db")
        self.migrations_dir = self.base_dir / "migrations"
        self.rules_path = Path(os.environ.get("SCHED_RULES_PATH", self.base_dir / "rules.yaml"))
        self.environment = os.environ.get("SCHED_ENV", "development")
        # Unset or empty: the trigger endpoint rejects every call
        self.cron_secret = os.environ.get("CRON_SECRET") or None


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules(settings: Settings = Depends(get_settings)) -> Rules:
    return load_rules(settings.rules_path)


def get_scheduler_config(rules: Rules = Depends(get_rules)) -> SchedulerConfig:
    return SchedulerConfig.from_rules(rules.scheduling)


# --- Adapters ---
def get_clock() -> ClockPort:
    return SystemClock()


def get_schedule_repo(
    settings: Settings = Depends(get_settings),
    clock: ClockPort = Depends(get_clock),
) -> ScheduleRepoPort:
    return SQLiteScheduleRepo(settings.db_path, clock=clock)


def get_content_store(settings: Settings = Depends(get_settings)) -> ContentStorePort:
    return SQLiteContentStore(settings.db_path)


# --- Component Services ---
def get_schedule_executor(
    repo: ScheduleRepoPort = Depends(get_schedule_repo),
    content_store: ContentStorePort = Depends(get_content_store),
    clock: ClockPort = Depends(get_clock),
    config: SchedulerConfig = Depends(get_scheduler_config),
) -> ScheduleExecutor:
    return ScheduleExecutor(repo, content_store, clock=clock, config=config)


def get_scheduler_service(
    repo: ScheduleRepoPort = Depends(get_schedule_repo),
    executor: ScheduleExecutor = Depends(get_schedule_executor),
    clock: ClockPort = Depends(get_clock),
    config: SchedulerConfig = Depends(get_scheduler_config),
) -> SchedulerService:
    """Get scheduler component service."""
    return SchedulerService(repo=repo, executor=executor, clock=clock, config=config)


def get_pending_processor(
    repo: ScheduleRepoPort = Depends(get_schedule_repo),
    executor: ScheduleExecutor = Depends(get_schedule_executor),
    clock: ClockPort = Depends(get_clock),
    config: SchedulerConfig = Depends(get_scheduler_config),
) -> PendingProcessor:
    return PendingProcessor(repo, executor, clock=clock, config=config)


# --- Caller Identity ---
def get_current_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
) -> str:
    """
    Identity of the admin making the request.

    Authentication happens upstream; this only requires that the gateway
    forwarded who the caller is.
    """
    if not x_actor_id or not x_actor_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return x_actor_id.strip()
