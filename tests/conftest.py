from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from src.adapters.memory import InMemoryContentStore, InMemoryScheduleRepo
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite.repos import SQLiteContentStore
from src.components.scheduler import (
    PendingProcessor,
    ScheduleExecutor,
    SchedulerConfig,
    SchedulerService,
)
from src.core.entities import ContentRecord, ContentType

PROJECT_ROOT = Path(__file__).resolve().parents[1]
MIGRATIONS_DIR = PROJECT_ROOT / "migrations"
RULES_PATH = PROJECT_ROOT / "rules.yaml"

T0 = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


@dataclass
class MutableClock:
    """Clock that tests move by hand."""

    current: datetime = T0

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@dataclass
class SeededContent:
    news: list[str] = field(default_factory=lambda: ["news-1", "news-2", "news-3"])
    programs: list[str] = field(default_factory=lambda: ["prog-1"])
    publications: list[str] = field(default_factory=lambda: ["pub-1"])


def seed_content(store, at: datetime = T0) -> SeededContent:
    seeded = SeededContent()
    for cid in seeded.news:
        store.add(ContentRecord(cid, ContentType.NEWS, "DRAFT", title=cid, updated_at=at))
    for cid in seeded.programs:
        store.add(ContentRecord(cid, ContentType.PROGRAM, "PLANNING", title=cid, updated_at=at))
    for cid in seeded.publications:
        store.add(
            ContentRecord(cid, ContentType.PUBLICATION, "DRAFT", title=cid, updated_at=at)
        )
    return seeded


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def config() -> SchedulerConfig:
    return SchedulerConfig(execution_timeout_seconds=2.0)


@pytest.fixture
def repo(clock: MutableClock) -> InMemoryScheduleRepo:
    return InMemoryScheduleRepo(clock=clock)


@pytest.fixture
def content_store(clock: MutableClock) -> InMemoryContentStore:
    store = InMemoryContentStore()
    seed_content(store, clock.now())
    return store


@pytest.fixture
def executor(repo, content_store, clock, config) -> ScheduleExecutor:
    return ScheduleExecutor(repo, content_store, clock=clock, config=config)


@pytest.fixture
def service(repo, executor, clock, config) -> SchedulerService:
    return SchedulerService(repo=repo, executor=executor, clock=clock, config=config)


@pytest.fixture
def processor(repo, executor, clock, config) -> PendingProcessor:
    return PendingProcessor(repo, executor, clock=clock, config=config)


@pytest.fixture
def db_path(tmp_path) -> str:
    """Temporary SQLite database with the real migrations applied."""
    path = str(tmp_path / "scheduler.db")
    SQLiteMigrator(path, str(MIGRATIONS_DIR)).run_migrations()
    return path


@pytest.fixture
def sqlite_content_store(db_path: str, clock: MutableClock):
    store = SQLiteContentStore(db_path)
    seed_content(store, clock.now())
    return store
