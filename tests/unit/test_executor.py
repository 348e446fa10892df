"""
Tests for ScheduleExecutor: claim, action dispatch, outcome recording, timeout.
"""

from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from src.components.scheduler import ACTION_HANDLERS, ScheduleExecutor, SchedulerConfig
from src.core.entities import ContentType, Schedule, ScheduleAction, ScheduleStatus
from src.core.errors import ClaimConflict

# --- Mock Implementations ---


class RejectingContentStore:
    """Content store whose writes always fail."""

    def __init__(self, message: str = "write refused") -> None:
        self.message = message

    def get(self, content_type, content_id):
        return None

    def apply_status(self, content_type, content_id, status, now_utc, *, mark_published=False):
        raise RuntimeError(self.message)


class BlockingContentStore:
    """Content store whose writes hang until released."""

    def __init__(self) -> None:
        self.release = threading.Event()
        self.calls = 0

    def get(self, content_type, content_id):
        return None

    def apply_status(self, content_type, content_id, status, now_utc, *, mark_published=False):
        self.calls += 1
        self.release.wait(timeout=5)
        raise RuntimeError("released")


def _due(repo, clock, content_id="news-1", content_type="news", action="publish") -> Schedule:
    schedule = repo.create(
        Schedule(
            content_id=content_id,
            content_type=ContentType(content_type),
            action=ScheduleAction(action),
            scheduled_date=clock.now() + timedelta(minutes=5),
            created_by="admin-1",
        )
    )
    clock.advance(minutes=10)
    return schedule


# --- Handler table ---


def test_every_action_has_a_handler() -> None:
    assert set(ACTION_HANDLERS) == set(ScheduleAction)


@pytest.mark.parametrize(
    "content_type,content_id,action,expected",
    [
        ("news", "news-1", "publish", "PUBLISHED"),
        ("news", "news-1", "unpublish", "DRAFT"),
        ("news", "news-1", "archive", "ARCHIVED"),
        ("program", "prog-1", "publish", "ACTIVE"),
        ("program", "prog-1", "unpublish", "PLANNING"),
        ("program", "prog-1", "archive", "CANCELLED"),
        ("publication", "pub-1", "publish", "PUBLISHED"),
        ("publication", "pub-1", "archive", "ARCHIVED"),
    ],
)
def test_action_sets_content_status(
    executor, repo, content_store, clock, content_type, content_id, action, expected
) -> None:
    schedule = _due(repo, clock, content_id, content_type, action)

    result = executor.execute(schedule)

    assert result.success
    record = content_store.get(ContentType(content_type), content_id)
    assert record.status == expected
    assert record.updated_at == clock.now()


# --- Outcomes ---


class TestExecute:
    def test_success_records_executed(self, executor, repo, clock) -> None:
        schedule = _due(repo, clock)

        result = executor.execute(schedule)

        stored = repo.get(schedule.id)
        assert result.status == ScheduleStatus.EXECUTED
        assert stored.status == ScheduleStatus.EXECUTED
        assert stored.executed_at == clock.now()
        assert stored.failure_reason is None
        assert stored.attempts == 1

    def test_publish_sets_published_at_once(self, executor, repo, content_store, clock) -> None:
        first = _due(repo, clock)
        executor.execute(first)
        published_at = content_store.get(ContentType.NEWS, "news-1").published_at
        assert published_at == clock.now()

        second = _due(repo, clock, action="unpublish")
        executor.execute(second)
        third = _due(repo, clock)
        executor.execute(third)

        record = content_store.get(ContentType.NEWS, "news-1")
        assert record.status == "PUBLISHED"
        assert record.published_at == published_at

    def test_missing_content_records_failed(self, executor, repo, clock) -> None:
        schedule = _due(repo, clock, content_id="gone")

        result = executor.execute(schedule)

        stored = repo.get(schedule.id)
        assert not result.success
        assert stored.status == ScheduleStatus.FAILED
        assert "gone" in stored.failure_reason
        assert stored.executed_at == clock.now()

    def test_store_error_records_failed(self, repo, clock, config) -> None:
        executor = ScheduleExecutor(repo, RejectingContentStore("db locked"), clock, config)
        schedule = _due(repo, clock)

        result = executor.execute(schedule)

        assert result.error == "db locked"
        assert repo.get(schedule.id).failure_reason == "db locked"

    def test_claim_conflict_touches_nothing(self, executor, repo, content_store, clock) -> None:
        schedule = _due(repo, clock)
        assert repo.transition(schedule.id, ScheduleStatus.PENDING, ScheduleStatus.CANCELLED)

        with pytest.raises(ClaimConflict):
            executor.execute(schedule)

        assert repo.get(schedule.id).status == ScheduleStatus.CANCELLED
        assert content_store.get(ContentType.NEWS, "news-1").status == "DRAFT"

    def test_second_execute_of_same_snapshot_conflicts(self, executor, repo, clock) -> None:
        schedule = _due(repo, clock)
        executor.execute(schedule)

        with pytest.raises(ClaimConflict):
            executor.execute(schedule)
        assert repo.get(schedule.id).attempts == 1


# --- Timeout ---


class TestTimeout:
    def test_hung_store_times_out_as_failed(self, repo, clock) -> None:
        store = BlockingContentStore()
        executor = ScheduleExecutor(
            repo, store, clock, SchedulerConfig(execution_timeout_seconds=0.1)
        )
        schedule = _due(repo, clock)

        try:
            result = executor.execute(schedule)
        finally:
            store.release.set()

        stored = repo.get(schedule.id)
        assert not result.success
        assert stored.status == ScheduleStatus.FAILED
        assert "timed out" in stored.failure_reason

    def test_timeout_disabled_runs_inline(self, repo, content_store, clock) -> None:
        executor = ScheduleExecutor(
            repo, content_store, clock, SchedulerConfig(execution_timeout_seconds=None)
        )
        schedule = _due(repo, clock)

        assert executor.execute(schedule).success
