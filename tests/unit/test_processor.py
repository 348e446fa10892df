"""
Tests for PendingProcessor: due selection, partial failure, overlapping runs.
"""

from __future__ import annotations

import threading
from datetime import timedelta

from src.adapters.memory import InMemoryContentStore
from src.components.scheduler import PendingProcessor, ScheduleExecutor, SchedulerConfig
from src.core.entities import ContentRecord, ContentType, ScheduleStatus

# --- Mock Implementations ---


class CountingContentStore(InMemoryContentStore):
    """Counts every mutation so double application is visible."""

    def __init__(self, records=None) -> None:
        super().__init__(records)
        self.applied: list[tuple[str, str]] = []
        self._count_lock = threading.Lock()

    def apply_status(self, content_type, content_id, status, now_utc, *, mark_published=False):
        with self._count_lock:
            self.applied.append((content_id, status))
        return super().apply_status(
            content_type, content_id, status, now_utc, mark_published=mark_published
        )


class BrokenRepo:
    """Schedule store that cannot be queried."""

    def list_due(self, now_utc, limit=None):
        raise ConnectionError("database unavailable")


# --- Scenarios ---


def test_not_yet_due_then_due(service, processor, content_store, clock) -> None:
    schedule = service.schedule_content(
        "news-1", "news", "publish", clock.now() + timedelta(hours=1), "UTC", "admin-1"
    )

    clock.advance(minutes=59)
    early = processor.process_pending_schedules()
    assert early.processed == 0
    assert service.get_schedule(schedule.id).status == ScheduleStatus.PENDING

    clock.advance(minutes=1)
    on_time = processor.process_pending_schedules()
    assert on_time.processed == 1
    assert on_time.executed == 1
    assert service.get_schedule(schedule.id).status == ScheduleStatus.EXECUTED
    assert content_store.get(ContentType.NEWS, "news-1").status == "PUBLISHED"

    again = processor.process_pending_schedules()
    assert again.processed == 0


def test_partial_failure_does_not_stop_run(service, processor, clock) -> None:
    when = clock.now() + timedelta(minutes=5)
    ok_1 = service.schedule_content("news-1", "news", "publish", when, "UTC", "u")
    missing = service.schedule_content("missing", "news", "publish", when, "UTC", "u")
    ok_2 = service.schedule_content("prog-1", "program", "publish", when, "UTC", "u")
    clock.advance(minutes=10)

    result = processor.process_pending_schedules()

    assert result.processed == 3
    assert result.executed == 2
    assert result.failed == 1
    assert result.errors == []
    assert service.get_schedule(ok_1.id).status == ScheduleStatus.EXECUTED
    assert service.get_schedule(ok_2.id).status == ScheduleStatus.EXECUTED
    assert service.get_schedule(missing.id).status == ScheduleStatus.FAILED


def test_staggered_batch_runs_one_at_a_time(service, processor, content_store, clock) -> None:
    service.batch_schedule(
        ["news-1", "news-2", "news-3"],
        "news",
        "publish",
        clock.now() + timedelta(minutes=10),
        "admin-1",
        stagger_interval_minutes=10,
    )

    published = []
    for _ in range(3):
        clock.advance(minutes=10)
        processor.process_pending_schedules()
        published.append(
            sorted(
                cid
                for cid in ("news-1", "news-2", "news-3")
                if content_store.get(ContentType.NEWS, cid).status == "PUBLISHED"
            )
        )

    assert published == [["news-1"], ["news-1", "news-2"], ["news-1", "news-2", "news-3"]]


def test_due_limit_per_run(repo, executor, service, clock) -> None:
    when = clock.now() + timedelta(minutes=1)
    for cid in ("news-1", "news-2", "news-3"):
        service.schedule_content(cid, "news", "unpublish", when, "UTC", "u")
    clock.advance(minutes=2)
    limited = PendingProcessor(repo, executor, clock, SchedulerConfig(max_due_per_run=2))

    assert limited.process_pending_schedules().processed == 2
    assert limited.process_pending_schedules().processed == 1


def test_earliest_due_first(service, processor, clock) -> None:
    later = service.schedule_content(
        "news-1", "news", "publish", clock.now() + timedelta(minutes=9), "UTC", "u"
    )
    earlier = service.schedule_content(
        "news-2", "news", "publish", clock.now() + timedelta(minutes=3), "UTC", "u"
    )
    clock.advance(minutes=10)

    result = processor.process_pending_schedules()

    assert [r.schedule_id for r in result.results] == [earlier.id, later.id]


def test_list_due_failure_reported(executor, clock) -> None:
    processor = PendingProcessor(BrokenRepo(), executor, clock)

    result = processor.process_pending_schedules()

    assert result.processed == 0
    assert len(result.errors) == 1
    assert result.errors[0].schedule_id is None
    assert "database unavailable" in result.errors[0].error


def test_explicit_now_overrides_clock(service, processor, clock) -> None:
    schedule = service.schedule_content(
        "news-1", "news", "publish", clock.now() + timedelta(hours=1), "UTC", "u"
    )

    result = processor.process_pending_schedules(clock.now() + timedelta(hours=2))

    assert result.processed == 1
    assert service.get_schedule(schedule.id).status == ScheduleStatus.EXECUTED


# --- Overlapping runs ---


def test_overlapping_runs_apply_each_action_once(repo, service, clock) -> None:
    store = CountingContentStore()
    ids = [f"news-{i}" for i in range(20)]
    for cid in ids:
        store.add(ContentRecord(cid, ContentType.NEWS, "DRAFT"))
    service.batch_schedule(ids, "news", "publish", clock.now() + timedelta(minutes=1), "u")
    clock.advance(minutes=2)

    config = SchedulerConfig(processor_workers=4, execution_timeout_seconds=2.0)
    executor = ScheduleExecutor(repo, store, clock, config)
    results = []
    barrier = threading.Barrier(4)

    def run() -> None:
        barrier.wait()
        results.append(PendingProcessor(repo, executor, clock, config).process_pending_schedules())

    threads = [threading.Thread(target=run) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(cid for cid, _ in store.applied) == sorted(ids)
    assert sum(r.processed for r in results) == 20
    assert all(r.errors == [] for r in results)
    assert repo.list_due(clock.now()) == []


def test_worker_pool_preserves_due_order(repo, content_store, service, clock) -> None:
    when = clock.now() + timedelta(minutes=1)
    created = [
        service.schedule_content(cid, "news", "archive", when + timedelta(seconds=i), "UTC", "u")
        for i, cid in enumerate(["news-1", "news-2", "news-3"])
    ]
    clock.advance(minutes=5)
    config = SchedulerConfig(processor_workers=3, execution_timeout_seconds=2.0)
    executor = ScheduleExecutor(repo, content_store, clock, config)

    result = PendingProcessor(repo, executor, clock, config).process_pending_schedules()

    assert [r.schedule_id for r in result.results] == [s.id for s in created]
    assert result.executed == 3
