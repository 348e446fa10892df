import argparse
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from src.adapters.clock import SystemClock, as_local
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite.repos import SQLiteContentStore, SQLiteScheduleRepo
from src.api.deps import Settings
from src.components.scheduler import (
    PendingProcessor,
    ScheduleExecutor,
    ScheduleFilter,
    SchedulerConfig,
    SchedulerService,
)
from src.core.entities import ContentType, Schedule, ScheduleAction, ScheduleStatus
from src.core.errors import SchedulingError
from src.rules.loader import load_rules

logger = logging.getLogger("cli")


@dataclass
class CliContext:
    settings: Settings
    service: SchedulerService
    processor: PendingProcessor

    @classmethod
    def create(cls, settings: Settings) -> "CliContext":
        rules = load_rules(settings.rules_path)
        config = SchedulerConfig.from_rules(rules.scheduling)
        clock = SystemClock()
        repo = SQLiteScheduleRepo(settings.db_path, clock=clock)
        executor = ScheduleExecutor(
            repo, SQLiteContentStore(settings.db_path), clock=clock, config=config
        )
        return cls(
            settings=settings,
            service=SchedulerService(repo=repo, executor=executor, clock=clock, config=config),
            processor=PendingProcessor(repo, executor, clock=clock, config=config),
        )


def _format(schedule: Schedule) -> str:
    when = as_local(schedule.scheduled_date, schedule.timezone)
    return (
        f"{schedule.id}  {schedule.status.value:<10}  {when.isoformat()}  "
        f"{schedule.action.value:<9}  {schedule.content_type.value}:{schedule.content_id}"
    )


def handle_migrate(settings: Settings, args: argparse.Namespace) -> int:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    migrator = SQLiteMigrator(settings.db_path, settings.migrations_dir)
    if args.status:
        pending = migrator.pending()
        for name in pending:
            print(f"pending  {name}")
        print(f"{len(pending)} pending migration(s).")
        return 0
    applied = migrator.run_migrations()
    print(f"Applied {len(applied)} migration(s).")
    return 0


def handle_process(ctx: CliContext, args: argparse.Namespace) -> int:
    result = ctx.processor.process_pending_schedules()
    print(
        f"Processed {result.processed} schedule(s): "
        f"{result.executed} executed, {result.failed} failed, {result.skipped} skipped."
    )
    for error in result.errors:
        print(f"  error {error.schedule_id}: {error.error}")
    return 1 if result.errors else 0


def handle_list(ctx: CliContext, args: argparse.Namespace) -> int:
    filters = ScheduleFilter(
        content_type=ContentType(args.content_type) if args.content_type else None,
        status=ScheduleStatus(args.status) if args.status else None,
        action=ScheduleAction(args.action) if args.action else None,
        scheduled_after=datetime.fromisoformat(args.after) if args.after else None,
        scheduled_before=datetime.fromisoformat(args.before) if args.before else None,
        search=args.search,
    )
    page = ctx.service.list_schedules(filters, page=args.page, limit=args.limit)
    for schedule in page.schedules:
        print(_format(schedule))
    p = page.pagination
    print(f"Page {p.page}/{max(p.total_pages, 1)} ({p.total_count} total)")
    return 0


def handle_cancel(ctx: CliContext, args: argparse.Namespace) -> int:
    schedule = ctx.service.cancel_schedule(UUID(args.schedule_id), cancelled_by=args.actor)
    print(f"Cancelled: {_format(schedule)}")
    return 0


def handle_retry(ctx: CliContext, args: argparse.Namespace) -> int:
    result = ctx.service.retry_schedule(UUID(args.schedule_id))
    if result.success:
        print(f"Executed {result.schedule_id} at {result.executed_at.isoformat()}")
        return 0
    print(f"Failed again {result.schedule_id}: {result.error}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Content Scheduler CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # migrate
    migrate_parser = subparsers.add_parser("migrate", help="Apply database migrations")
    migrate_parser.add_argument(
        "--status", action="store_true", help="List pending migrations without applying"
    )

    # process
    subparsers.add_parser("process", help="Run every due schedule once (for OS cron)")

    # list
    list_parser = subparsers.add_parser("list", help="List schedules")
    list_parser.add_argument("--content-type", choices=[c.value for c in ContentType])
    list_parser.add_argument("--status", choices=[s.value for s in ScheduleStatus])
    list_parser.add_argument("--action", choices=[a.value for a in ScheduleAction])
    list_parser.add_argument("--after", help="ISO datetime lower bound")
    list_parser.add_argument("--before", help="ISO datetime upper bound")
    list_parser.add_argument("--search")
    list_parser.add_argument("--page", type=int, default=1)
    list_parser.add_argument("--limit", type=int, default=None)

    # cancel
    cancel_parser = subparsers.add_parser("cancel", help="Cancel a pending schedule")
    cancel_parser.add_argument("schedule_id")
    cancel_parser.add_argument("--actor", default="cli", help="Recorded as cancelled_by")

    # retry
    retry_parser = subparsers.add_parser("retry", help="Re-run a failed schedule now")
    retry_parser.add_argument("schedule_id")

    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO)
    args = build_parser().parse_args(argv)
    settings = Settings()

    if args.command == "migrate":
        return handle_migrate(settings, args)

    if not settings.rules_path.exists():
        logger.error(f"Rules file {settings.rules_path} not found.")
        return 1

    ctx = CliContext.create(settings)
    handlers = {
        "process": handle_process,
        "list": handle_list,
        "cancel": handle_cancel,
        "retry": handle_retry,
    }
    try:
        return handlers[args.command](ctx, args)
    except SchedulingError as e:
        logger.error(str(e))
        return 1
    except ValueError as e:
        # Malformed ids or dates on the command line
        logger.error(f"Invalid argument: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
