import json
import sqlite3
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from src.adapters.clock import SystemClock
from src.components.scheduler.models import ScheduleFilter
from src.components.scheduler.ports import ClockPort
from src.core.entities import (
    ContentRecord,
    ContentType,
    Schedule,
    ScheduleAction,
    ScheduleStatus,
    ensure_utc,
)
from src.core.errors import ContentNotFoundError, InvalidStateError
from src.domain.state import TRANSITION_FIELDS, can_transition, validate_new_schedule

CONTENT_TABLES: dict[ContentType, str] = {
    ContentType.NEWS: "news",
    ContentType.PROGRAM: "programs",
    ContentType.PUBLICATION: "publications",
}


# Helper to convert sqlite rows to dicts
def dict_factory(cursor: sqlite3.Cursor, row: Any) -> dict[str, Any]:
    d = {}
    for idx, col in enumerate(cursor.description):
        d[col[0]] = row[idx]
    return d


def _to_db(dt: datetime | None) -> str | None:
    # Fixed-width UTC strings so lexical order matches chronological order
    if dt is None:
        return None
    return ensure_utc(dt).isoformat(timespec="microseconds")


def _from_db(value: str | None) -> datetime | None:
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def _casefold(value: str | None) -> str | None:
    return value.casefold() if value is not None else None


class _SQLiteRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = dict_factory
        # SQLite LOWER() only folds ASCII
        conn.create_function("casefold", 1, _casefold, deterministic=True)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn


class SQLiteScheduleRepo(_SQLiteRepo):
    def __init__(self, db_path: str, clock: ClockPort | None = None):
        super().__init__(db_path)
        self._clock = clock or SystemClock()

    def create(self, schedule: Schedule) -> Schedule:
        now = self._clock.now()
        validate_new_schedule(schedule, now)
        schedule = replace(schedule, created_at=now, updated_at=now)
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO content_schedules (
                    id, content_id, content_type, action, scheduled_date,
                    timezone, status, executed_at, failure_reason, cancelled_by,
                    attempts, created_by, metadata_json, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    str(schedule.id),
                    schedule.content_id,
                    schedule.content_type.value,
                    schedule.action.value,
                    _to_db(schedule.scheduled_date),
                    schedule.timezone,
                    schedule.status.value,
                    _to_db(schedule.executed_at),
                    schedule.failure_reason,
                    schedule.cancelled_by,
                    schedule.attempts,
                    schedule.created_by,
                    json.dumps(schedule.metadata, default=str, ensure_ascii=False),
                    _to_db(schedule.created_at),
                    _to_db(schedule.updated_at),
                ),
            )
            conn.commit()
            return schedule
        finally:
            conn.close()

    def get(self, schedule_id: UUID) -> Schedule | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM content_schedules WHERE id = ?", (str(schedule_id),)
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            conn.close()

    def list_due(self, now_utc: datetime, limit: int | None = None) -> list[Schedule]:
        query = """
            SELECT * FROM content_schedules
            WHERE status = ? AND scheduled_date <= ?
            ORDER BY scheduled_date ASC
        """
        params: list[Any] = [ScheduleStatus.PENDING.value, _to_db(now_utc)]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        conn = self._get_conn()
        try:
            rows = conn.execute(query, params).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            conn.close()

    def list_filtered(
        self,
        criteria: ScheduleFilter,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Schedule], int]:
        clauses: list[str] = []
        params: list[Any] = []

        if criteria.content_type:
            clauses.append("content_type = ?")
            params.append(ContentType(criteria.content_type).value)
        if criteria.status:
            clauses.append("status = ?")
            params.append(ScheduleStatus(criteria.status).value)
        if criteria.action:
            clauses.append("action = ?")
            params.append(ScheduleAction(criteria.action).value)
        if criteria.scheduled_after:
            clauses.append("scheduled_date >= ?")
            params.append(_to_db(criteria.scheduled_after))
        if criteria.scheduled_before:
            clauses.append("scheduled_date <= ?")
            params.append(_to_db(criteria.scheduled_before))
        if criteria.created_by:
            clauses.append("created_by = ?")
            params.append(criteria.created_by)
        if criteria.search:
            # instr() matches literally, so % and _ in the search are not wildcards
            clauses.append(
                "(instr(casefold(id), ?) > 0 OR instr(casefold(content_id), ?) > 0 "
                "OR instr(casefold(created_by), ?) > 0 "
                "OR instr(casefold(metadata_json), ?) > 0)"
            )
            needle = criteria.search.casefold()
            params.extend([needle] * 4)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        conn = self._get_conn()
        try:
            total = conn.execute(
                f"SELECT COUNT(*) AS n FROM content_schedules {where}", params
            ).fetchone()["n"]
            rows = conn.execute(
                f"""
                SELECT * FROM content_schedules {where}
                ORDER BY scheduled_date ASC
                LIMIT ? OFFSET ?
            """,
                [*params, limit, (page - 1) * limit],
            ).fetchall()
            return [self._map_row(r) for r in rows], total
        finally:
            conn.close()

    def list_for_content(
        self,
        content_id: str,
        content_type: ContentType | None = None,
    ) -> list[Schedule]:
        query = "SELECT * FROM content_schedules WHERE content_id = ?"
        params: list[Any] = [content_id]
        if content_type is not None:
            query += " AND content_type = ?"
            params.append(ContentType(content_type).value)
        query += " ORDER BY scheduled_date ASC"

        conn = self._get_conn()
        try:
            rows = conn.execute(query, params).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            conn.close()

    def transition(
        self,
        schedule_id: UUID,
        from_status: ScheduleStatus,
        to_status: ScheduleStatus,
        fields: dict[str, Any] | None = None,
    ) -> bool:
        """
        Move a schedule from one status to another in a single conditional UPDATE.

        Returns False when the row is missing or no longer in from_status, so at
        most one caller can win a given claim.
        """
        if not can_transition(from_status, to_status):
            raise InvalidStateError(
                schedule_id,
                ScheduleStatus(from_status).value,
                f"move to {ScheduleStatus(to_status).value}",
            )
        updates = dict(fields or {})
        unknown = set(updates) - TRANSITION_FIELDS
        if unknown:
            raise ValueError(f"Fields not writable by a transition: {sorted(unknown)}")

        sets = ["status = ?", "updated_at = ?"]
        params: list[Any] = [ScheduleStatus(to_status).value, _to_db(self._clock.now())]
        for name, value in updates.items():
            if name == "attempts":
                # Counted by the store on claims below
                continue
            sets.append(f"{name} = ?")
            params.append(_to_db(value) if isinstance(value, datetime) else value)
        if ScheduleStatus(to_status) == ScheduleStatus.PROCESSING:
            sets.append("attempts = attempts + 1")

        params.extend([str(schedule_id), ScheduleStatus(from_status).value])

        conn = self._get_conn()
        try:
            cursor = conn.execute(
                f"UPDATE content_schedules SET {', '.join(sets)} WHERE id = ? AND status = ?",
                params,
            )
            conn.commit()
            return cursor.rowcount == 1
        finally:
            conn.close()

    def _map_row(self, row: dict[str, Any]) -> Schedule:
        return Schedule(
            id=UUID(row["id"]),
            content_id=row["content_id"],
            content_type=ContentType(row["content_type"]),
            action=ScheduleAction(row["action"]),
            scheduled_date=_from_db(row["scheduled_date"]),  # type: ignore[arg-type]
            timezone=row["timezone"],
            status=ScheduleStatus(row["status"]),
            executed_at=_from_db(row["executed_at"]),
            failure_reason=row["failure_reason"],
            cancelled_by=row["cancelled_by"],
            attempts=row["attempts"],
            created_by=row["created_by"],
            metadata=json.loads(row["metadata_json"] or "{}"),
            created_at=_from_db(row["created_at"]),  # type: ignore[arg-type]
            updated_at=_from_db(row["updated_at"]),  # type: ignore[arg-type]
        )


class SQLiteContentStore(_SQLiteRepo):
    """Content Store backed by the news, programs and publications tables."""

    def add(self, record: ContentRecord) -> ContentRecord:
        table = CONTENT_TABLES[ContentType(record.content_type)]
        conn = self._get_conn()
        try:
            conn.execute(
                f"""
                INSERT INTO {table} (id, title, status, published_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title=excluded.title,
                    status=excluded.status,
                    published_at=excluded.published_at,
                    updated_at=excluded.updated_at
            """,
                (
                    record.id,
                    record.title,
                    record.status,
                    _to_db(record.published_at),
                    _to_db(record.updated_at),
                ),
            )
            conn.commit()
            return record
        finally:
            conn.close()

    def get(self, content_type: ContentType, content_id: str) -> ContentRecord | None:
        ctype = ContentType(content_type)
        conn = self._get_conn()
        try:
            row = conn.execute(
                f"SELECT * FROM {CONTENT_TABLES[ctype]} WHERE id = ?", (content_id,)
            ).fetchone()
            return self._map_row(ctype, row) if row else None
        finally:
            conn.close()

    def apply_status(
        self,
        content_type: ContentType,
        content_id: str,
        status: str,
        now_utc: datetime,
        *,
        mark_published: bool = False,
    ) -> ContentRecord:
        ctype = ContentType(content_type)
        table = CONTENT_TABLES[ctype]
        now = _to_db(now_utc)
        conn = self._get_conn()
        try:
            if mark_published:
                cursor = conn.execute(
                    f"""
                    UPDATE {table} SET
                        status = ?,
                        published_at = CASE WHEN published_at IS NULL THEN ? ELSE published_at END,
                        updated_at = ?
                    WHERE id = ?
                """,
                    (status, now, now, content_id),
                )
            else:
                cursor = conn.execute(
                    f"UPDATE {table} SET status = ?, updated_at = ? WHERE id = ?",
                    (status, now, content_id),
                )
            if cursor.rowcount == 0:
                conn.rollback()
                raise ContentNotFoundError(ctype.value, content_id)
            conn.commit()

            row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (content_id,)).fetchone()
            return self._map_row(ctype, row)
        finally:
            conn.close()

    def _map_row(self, content_type: ContentType, row: dict[str, Any]) -> ContentRecord:
        return ContentRecord(
            id=row["id"],
            content_type=content_type,
            status=row["status"],
            title=row["title"],
            published_at=_from_db(row["published_at"]),
            updated_at=_from_db(row["updated_at"]),  # type: ignore[arg-type]
        )
