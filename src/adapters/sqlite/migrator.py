"""
Forward-only SQL migrations for the schedule database.

Each ``NNN_name.sql`` file holds an ``-- Up`` section and an optional
``-- Down`` section; only the Up part is executed. Applied filenames are
recorded in ``_migrations`` so reruns are no-ops.
"""

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

DOWN_MARKER = "-- Down"


class SQLiteMigrator:
    def __init__(self, db_path: str | Path, migrations_dir: str | Path):
        self.db_path = str(db_path)
        self.migrations_dir = Path(migrations_dir)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute(
            "CREATE TABLE IF NOT EXISTS _migrations ("
            " id INTEGER PRIMARY KEY AUTOINCREMENT,"
            " filename TEXT UNIQUE NOT NULL,"
            " applied_at DATETIME DEFAULT CURRENT_TIMESTAMP)"
        )
        return conn

    def available(self) -> list[str]:
        return sorted(p.name for p in self.migrations_dir.glob("*.sql"))

    def pending(self) -> list[str]:
        """Migration files not yet recorded as applied, in apply order."""
        conn = self._connect()
        try:
            applied = {row[0] for row in conn.execute("SELECT filename FROM _migrations")}
        finally:
            conn.close()
        return [name for name in self.available() if name not in applied]

    def run_migrations(self) -> list[str]:
        """Apply all pending migrations. Returns the filenames applied."""
        todo = self.pending()
        if not todo:
            logger.debug("Schema up to date (%s)", self.db_path)
            return []

        conn = self._connect()
        try:
            for filename in todo:
                logger.info("Applying migration: %s", filename)
                self._apply(conn, filename)
        finally:
            conn.close()
        return todo

    def _up_script(self, filename: str) -> str:
        content = (self.migrations_dir / filename).read_text()
        up, _, _ = content.partition(DOWN_MARKER)
        return up

    def _apply(self, conn: sqlite3.Connection, filename: str) -> None:
        try:
            conn.executescript(self._up_script(filename))
            conn.execute("INSERT INTO _migrations (filename) VALUES (?)", (filename,))
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise RuntimeError(f"Migration {filename} failed: {e}") from e
