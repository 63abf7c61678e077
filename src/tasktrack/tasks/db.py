# src/tasktrack/tasks/db.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import threading
from collections.abc import Iterator
from pathlib import Path

logger = logging.getLogger(__name__)


class Database:
    """
    Single SQLite connection shared by TaskStore and StateStore.

    Lifecycle:
    - open once at startup (Database.open / constructor)
    - close once at shutdown (close)

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - one connection, statements serialized by a lock
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = sqlite3.connect(
            str(self._db_path),
            timeout=30.0,
            check_same_thread=False,
        )
        self._conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._ensure_schema()
        logger.info("Database ready db=%s", self._db_path)

    @classmethod
    def open(cls, db_path: str | Path) -> Database:
        return cls(db_path)

    @property
    def path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            try:
                self._conn.close()
            finally:
                self._conn = None
        logger.info("Database closed db=%s", self._db_path)

    @contextlib.contextmanager
    def cursor(self) -> Iterator[sqlite3.Cursor]:
        """
        Yield a cursor inside a transaction.

        Commits on success, rolls back on error. Each caller issues exactly
        one state-changing statement per block.
        """
        with self._lock:
            if self._conn is None:
                raise RuntimeError("Database is closed")
            cur = self._conn.cursor()
            try:
                yield cur
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
            finally:
                cur.close()

    def _ensure_schema(self) -> None:
        with self.cursor() as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    channel TEXT NOT NULL,
                    message_id TEXT NOT NULL,
                    author TEXT NOT NULL,
                    status TEXT NOT NULL,
                    created_at REAL NOT NULL,
                    state_changed_at REAL,
                    state_changed_by TEXT,
                    completed_at REAL,
                    completed_by TEXT,
                    UNIQUE(channel, message_id)
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_states (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    emoji TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    color TEXT NOT NULL DEFAULT '',
                    order_num INTEGER NOT NULL,
                    is_terminal INTEGER NOT NULL DEFAULT 0,
                    allowed_transitions TEXT NOT NULL DEFAULT ''
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("Database migration: added tasks.%s", name)

            add_col("preview", "TEXT NOT NULL DEFAULT ''")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_channel ON tasks(channel)")
