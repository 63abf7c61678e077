# src/tasktrack/tasks/task_store.py

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable

from .db import Database
from .task_models import Task

logger = logging.getLogger(__name__)


class DuplicateTaskError(Exception):
    """A task already exists for this (channel, message_id)."""

    def __init__(self, channel: str, message_id: str) -> None:
        super().__init__(f"task already exists channel={channel} message={message_id}")
        self.channel = channel
        self.message_id = message_id


class TaskNotFoundError(Exception):
    """No task exists for this (channel, message_id)."""

    def __init__(self, channel: str, message_id: str) -> None:
        super().__init__(f"task not found channel={channel} message={message_id}")
        self.channel = channel
        self.message_id = message_id


class TaskStore:
    """
    SQLite task store keyed by (channel, message_id).

    Every mutation is a single statement. There is no read-then-write
    transaction; concurrent handlers may both read the same prior state.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", db.path, total)

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            channel=str(row["channel"]),
            message_id=str(row["message_id"]),
            author=str(row["author"]),
            status=str(row["status"]),
            created_at=float(row["created_at"] or 0.0),
            state_changed_at=(
                float(row["state_changed_at"]) if row["state_changed_at"] is not None else None
            ),
            state_changed_by=row["state_changed_by"],
            completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
            completed_by=row["completed_by"],
            preview=str(row["preview"] or ""),
        )

    # ---- public API ----

    def count_tasks(self) -> int:
        with self._db.cursor() as cur:
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)

    def find(self, channel: str, message_id: str) -> Task | None:
        with self._db.cursor() as cur:
            cur.execute(
                "SELECT * FROM tasks WHERE channel = ? AND message_id = ?",
                (channel, message_id),
            )
            row = cur.fetchone()
            return self._row_to_task(row) if row else None

    def create(
        self,
        *,
        channel: str,
        message_id: str,
        author: str,
        status: str,
        created_at: float,
        changed_by: str | None = None,
        preview: str = "",
    ) -> Task:
        """
        Insert a new task. created_at doubles as the first state_changed_at.

        Raises DuplicateTaskError when the key is already tracked; callers
        are expected to find() first and treat a lost race as benign.
        """
        if not channel or not message_id:
            raise ValueError("channel and message_id are required")
        if not author:
            raise ValueError("author is required")

        changed_by = changed_by or author
        try:
            with self._db.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO tasks(
                        channel, message_id, author, status,
                        created_at, state_changed_at, state_changed_by, preview
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        channel,
                        message_id,
                        author,
                        status,
                        float(created_at),
                        float(created_at),
                        changed_by,
                        preview,
                    ),
                )
                rowid = cur.lastrowid
        except sqlite3.IntegrityError as e:
            raise DuplicateTaskError(channel, message_id) from e

        if rowid is None:
            raise RuntimeError("SQLite did not return lastrowid for tasks insert")

        logger.debug(
            "Task created id=%s channel=%s message=%s status=%s",
            rowid,
            channel,
            message_id,
            status,
        )
        return Task(
            id=int(rowid),
            channel=channel,
            message_id=message_id,
            author=author,
            status=status,
            created_at=float(created_at),
            state_changed_at=float(created_at),
            state_changed_by=changed_by,
            preview=preview,
        )

    def update_status(
        self,
        channel: str,
        message_id: str,
        *,
        status: str,
        actor: str,
        changed_at: float,
        terminal: bool,
    ) -> None:
        """
        Move a task to `status`.

        Entering a terminal state stamps completed_at/completed_by in the same
        statement. Non-terminal moves leave the completion fields untouched,
        including when a finished task is reverted.
        """
        with self._db.cursor() as cur:
            cur.execute(
                """
                UPDATE tasks
                SET status = ?,
                    state_changed_at = ?,
                    state_changed_by = ?,
                    completed_at = CASE WHEN ? = 1 THEN ? ELSE completed_at END,
                    completed_by = CASE WHEN ? = 1 THEN ? ELSE completed_by END
                WHERE channel = ? AND message_id = ?
                """,
                (
                    status,
                    float(changed_at),
                    actor,
                    int(terminal),
                    float(changed_at),
                    int(terminal),
                    actor,
                    channel,
                    message_id,
                ),
            )
            if cur.rowcount == 0:
                raise TaskNotFoundError(channel, message_id)

        logger.debug(
            "Task status channel=%s message=%s -> %s by %s",
            channel,
            message_id,
            status,
            actor,
        )

    def delete(self, channel: str, message_id: str) -> None:
        with self._db.cursor() as cur:
            cur.execute(
                "DELETE FROM tasks WHERE channel = ? AND message_id = ?",
                (channel, message_id),
            )
            if cur.rowcount == 0:
                raise TaskNotFoundError(channel, message_id)
        logger.debug("Task deleted channel=%s message=%s", channel, message_id)

    def list_by_status(self, statuses: Iterable[str]) -> list[Task]:
        wanted = [s for s in statuses if s]
        if not wanted:
            return []

        placeholders = ",".join("?" for _ in wanted)
        with self._db.cursor() as cur:
            cur.execute(
                f"""
                SELECT *
                FROM tasks
                WHERE status IN ({placeholders})
                ORDER BY created_at ASC
                """,
                wanted,
            )
            return [self._row_to_task(r) for r in cur.fetchall()]

    def list_channel(self, channel: str) -> list[Task]:
        with self._db.cursor() as cur:
            cur.execute(
                "SELECT * FROM tasks WHERE channel = ? ORDER BY created_at ASC",
                (channel,),
            )
            return [self._row_to_task(r) for r in cur.fetchall()]
