# src/smartdesk/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.errors import PersistenceError
from .task_models import Task, TaskPriority, TaskStatus, TaskType

logger = logging.getLogger(__name__)

_COLUMNS = (
    "title, description, start_at, due_at, priority, type, "
    "reminder_enabled, reminder_lead_minutes, status, last_reminded_at, "
    "created_at, updated_at"
)


def format_ts(value: datetime | None) -> str | None:
    return None if value is None else value.isoformat()


def parse_ts(raw: str | None) -> datetime | None:
    if not raw:
        return None
    return datetime.fromisoformat(raw)


class TaskStore:
    """
    SQLite task store.

    The schema is simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Timestamps are stored as ISO-8601 text so they round-trip through
    datetime.fromisoformat without loss.

    Thread-safety:
    - each method opens its own SQLite connection, so the reminder scheduler thread
      and the console thread never share one
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except PersistenceError:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    @contextlib.contextmanager
    def _connect(self, action: str) -> Iterator[sqlite3.Connection]:
        """Open a short-lived connection; sqlite errors surface as PersistenceError."""
        try:
            conn = self._get_conn()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to open task database for {action}") from exc
        try:
            yield conn
        except sqlite3.Error as exc:
            logger.error("TaskStore %s failed: %s", action, exc)
            raise PersistenceError(f"Failed to {action}") from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connect("create schema") as conn:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    description TEXT,
                    start_at TEXT,
                    due_at TEXT,
                    priority INTEGER NOT NULL,
                    type TEXT NOT NULL,
                    reminder_enabled INTEGER NOT NULL,
                    reminder_lead_minutes INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    last_reminded_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
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
                logger.info("TaskStore migration: added column %s", name)

            add_col("description", "TEXT")
            add_col("start_at", "TEXT")
            add_col("due_at", "TEXT")
            add_col("priority", "INTEGER NOT NULL DEFAULT 2")
            add_col("type", "TEXT NOT NULL DEFAULT 'TODO'")
            add_col("reminder_enabled", "INTEGER NOT NULL DEFAULT 0")
            add_col("reminder_lead_minutes", "INTEGER NOT NULL DEFAULT 15")
            add_col("status", "TEXT NOT NULL DEFAULT 'PLANNED'")
            add_col("last_reminded_at", "TEXT")
            add_col("created_at", "TEXT NOT NULL DEFAULT ''")
            add_col("updated_at", "TEXT NOT NULL DEFAULT ''")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_reminder "
                "ON tasks(reminder_enabled, status, due_at)"
            )
            conn.commit()

    @staticmethod
    def _task_params(task: Task) -> tuple[Any, ...]:
        return (
            task.title,
            task.description,
            format_ts(task.start_at),
            format_ts(task.due_at),
            task.priority.level,
            task.kind.value,
            1 if task.reminder_enabled else 0,
            int(task.reminder_lead_minutes),
            task.status.value,
            format_ts(task.last_reminded_at),
            format_ts(task.created_at) or "",
            format_ts(task.updated_at) or "",
        )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            title=str(row["title"]),
            description=row["description"],
            start_at=parse_ts(row["start_at"]),
            due_at=parse_ts(row["due_at"]),
            priority=TaskPriority.from_level(row["priority"]),
            kind=TaskType.from_db(row["type"]),
            reminder_enabled=bool(row["reminder_enabled"]),
            reminder_lead_minutes=max(0, int(row["reminder_lead_minutes"] or 0)),
            status=TaskStatus.from_db(row["status"]),
            last_reminded_at=parse_ts(row["last_reminded_at"]),
            created_at=parse_ts(row["created_at"]),
            updated_at=parse_ts(row["updated_at"]),
        )

    def _decode_rows(self, rows: list[sqlite3.Row]) -> list[Task]:
        """Decode rows, skipping (and logging) any row that no longer forms a valid Task."""
        tasks: list[Task] = []
        for row in rows:
            try:
                tasks.append(self._row_to_task(row))
            except (ValueError, TypeError) as exc:
                logger.warning("TaskStore skipped undecodable row id=%s: %s", row["id"], exc)
        return tasks

    # ---- public API ----

    def count_tasks(self) -> int:
        with self._connect("count tasks") as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def insert(self, task: Task) -> int:
        with self._connect("insert task") as conn:
            cur = conn.execute(
                f"INSERT INTO tasks ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                self._task_params(task),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise PersistenceError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
            logger.debug(
                "Task added id=%s kind=%s status=%s due_at=%s",
                task_id,
                task.kind.value,
                task.status.value,
                task.due_at,
            )
            return task_id

    def find_by_id(self, task_id: int) -> Task | None:
        with self._connect("fetch task by id") as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
        if row is None:
            return None
        try:
            return self._row_to_task(row)
        except (ValueError, TypeError) as exc:
            raise PersistenceError(f"Stored task id={task_id} cannot be decoded: {exc}") from exc

    def find_all(self) -> list[Task]:
        with self._connect("fetch tasks") as conn:
            rows = conn.execute("SELECT * FROM tasks ORDER BY id ASC").fetchall()
        return self._decode_rows(rows)

    def find_due_reminders(self) -> list[Task]:
        """
        Reminder candidates: reminder enabled, a due date set, status still open.

        The window test itself (due - lead, last reminded) is applied by the caller.
        """
        with self._connect("fetch reminders") as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE reminder_enabled = 1
                  AND due_at IS NOT NULL
                  AND status NOT IN ('COMPLETED', 'CANCELLED')
                ORDER BY due_at ASC, id ASC
                """
            ).fetchall()
        return self._decode_rows(rows)

    def update(self, task: Task) -> int:
        if task.id is None:
            raise PersistenceError("Cannot update a task without id")
        with self._connect("update task") as conn:
            cur = conn.execute(
                """
                UPDATE tasks
                SET title = ?, description = ?, start_at = ?, due_at = ?,
                    priority = ?, type = ?, reminder_enabled = ?, reminder_lead_minutes = ?,
                    status = ?, last_reminded_at = ?, created_at = ?, updated_at = ?
                WHERE id = ?
                """,
                (*self._task_params(task), int(task.id)),
            )
            conn.commit()
            return cur.rowcount

    def mark_reminded(self, task_id: int, reminded_at: datetime, updated_at: datetime) -> int:
        """Write only the reminder acknowledgement columns; other fields stay as they are."""
        with self._connect("mark reminder triggered") as conn:
            cur = conn.execute(
                "UPDATE tasks SET last_reminded_at = ?, updated_at = ? WHERE id = ?",
                (format_ts(reminded_at), format_ts(updated_at), int(task_id)),
            )
            conn.commit()
            return cur.rowcount

    def delete(self, task_id: int) -> int:
        with self._connect("delete task") as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
            return cur.rowcount
