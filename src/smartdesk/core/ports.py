# src/smartdesk/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the task engine.

The service and the scheduler depend on Protocols instead of concrete implementations.
This keeps the storage swappable and lets the scheduler run against an in-memory fake.
"""

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..tasks.task_models import Task


class Clock(Protocol):
    """Source of "now". Injected so reminder windows can be tested without waiting."""
    def now(self) -> datetime: ...


class TaskRepo(Protocol):
    # CRUD
    def insert(self, task: Task) -> int: ...
    def find_by_id(self, task_id: int) -> Task | None: ...
    def find_all(self) -> list[Task]: ...
    def update(self, task: Task) -> int: ...
    def delete(self, task_id: int) -> int: ...
    def count_tasks(self) -> int: ...

    # Reminder API
    def find_due_reminders(self) -> list[Task]: ...
    def mark_reminded(self, task_id: int, reminded_at: datetime, updated_at: datetime) -> int: ...


class ReminderQueryPort(Protocol):
    """
    The two operations the reminder scheduler needs.

    Implemented by TaskService; tests substitute an in-memory fake.
    """

    def fetch_tasks_requiring_reminder(self, reference_time: datetime) -> list[Task]: ...
    def mark_reminder_triggered(self, task: Task, reminder_time: datetime) -> None: ...


ReminderListener = Callable[["Task", timedelta], None]
# Called with (task, time remaining until due); the remaining time is never negative.
