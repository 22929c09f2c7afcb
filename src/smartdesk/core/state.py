# src/smartdesk/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..tasks.reminder_scheduler import ReminderScheduler
from ..tasks.task_service import TaskService
from ..tasks.task_store import TaskStore
from .ports import Clock


@dataclass
class AppState:
    # Settings object (config.Settings in the app, a SimpleNamespace in tests).
    settings: object

    clock: Clock
    task_store: TaskStore
    tasks: TaskService
    reminders: ReminderScheduler

    @property
    def upcoming_days(self) -> int:
        return int(getattr(self.settings, "dashboard_upcoming_days", 7))
