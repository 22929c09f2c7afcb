# src/smartdesk/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite store, the task service and the reminder scheduler into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.clock import SystemClock
from ..core.ports import Clock
from ..core.state import AppState
from ..tasks.reminder_scheduler import ReminderScheduler
from ..tasks.task_service import TaskService
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, clock: Clock | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the clock) injectable makes the app easier to test and avoids
    hidden global config reads. If settings is None, falls back to get_settings().
    The scheduler is created stopped; the caller decides when to start it.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    clock = clock or SystemClock()
    store = TaskStore(settings.tasks_db_path)
    service = TaskService(store, clock=clock)
    scheduler = ReminderScheduler(service, clock=clock)

    logger.debug("AppState wired db=%s", settings.tasks_db_path)
    return AppState(
        settings=settings,
        clock=clock,
        task_store=store,
        tasks=service,
        reminders=scheduler,
    )
