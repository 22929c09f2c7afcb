# src/smartdesk/tasks/task_service.py

"""
Task service.

The façade of the task subsystem:
- CRUD against the injected TaskRepo, keeping created_at/updated_at current,
- lifecycle transitions (start, complete, snooze),
- filtering and the dashboard lane projection,
- the reminder query port consumed by ReminderScheduler.

"Now" always comes from the injected clock.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from ..core.clock import SystemClock
from ..core.errors import PersistenceError, ValidationError
from ..core.ports import Clock, TaskRepo
from .task_board import TaskBoardColumn, TaskDashboardSnapshot, TaskLane, build_snapshot
from .task_models import Task, TaskPriority, TaskStatus, TaskType, task_sort_key

logger = logging.getLogger(__name__)

DEFAULT_UPCOMING_DAYS = 7


class TaskService:
    def __init__(self, repo: TaskRepo, *, clock: Clock | None = None) -> None:
        self._repo = repo
        self._clock: Clock = clock or SystemClock()

    @property
    def clock(self) -> Clock:
        return self._clock

    # ---- CRUD ----

    def create_task(self, task: Task) -> Task:
        """Persist a new task; status defaults to PLANNED and both timestamps are stamped."""
        now = self._clock.now()
        to_persist = task.evolve(
            id=None,
            status=task.status or TaskStatus.PLANNED,
            created_at=task.created_at or now,
            updated_at=now,
        )
        task_id = self._repo.insert(to_persist)
        created = to_persist.evolve(id=task_id)
        logger.info("Task created id=%s title=%r due_at=%s", task_id, created.title, created.due_at)
        return created

    def find_task(self, task_id: int) -> Task | None:
        try:
            return self._repo.find_by_id(task_id)
        except PersistenceError:
            logger.exception("find_task failed task_id=%s", task_id)
            return None

    def update_task(self, task: Task) -> Task:
        if task.id is None:
            raise ValidationError("Task id must be present for updates")
        to_persist = task.evolve(updated_at=self._clock.now())
        affected = self._repo.update(to_persist)
        logger.debug("Task updated id=%s affected=%s status=%s", task.id, affected, to_persist.status.value)
        return to_persist

    def delete_task(self, task_id: int) -> bool:
        deleted = self._repo.delete(task_id) > 0
        logger.info("Task delete id=%s deleted=%s", task_id, deleted)
        return deleted

    # ---- lifecycle ----

    def mark_task_completed(self, task_id: int) -> Task | None:
        """Close the task and disarm its reminder in one write."""
        existing = self.find_task(task_id)
        if existing is None:
            return None
        return self.update_task(
            existing.evolve(
                status=TaskStatus.COMPLETED,
                reminder_enabled=False,
                last_reminded_at=self._clock.now(),
            )
        )

    def start_task(self, task_id: int) -> Task | None:
        existing = self.find_task(task_id)
        if existing is None:
            return None
        return self.update_task(existing.evolve(status=TaskStatus.IN_PROGRESS))

    def snooze_task(self, task_id: int, duration: timedelta) -> Task | None:
        """
        Push the deadline forward by `duration`.

        Undated tasks become due at now + duration. The status always goes back to
        PLANNED (an in-progress task is "un-started"); the reminder lead is untouched,
        so the shifted due date opens a fresh reminder window.
        """
        if duration is None or duration <= timedelta(0):
            raise ValidationError("Duration must be positive")
        existing = self.find_task(task_id)
        if existing is None:
            return None
        base = existing.due_at or self._clock.now()
        return self.update_task(existing.evolve(due_at=base + duration, status=TaskStatus.PLANNED))

    def set_reminder(self, task_id: int, enabled: bool, lead_minutes: int | None = None) -> Task | None:
        existing = self.find_task(task_id)
        if existing is None:
            return None
        changes: dict[str, object] = {"reminder_enabled": bool(enabled)}
        if lead_minutes is not None:
            changes["reminder_lead_minutes"] = int(lead_minutes)
        return self.update_task(existing.evolve(**changes))

    # ---- queries ----

    def list_all_tasks(self) -> list[Task]:
        """All tasks in canonical order; an unreadable store yields an empty list."""
        try:
            tasks = self._repo.find_all()
        except PersistenceError:
            logger.exception("list_all_tasks failed")
            return []
        return sorted(tasks, key=task_sort_key)

    def filter_tasks(
        self,
        *,
        kind: TaskType | None = None,
        status: TaskStatus | None = None,
        minimum_priority: TaskPriority | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[Task]:
        out: list[Task] = []
        for task in self.list_all_tasks():
            if kind is not None and task.kind != kind:
                continue
            if status is not None and task.status != status:
                continue
            if minimum_priority is not None and task.priority.level < minimum_priority.level:
                continue
            if date_from is not None or date_to is not None:
                if task.due_at is None:
                    continue
                due_day = task.due_at.date()
                if date_from is not None and due_day < date_from:
                    continue
                if date_to is not None and due_day > date_to:
                    continue
            out.append(task)
        return out

    # ---- dashboard ----

    def build_dashboard(
        self,
        reference_date: date,
        upcoming_days: int = DEFAULT_UPCOMING_DAYS,
    ) -> TaskDashboardSnapshot:
        if upcoming_days < 0:
            raise ValidationError("upcoming_days must not be negative")
        return build_snapshot(self.list_all_tasks(), reference_date, upcoming_days)

    def build_board(
        self,
        reference_date: date,
        upcoming_days: int = DEFAULT_UPCOMING_DAYS,
    ) -> list[TaskBoardColumn]:
        return self.build_dashboard(reference_date, upcoming_days).to_board_columns()

    def build_board_lane(
        self,
        lane: TaskLane,
        reference_date: date,
        upcoming_days: int = DEFAULT_UPCOMING_DAYS,
    ) -> TaskBoardColumn:
        return self.build_dashboard(reference_date, upcoming_days).to_board_column(lane)

    # ---- reminder query port ----

    def fetch_tasks_requiring_reminder(self, reference_time: datetime) -> list[Task]:
        try:
            candidates = self._repo.find_due_reminders()
        except PersistenceError:
            logger.exception("fetch_tasks_requiring_reminder failed")
            return []
        return [t for t in candidates if t.is_reminder_due(reference_time)]

    def mark_reminder_triggered(self, task: Task, reminder_time: datetime) -> None:
        """Record the firing; reminder flag and status are left alone."""
        if task.id is None:
            return
        self._repo.mark_reminded(task.id, reminder_time, self._clock.now())
        logger.debug("Reminder marked task_id=%s at=%s", task.id, reminder_time)
