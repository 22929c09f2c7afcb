# src/smartdesk/tasks/task_models.py

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import IntEnum, StrEnum
from typing import Any

from ..core.errors import ValidationError

DEFAULT_REMINDER_LEAD_MINUTES = 15


class TaskPriority(IntEnum):
    """Ordinal priority; the integer level is what gets persisted."""

    LOW = 1
    NORMAL = 2
    HIGH = 3
    URGENT = 4
    CRITICAL = 5

    @property
    def level(self) -> int:
        return int(self)

    @classmethod
    def from_level(cls, level: int | None) -> TaskPriority:
        """Levels outside 1..5 resolve to NORMAL."""
        try:
            return cls(int(level))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return cls.NORMAL

    @classmethod
    def parse(cls, raw: str) -> TaskPriority:
        """Accept either a name ("high") or a level ("3")."""
        raw = (raw or "").strip()
        if raw.isdigit():
            return cls.from_level(int(raw))
        try:
            return cls[raw.upper()]
        except KeyError:
            raise ValidationError(f"unknown priority: {raw!r}") from None


class TaskType(StrEnum):
    TODO = "TODO"
    COURSE = "COURSE"
    ANNIVERSARY = "ANNIVERSARY"
    EVENT = "EVENT"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskType:
        if not raw:
            return cls.TODO
        try:
            return cls(raw.upper())
        except ValueError:
            return cls.TODO


class TaskStatus(StrEnum):
    """Task lifecycle status."""

    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PLANNED
        try:
            return cls(raw.upper())
        except ValueError:
            return cls.PLANNED

    @property
    def is_closed(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


_ENUM_DEFAULTS = (
    ("priority", TaskPriority.NORMAL),
    ("kind", TaskType.TODO),
    ("status", TaskStatus.PLANNED),
)
_TIMESTAMP_FIELDS = ("start_at", "due_at", "last_reminded_at", "created_at", "updated_at")


@dataclass(frozen=True, slots=True)
class Task:
    """
    Immutable task value.

    Invariants are checked once, at construction:
    - title is a non-blank string
    - every timestamp is a naive local datetime
    - due_at does not precede start_at (when both are set)
    - reminder_lead_minutes >= 0

    priority/kind/status given as None fall back to their defaults.

    Use evolve() to derive a modified copy; the original is never touched, so a task
    held by the scheduler cannot be changed underneath it by the service.
    """

    title: str
    description: str | None = None
    start_at: datetime | None = None
    due_at: datetime | None = None
    priority: TaskPriority = TaskPriority.NORMAL
    kind: TaskType = TaskType.TODO
    status: TaskStatus = TaskStatus.PLANNED
    reminder_enabled: bool = False
    reminder_lead_minutes: int = DEFAULT_REMINDER_LEAD_MINUTES
    last_reminded_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: int | None = None

    def __post_init__(self) -> None:
        if self.title is None or not isinstance(self.title, str):
            raise ValidationError("Task title must not be null")
        if not self.title.strip():
            raise ValidationError("Task title must not be blank")
        for name, default in _ENUM_DEFAULTS:
            if getattr(self, name) is None:
                object.__setattr__(self, name, default)
        for name in _TIMESTAMP_FIELDS:
            value = getattr(self, name)
            if value is not None and value.tzinfo is not None:
                raise ValidationError(f"Task {name} must be a naive local datetime, got {value.isoformat()}")
        if self.start_at is not None and self.due_at is not None and self.due_at < self.start_at:
            raise ValidationError("Due date must be after start date")
        if self.reminder_lead_minutes < 0:
            raise ValidationError("reminder_lead_minutes must not be negative")

    def evolve(self, **changes: Any) -> Task:
        """
        Return a validated copy with `changes` applied.

        Builder semantics: priority/kind/status passed as None keep the current value,
        and a negative reminder_lead_minutes is ignored.
        """
        for name in ("priority", "kind", "status"):
            if name in changes and changes[name] is None:
                del changes[name]
        lead = changes.get("reminder_lead_minutes")
        if lead is not None and lead < 0:
            del changes["reminder_lead_minutes"]
        return dataclasses.replace(self, **changes)

    @property
    def reminder_window_start(self) -> datetime | None:
        """Instant at which the reminder window opens (due minus lead)."""
        if self.due_at is None:
            return None
        return self.due_at - timedelta(minutes=self.reminder_lead_minutes)

    def is_reminder_due(self, reference_time: datetime) -> bool:
        """
        True if a reminder should fire at reference_time.

        The window opens at due_at - lead and fires at most once: a last_reminded_at at or
        after the window start means this window was already served. Moving the due date
        produces a new window start and re-arms the reminder.
        """
        if not self.reminder_enabled or self.status.is_closed:
            return False
        window_start = self.reminder_window_start
        if window_start is None or reference_time < window_start:
            return False
        return self.last_reminded_at is None or self.last_reminded_at < window_start


def task_sort_key(task: Task) -> tuple[bool, datetime, int]:
    """Canonical order: due date ascending (undated last), then priority descending."""
    due = task.due_at
    return (due is None, due or datetime.min, -task.priority.level)
