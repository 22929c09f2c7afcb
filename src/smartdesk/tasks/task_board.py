# src/smartdesk/tasks/task_board.py

"""
Dashboard projection.

Tasks are bucketed into lanes (Overdue / Today / Upcoming / Someday / Course /
Anniversary / Completed). Classification is a pure function of
(task, reference_date, upcoming_days); nothing here is cached or persisted.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from types import MappingProxyType

from ..core.errors import ValidationError
from .task_models import Task, TaskStatus, TaskType, task_sort_key


class TaskLane(Enum):
    """Dashboard columns, in display order. Values carry static presentation metadata."""

    TODAY = ("Today", "Tasks due today or starting soon", "#ff7a45", "calendar-today")
    UPCOMING = ("Upcoming", "Tasks that need attention in the next few days", "#40a9ff", "calendar")
    SOMEDAY = ("Someday", "Ideas and long-term goals without a concrete date", "#595959", "inbox")
    COURSE = ("Course", "Course and study plan tasks", "#73d13d", "book")
    ANNIVERSARY = ("Anniversary", "Birthdays, anniversaries and other special days", "#9254de", "gift")
    OVERDUE = ("Overdue", "Past their deadline and still open", "#f5222d", "alert")
    COMPLETED = ("Completed", "Archive of finished tasks", "#52c41a", "check-circle")

    def __init__(self, label: str, description: str, accent: str, icon: str) -> None:
        self.label = label
        self.description = description
        self.accent = accent
        self.icon = icon


def classify_task(task: Task, reference_date: date, upcoming_days: int) -> TaskLane | None:
    """
    Return the lane for `task`, or None for cancelled tasks.

    Precedence (first match wins): cancelled, completed, course, anniversary,
    undated, overdue, today, upcoming, someday. A completed course task is therefore
    COMPLETED, never COURSE.
    """
    if task.status == TaskStatus.CANCELLED:
        return None
    if task.status == TaskStatus.COMPLETED:
        return TaskLane.COMPLETED
    if task.kind == TaskType.COURSE:
        return TaskLane.COURSE
    if task.kind == TaskType.ANNIVERSARY:
        return TaskLane.ANNIVERSARY

    due = task.due_at
    if due is None:
        return TaskLane.SOMEDAY

    # time.max (23:59:59.999999) is the last representable instant of the day.
    today_start = datetime.combine(reference_date, time.min)
    today_end = datetime.combine(reference_date, time.max)
    upcoming_limit = datetime.combine(reference_date + timedelta(days=upcoming_days), time.max)

    if due < today_start:
        return TaskLane.OVERDUE
    if due <= today_end:
        return TaskLane.TODAY
    if due <= upcoming_limit:
        return TaskLane.UPCOMING
    return TaskLane.SOMEDAY


@dataclass(frozen=True, slots=True)
class TaskBoardColumn:
    """One board column: a lane, its tasks, and display metadata."""

    lane: TaskLane
    tasks: tuple[Task, ...] = ()
    title: str | None = None
    description: str | None = None
    accent_color: str | None = None
    icon: str | None = None

    def __post_init__(self) -> None:
        # Missing metadata falls back to the lane definition.
        object.__setattr__(self, "tasks", tuple(self.tasks or ()))
        if self.title is None:
            object.__setattr__(self, "title", self.lane.label)
        if self.description is None:
            object.__setattr__(self, "description", "")
        if self.accent_color is None:
            object.__setattr__(self, "accent_color", self.lane.accent)
        if self.icon is None:
            object.__setattr__(self, "icon", self.lane.icon)

    @classmethod
    def from_lane(cls, lane: TaskLane, tasks: Iterable[Task]) -> TaskBoardColumn:
        return cls(
            lane=lane,
            tasks=tuple(tasks),
            title=lane.label,
            description=lane.description,
            accent_color=lane.accent,
            icon=lane.icon,
        )

    @property
    def total_count(self) -> int:
        return len(self.tasks)

    @property
    def completed_count(self) -> int:
        return sum(1 for t in self.tasks if t.status == TaskStatus.COMPLETED)

    @property
    def active_count(self) -> int:
        return sum(1 for t in self.tasks if not t.status.is_closed)

    @property
    def completion_ratio(self) -> float:
        """Completed / total in [0.0, 1.0]; 0.0 for an empty column."""
        total = self.total_count
        return 0.0 if total == 0 else self.completed_count / total


@dataclass(frozen=True, slots=True)
class TaskDashboardSnapshot:
    """Every lane mapped to its sorted tasks for one (reference_date, upcoming_days) run."""

    reference_date: date
    lanes: Mapping[TaskLane, tuple[Task, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        full = {lane: tuple(self.lanes.get(lane, ())) for lane in TaskLane}
        object.__setattr__(self, "lanes", MappingProxyType(full))

    def tasks(self, lane: TaskLane) -> tuple[Task, ...]:
        return self.lanes[lane]

    def total_count(self) -> int:
        return sum(len(v) for v in self.lanes.values())

    def to_board_columns(self) -> list[TaskBoardColumn]:
        return [TaskBoardColumn.from_lane(lane, self.lanes[lane]) for lane in TaskLane]

    def to_board_column(self, lane: TaskLane) -> TaskBoardColumn:
        return TaskBoardColumn.from_lane(lane, self.lanes[lane])


def build_snapshot(
    tasks: Iterable[Task],
    reference_date: date,
    upcoming_days: int,
) -> TaskDashboardSnapshot:
    """Classify `tasks` into lanes and sort each lane canonically."""
    if upcoming_days < 0:
        raise ValidationError("upcoming_days must not be negative")

    buckets: dict[TaskLane, list[Task]] = {lane: [] for lane in TaskLane}
    for task in tasks:
        lane = classify_task(task, reference_date, upcoming_days)
        if lane is not None:
            buckets[lane].append(task)

    return TaskDashboardSnapshot(
        reference_date=reference_date,
        lanes={lane: tuple(sorted(items, key=task_sort_key)) for lane, items in buckets.items()},
    )
