# tests/test_task_models.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from smartdesk.core.errors import ValidationError
from smartdesk.tasks.task_models import Task, TaskPriority, TaskStatus, TaskType, task_sort_key

from .conftest import NOW


def test_defaults() -> None:
    t = Task(title="Write report")
    assert t.id is None
    assert t.priority == TaskPriority.NORMAL
    assert t.kind == TaskType.TODO
    assert t.status == TaskStatus.PLANNED
    assert t.reminder_enabled is False
    assert t.reminder_lead_minutes == 15


@pytest.mark.parametrize("title", [None, "", "   ", "\t\n"])
def test_blank_title_rejected(title) -> None:
    with pytest.raises(ValidationError):
        Task(title=title)


def test_due_before_start_rejected() -> None:
    with pytest.raises(ValidationError):
        Task(title="x", start_at=NOW, due_at=NOW - timedelta(minutes=1))

    # Equal start and due is fine.
    assert Task(title="x", start_at=NOW, due_at=NOW).due_at == NOW


def test_negative_lead_rejected_at_construction() -> None:
    with pytest.raises(ValidationError):
        Task(title="x", reminder_lead_minutes=-1)


def test_evolve_keeps_builder_semantics() -> None:
    t = Task(title="x", priority=TaskPriority.HIGH, reminder_lead_minutes=30)

    t2 = t.evolve(priority=None, kind=None, status=None, reminder_lead_minutes=-5)
    assert t2.priority == TaskPriority.HIGH
    assert t2.kind == TaskType.TODO
    assert t2.status == TaskStatus.PLANNED
    assert t2.reminder_lead_minutes == 30

    t3 = t.evolve(reminder_lead_minutes=0, title="y")
    assert t3.reminder_lead_minutes == 0
    assert t3.title == "y"
    # The original is untouched.
    assert t.title == "x"


@pytest.mark.parametrize("field", ["start_at", "due_at", "last_reminded_at", "created_at", "updated_at"])
def test_timezone_aware_timestamps_rejected(field: str) -> None:
    aware = datetime(2026, 10, 17, 12, 5, tzinfo=timezone.utc)
    with pytest.raises(ValidationError):
        Task(title="x", **{field: aware})
    with pytest.raises(ValidationError):
        Task(title="x").evolve(**{field: aware})


def test_none_enum_fields_fall_back_to_defaults() -> None:
    t = Task(title="x", priority=None, kind=None, status=None)  # type: ignore[arg-type]
    assert t.priority == TaskPriority.NORMAL
    assert t.kind == TaskType.TODO
    assert t.status == TaskStatus.PLANNED
    assert task_sort_key(t) == (True, datetime.min, -2)


def test_evolve_revalidates() -> None:
    t = Task(title="x", start_at=NOW)
    with pytest.raises(ValidationError):
        t.evolve(due_at=NOW - timedelta(hours=1))
    with pytest.raises(ValidationError):
        t.evolve(title=" ")


def test_priority_levels() -> None:
    assert [p.level for p in TaskPriority] == [1, 2, 3, 4, 5]
    assert TaskPriority.from_level(4) == TaskPriority.URGENT
    assert TaskPriority.from_level(42) == TaskPriority.NORMAL
    assert TaskPriority.from_level(None) == TaskPriority.NORMAL
    assert TaskPriority.parse("critical") == TaskPriority.CRITICAL
    assert TaskPriority.parse("3") == TaskPriority.HIGH
    with pytest.raises(ValidationError):
        TaskPriority.parse("whenever")


def test_enum_decoding_falls_back_to_defaults() -> None:
    assert TaskType.from_db("course") == TaskType.COURSE
    assert TaskType.from_db("unknown") == TaskType.TODO
    assert TaskType.from_db(None) == TaskType.TODO
    assert TaskStatus.from_db("IN_PROGRESS") == TaskStatus.IN_PROGRESS
    assert TaskStatus.from_db("") == TaskStatus.PLANNED


def test_reminder_window() -> None:
    t = Task(title="A", due_at=NOW + timedelta(minutes=10), reminder_enabled=True)
    assert t.reminder_window_start == NOW - timedelta(minutes=5)
    assert t.is_reminder_due(NOW)
    assert not t.is_reminder_due(NOW - timedelta(minutes=6))

    served = t.evolve(last_reminded_at=NOW)
    assert not served.is_reminder_due(NOW + timedelta(minutes=1))

    # A reminder from an earlier window does not block the current one.
    stale = t.evolve(last_reminded_at=NOW - timedelta(days=1))
    assert stale.is_reminder_due(NOW)


def test_reminder_not_due_when_disabled_closed_or_undated() -> None:
    base = Task(title="A", due_at=NOW, reminder_enabled=True)
    assert not base.evolve(reminder_enabled=False).is_reminder_due(NOW)
    assert not base.evolve(status=TaskStatus.COMPLETED).is_reminder_due(NOW)
    assert not base.evolve(status=TaskStatus.CANCELLED).is_reminder_due(NOW)
    assert not Task(title="B", reminder_enabled=True).is_reminder_due(NOW)
    assert Task(title="B", reminder_enabled=True).reminder_window_start is None


def test_sort_key_orders_by_due_then_priority() -> None:
    undated_critical = Task(title="u", priority=TaskPriority.CRITICAL)
    late_low = Task(title="late", due_at=NOW + timedelta(days=2), priority=TaskPriority.LOW)
    early_low = Task(title="early-low", due_at=NOW, priority=TaskPriority.LOW)
    early_high = Task(title="early-high", due_at=NOW, priority=TaskPriority.HIGH)

    ordered = sorted([undated_critical, late_low, early_low, early_high], key=task_sort_key)
    assert [t.title for t in ordered] == ["early-high", "early-low", "late", "u"]


def test_sort_key_handles_far_past_dates() -> None:
    ancient = Task(title="ancient", due_at=datetime(1, 1, 1))
    undated = Task(title="undated")
    assert sorted([undated, ancient], key=task_sort_key)[0] is ancient
