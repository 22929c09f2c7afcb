# tests/test_reminder_scheduler.py

from __future__ import annotations

import asyncio
import threading
import time
from datetime import timedelta

import pytest

from smartdesk.core.errors import ValidationError
from smartdesk.tasks.reminder_scheduler import ReminderScheduler, SchedulerState, run_reminder_loop
from smartdesk.tasks.task_models import Task, TaskStatus
from smartdesk.tasks.task_service import TaskService

from .conftest import NOW
from .fakes import FakeClock, FakeReminderQuery


def _reminder_task(task_id: int, due_in: timedelta, lead: int = 15) -> Task:
    return Task(
        id=task_id,
        title=f"task {task_id}",
        due_at=NOW + due_in,
        reminder_enabled=True,
        reminder_lead_minutes=lead,
    )


def test_scan_notifies_then_marks_once(clock: FakeClock) -> None:
    query = FakeReminderQuery()
    query.add(_reminder_task(1, timedelta(minutes=10)))
    sched = ReminderScheduler(query, clock=clock)

    events: list[tuple[int, timedelta, int]] = []
    # Record how many marks existed when the listener ran: notification happens first.
    sched.add_listener(lambda task, remaining: events.append((task.id, remaining, len(query.marked))))

    assert sched.scan_once() == 1
    assert events == [(1, timedelta(minutes=10), 0)]
    assert query.marked == [(1, NOW)]

    clock.advance(timedelta(minutes=1))
    assert sched.scan_once() == 0
    assert len(events) == 1


def test_scan_before_window_does_nothing(clock: FakeClock) -> None:
    query = FakeReminderQuery()
    query.add(_reminder_task(1, timedelta(hours=1), lead=30))
    sched = ReminderScheduler(query, clock=clock)

    for _ in range(29):
        assert sched.scan_once() == 0
        clock.advance(timedelta(minutes=1))
    assert query.marked == []

    clock.advance(timedelta(minutes=1))  # NOW + 30 min: window opens
    assert sched.scan_once() == 1
    assert sched.scan_once() == 0


def test_remaining_is_clamped_to_zero_when_overdue(clock: FakeClock) -> None:
    query = FakeReminderQuery()
    query.add(_reminder_task(7, -timedelta(minutes=5)))
    sched = ReminderScheduler(query, clock=clock)

    seen: list[timedelta] = []
    sched.add_listener(lambda task, remaining: seen.append(remaining))
    sched.scan_once()
    assert seen == [timedelta(0)]


def test_failing_listener_is_isolated(clock: FakeClock) -> None:
    query = FakeReminderQuery()
    query.add(_reminder_task(1, timedelta(minutes=5)))
    query.add(_reminder_task(2, timedelta(minutes=6)))
    sched = ReminderScheduler(query, clock=clock)

    def broken(task, remaining):
        raise RuntimeError("popup failed")

    got: list[int] = []
    sched.add_listener(broken)
    sched.add_listener(lambda task, remaining: got.append(task.id))

    assert sched.scan_once() == 2
    assert sorted(got) == [1, 2]
    assert sorted(tid for tid, _ in query.marked) == [1, 2]


def test_query_failure_ends_cycle_without_side_effects(clock: FakeClock) -> None:
    query = FakeReminderQuery(fail_fetch=True)
    query.add(_reminder_task(1, timedelta(minutes=5)))
    sched = ReminderScheduler(query, clock=clock)
    calls: list[int] = []
    sched.add_listener(lambda task, remaining: calls.append(task.id))

    assert sched.scan_once() == 0
    assert calls == []
    assert query.marked == []

    # Next cycle recovers on its own.
    query.fail_fetch = False
    assert sched.scan_once() == 1


def test_mark_failure_for_one_task_does_not_stop_others(clock: FakeClock) -> None:
    query = FakeReminderQuery(fail_mark_ids={1})
    query.add(_reminder_task(1, timedelta(minutes=5)))
    query.add(_reminder_task(2, timedelta(minutes=5)))
    sched = ReminderScheduler(query, clock=clock)

    assert sched.scan_once() == 1
    assert [tid for tid, _ in query.marked] == [2]


def test_listener_registration() -> None:
    sched = ReminderScheduler(FakeReminderQuery())
    calls: list[str] = []

    def listener(task, remaining):
        calls.append(task.title)

    sched.add_listener(listener)
    sched.add_listener(listener)
    sched.add_listener(None)  # type: ignore[arg-type]
    assert len(sched._listeners) == 1

    sched.remove_listener(listener)
    sched.remove_listener(listener)
    assert sched._listeners == ()


def test_listener_removed_during_scan_does_not_break_iteration(clock: FakeClock) -> None:
    query = FakeReminderQuery()
    query.add(_reminder_task(1, timedelta(minutes=5)))
    query.add(_reminder_task(2, timedelta(minutes=5)))
    sched = ReminderScheduler(query, clock=clock)

    seen: list[tuple[str, int]] = []

    def second(task, remaining):
        seen.append(("second", task.id))

    def first(task, remaining):
        seen.append(("first", task.id))
        sched.remove_listener(second)

    sched.add_listener(first)
    sched.add_listener(second)
    sched.scan_once()

    # The in-flight snapshot still reaches `second` for task 1; task 2 sees the new registry.
    assert seen == [("first", 1), ("second", 1), ("first", 2)]


@pytest.mark.parametrize("interval", [timedelta(seconds=30), timedelta(seconds=59), timedelta(0)])
def test_scan_interval_below_one_minute_rejected(interval: timedelta) -> None:
    sched = ReminderScheduler(FakeReminderQuery())
    with pytest.raises(ValidationError):
        sched.set_scan_interval(interval)
    with pytest.raises(ValidationError):
        ReminderScheduler(FakeReminderQuery(), scan_interval=interval)
    assert sched.scan_interval == timedelta(minutes=1)


def test_set_scan_interval_while_stopped_only_stores() -> None:
    sched = ReminderScheduler(FakeReminderQuery())
    sched.set_scan_interval(timedelta(minutes=5))
    assert sched.scan_interval == timedelta(minutes=5)
    assert sched.state == SchedulerState.STOPPED
    assert sched._thread is None


class _SignallingQuery(FakeReminderQuery):
    """Sets an event on every fetch so tests can wait for the background scan."""

    def __init__(self) -> None:
        super().__init__()
        self.fetched = threading.Event()

    def fetch_tasks_requiring_reminder(self, reference_time):
        try:
            return FakeReminderQuery.fetch_tasks_requiring_reminder(self, reference_time)
        finally:
            self.fetched.set()


def test_start_scans_immediately_and_close_is_terminal(clock: FakeClock) -> None:
    query = _SignallingQuery()
    query.add(_reminder_task(1, timedelta(minutes=5)))
    sched = ReminderScheduler(query, clock=clock)

    sched.start()
    try:
        assert sched.is_running
        assert query.fetched.wait(timeout=5.0), "first scan should run right after start()"

        # Restart while running: scans again right away with the new interval.
        query.fetched.clear()
        sched.set_scan_interval(timedelta(minutes=2))
        assert query.fetched.wait(timeout=5.0)
        assert sched.state == SchedulerState.RUNNING

        query.fetched.clear()
        sched.start()
        assert query.fetched.wait(timeout=5.0)
    finally:
        sched.close()

    assert sched.state == SchedulerState.CLOSED
    assert sched._thread is not None and not sched._thread.is_alive()
    assert query.marked == [(1, NOW)]

    sched.close()  # idempotent
    with pytest.raises(RuntimeError):
        sched.start()


def test_context_manager_closes(clock: FakeClock) -> None:
    with ReminderScheduler(FakeReminderQuery(), clock=clock) as sched:
        sched.start()
    assert sched.state == SchedulerState.CLOSED


def test_scheduler_with_real_service(service: TaskService, clock: FakeClock) -> None:
    created = service.create_task(
        Task(title="A", due_at=NOW + timedelta(minutes=10), reminder_enabled=True, reminder_lead_minutes=15)
    )
    sched = ReminderScheduler(service, clock=clock)
    fired: list[int] = []
    sched.add_listener(lambda task, remaining: fired.append(task.id))

    assert sched.scan_once() == 1
    clock.advance(timedelta(minutes=1))
    assert sched.scan_once() == 0
    assert fired == [created.id]

    stored = service.find_task(created.id)
    assert stored.last_reminded_at == NOW
    assert stored.updated_at == NOW
    assert stored.status == TaskStatus.PLANNED

    # Completing the task from the notification surface goes through the service.
    service.mark_task_completed(created.id)
    clock.advance(timedelta(hours=1))
    assert sched.scan_once() == 0


@pytest.mark.asyncio
async def test_reminder_loop_scans_immediately_then_periodically() -> None:
    calls: list[float] = []

    def scan() -> int:
        calls.append(asyncio.get_running_loop().time())
        if len(calls) == 2:
            raise RuntimeError("transient")
        return 0

    runner = asyncio.create_task(run_reminder_loop(scan, interval_seconds=0.01))

    await asyncio.sleep(0)
    assert len(calls) == 1, "first scan should not wait for the interval"

    await asyncio.sleep(0.08)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    # A failing scan does not stop the loop.
    assert len(calls) >= 3


@pytest.mark.asyncio
async def test_reminder_loop_keeps_a_fixed_rate_despite_slow_scans() -> None:
    interval = 0.1
    starts: list[float] = []

    def slow_scan() -> int:
        starts.append(asyncio.get_running_loop().time())
        time.sleep(0.04)
        return 0

    runner = asyncio.create_task(run_reminder_loop(slow_scan, interval_seconds=interval))
    while len(starts) < 4:
        await asyncio.sleep(0.01)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    # A fixed delay after each scan would need 3 * (0.1 + 0.04) = 0.42s for three gaps.
    assert starts[3] - starts[0] < 0.38
    assert all(b - a >= interval * 0.9 for a, b in zip(starts, starts[1:]))
