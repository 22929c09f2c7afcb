# src/smartdesk/tasks/reminder_scheduler.py

from __future__ import annotations

"""
Reminder scheduler.

A small polling loop that:
- asks the reminder query port for tasks whose reminder window is open,
- notifies every registered listener (a failing listener never affects the others),
- marks each task as reminded so the same window never fires twice.

The loop runs on one daemon thread that owns a private asyncio event loop; start(),
set_scan_interval() and close() are safe to call from any thread.
Presentation (popups, console output) belongs to the listeners, not the scheduler.
"""

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from datetime import timedelta
from enum import Enum

from ..core.clock import SystemClock
from ..core.errors import ValidationError
from ..core.ports import Clock, ReminderListener, ReminderQueryPort
from .task_models import Task

logger = logging.getLogger(__name__)

DEFAULT_SCAN_INTERVAL = timedelta(minutes=1)
MIN_SCAN_INTERVAL = timedelta(minutes=1)


class SchedulerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    CLOSED = "closed"


async def run_reminder_loop(scan: Callable[[], object], *, interval_seconds: float) -> None:
    """
    Call `scan` immediately, then at a fixed rate of one call per interval_seconds.

    Ticks are planned against the loop clock, so a slow scan shortens the following
    sleep instead of pushing the schedule back. Ticks missed by an overrunning scan are
    skipped. Exceptions from `scan` are logged and the loop keeps going.
    To stop the loop, cancel the coroutine/task.
    """
    loop = asyncio.get_running_loop()
    period = max(0.0, float(interval_seconds))
    next_tick = loop.time()
    while True:
        try:
            scan()
        except Exception:
            logger.exception("Reminder scan crashed")
        next_tick += period
        now = loop.time()
        if next_tick < now:
            logger.warning("Reminder scan overran its interval by %.3fs", now - next_tick)
            next_tick = now
        await asyncio.sleep(next_tick - now)


def _validate_interval(interval: timedelta | None) -> timedelta:
    if interval is None or interval < MIN_SCAN_INTERVAL:
        raise ValidationError("Scan interval must be at least one minute")
    return interval


class ReminderScheduler:
    """
    Background reminder poller.

    State machine:
      STOPPED --start()--> RUNNING
      RUNNING --start() / set_scan_interval()--> RUNNING (cycle restarted, scans at once)
      any --close()--> CLOSED (terminal)
    """

    def __init__(
        self,
        query: ReminderQueryPort,
        *,
        clock: Clock | None = None,
        scan_interval: timedelta = DEFAULT_SCAN_INTERVAL,
        thread_name: str = "smartdesk-reminder-scheduler",
    ) -> None:
        self._query = query
        self._clock: Clock = clock or SystemClock()
        self._scan_interval = _validate_interval(scan_interval)
        self._thread_name = thread_name

        self._listeners: tuple[ReminderListener, ...] = ()
        self._listeners_lock = threading.Lock()

        self._lock = threading.RLock()
        self._state = SchedulerState.STOPPED
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._poll_task: asyncio.Task[None] | None = None

    # ---- properties ----

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == SchedulerState.RUNNING

    @property
    def scan_interval(self) -> timedelta:
        return self._scan_interval

    # ---- listeners ----

    def add_listener(self, listener: ReminderListener) -> None:
        if listener is None:
            return
        with self._listeners_lock:
            if listener not in self._listeners:
                self._listeners = (*self._listeners, listener)

    def remove_listener(self, listener: ReminderListener) -> None:
        if listener is None:
            return
        with self._listeners_lock:
            self._listeners = tuple(x for x in self._listeners if x != listener)

    # ---- lifecycle ----

    def set_scan_interval(self, interval: timedelta) -> None:
        """
        Change how often the store is scanned (one minute minimum).

        While running, the pending scan is cancelled and the cycle restarts with the new
        interval. While stopped, the value is only stored for the next start().
        """
        interval = _validate_interval(interval)
        with self._lock:
            self._scan_interval = interval
            logger.info("Reminder scan interval set to %s", interval)
            if self._state == SchedulerState.RUNNING:
                self._restart()

    def start(self) -> None:
        """Start polling. Calling start() while running restarts the cycle."""
        with self._lock:
            if self._state == SchedulerState.CLOSED:
                raise RuntimeError("ReminderScheduler is closed")
            self._ensure_loop()
            self._state = SchedulerState.RUNNING
            self._restart()
            logger.info("Reminder scheduler started interval=%s", self._scan_interval)

    def close(self, timeout: float | None = 5.0) -> None:
        """Cancel the pending and all future scans; an in-flight scan finishes first."""
        with self._lock:
            if self._state == SchedulerState.CLOSED:
                return
            self._state = SchedulerState.CLOSED
            loop, thread = self._loop, self._thread

        if loop is not None:
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(self._stop_loop)
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        logger.info("Reminder scheduler closed.")

    def __enter__(self) -> ReminderScheduler:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ---- scan cycle ----

    def scan_once(self) -> int:
        """
        Run one scan cycle and return how many reminders fired.

        For each due task: listeners first, then mark_reminder_triggered. A failing
        query ends the cycle without side effects.
        """
        now = self._clock.now()
        try:
            due_tasks = self._query.fetch_tasks_requiring_reminder(now)
        except Exception:
            logger.exception("fetch_tasks_requiring_reminder failed")
            return 0

        fired = 0
        for task in due_tasks:
            remaining = timedelta(0)
            if task.due_at is not None:
                remaining = max(timedelta(0), task.due_at - now)

            self._notify_listeners(task, remaining)

            try:
                self._query.mark_reminder_triggered(task, now)
            except Exception:
                logger.exception("mark_reminder_triggered failed task_id=%s", task.id)
                continue
            fired += 1

        if fired:
            logger.info("Reminder scan fired=%s at=%s", fired, now)
        else:
            logger.debug("Reminder scan: nothing due at=%s", now)
        return fired

    def _notify_listeners(self, task: Task, remaining: timedelta) -> None:
        # Snapshot: listeners added/removed meanwhile do not affect this iteration.
        for listener in self._listeners:
            try:
                listener(task, remaining)
            except Exception:
                logger.warning("Reminder listener %r failed task_id=%s", listener, task.id, exc_info=True)

    # ---- event loop plumbing ----

    def _ensure_loop(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return

        ready = threading.Event()

        def runner() -> None:
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            self._loop = loop
            ready.set()
            try:
                loop.run_forever()
            finally:
                pending = asyncio.all_tasks(loop)
                for t in pending:
                    t.cancel()
                with contextlib.suppress(Exception):
                    loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
                loop.close()

        t = threading.Thread(target=runner, name=self._thread_name, daemon=True)
        self._thread = t
        t.start()
        if not ready.wait(timeout=5.0):
            raise RuntimeError("Reminder scheduler thread did not initialize")

    def _restart(self) -> None:
        loop = self._loop
        if loop is None:
            return
        interval_s = self._scan_interval.total_seconds()
        loop.call_soon_threadsafe(self._reschedule, interval_s)

    def _reschedule(self, interval_seconds: float) -> None:
        # Runs on the scheduler loop thread.
        if self._poll_task is not None:
            self._poll_task.cancel()
        if self._state != SchedulerState.RUNNING:
            self._poll_task = None
            return
        self._poll_task = asyncio.get_running_loop().create_task(
            run_reminder_loop(self.scan_once, interval_seconds=interval_seconds)
        )

    def _stop_loop(self) -> None:
        # Runs on the scheduler loop thread.
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
        asyncio.get_running_loop().stop()
