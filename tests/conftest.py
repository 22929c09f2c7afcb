# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from smartdesk.cli.bootstrap import create_initial_state
from smartdesk.core.state import AppState
from smartdesk.tasks.task_service import TaskService
from smartdesk.tasks.task_store import TaskStore

from .fakes import FakeClock

# Saturday noon; every test builds its times relative to this instant.
NOW = datetime(2026, 10, 17, 12, 0, 0)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    A SimpleNamespace stands in for Settings so tests never read .env or SMARTDESK_* variables.
    """
    return SimpleNamespace(
        app_name="smartdesk-test",
        log_level="DEBUG",
        console_enabled=False,
        reminders_enabled=False,
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        dashboard_upcoming_days=7,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def service(store: TaskStore, clock: FakeClock) -> TaskService:
    """
    TaskService over a real SQLite store.

    Backed by a real SQLite file so timestamp round-tripping is exercised too.
    """
    return TaskService(store, clock=clock)


@pytest.fixture()
def state(settings: SimpleNamespace, clock: FakeClock):
    st: AppState = create_initial_state(settings=settings, clock=clock)
    yield st
    st.reminders.close()
