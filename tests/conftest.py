# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tasktrack.cli.bootstrap import create_initial_state
from tasktrack.core.state import AppState
from tasktrack.tasks.db import Database
from tasktrack.tasks.state_catalog import StateCatalog
from tasktrack.tasks.state_store import StateStore
from tasktrack.tasks.task_store import TaskStore
from tasktrack.tasks.transitions import TransitionEngine

from .fakes import FakeChat, FakeClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tasktrack-test",
        data_dir=tmp_path,
        matrix_store_path=tmp_path / "matrix_store",
        tasks_db_path=tmp_path / "tasks.sqlite3",
        matrix_rooms=[],
        auto_join=True,
        state_emoji={},
        scan_lookback_days=90,
        scan_history_limit=1000,
    )


@pytest.fixture()
def db(tmp_path: Path):
    database = Database.open(tmp_path / "tasks.sqlite3")
    yield database
    database.close()


@pytest.fixture()
def catalog(db: Database) -> StateCatalog:
    """Default catalog: open(eyes) -> working(hammer) -> review(mag) -> finished(white_check_mark)."""
    states = StateStore(db)
    states.seed_defaults()
    return StateCatalog(states.load_states)


@pytest.fixture()
def store(db: Database) -> TaskStore:
    return TaskStore(db)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def engine(catalog: StateCatalog, store: TaskStore, clock: FakeClock) -> TransitionEngine:
    return TransitionEngine(catalog, store, clock=clock)


@pytest.fixture()
def chat() -> FakeChat:
    return FakeChat()


@pytest.fixture()
def state(settings: SimpleNamespace):
    """AppState wired through the real bootstrap (real SQLite in tmp_path)."""
    app_state: AppState = create_initial_state(settings=settings)
    yield app_state
    app_state.close()
