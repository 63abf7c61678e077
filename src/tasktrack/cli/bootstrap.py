# src/tasktrack/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- opens the database and seeds the default task states,
- wires the stores and the state catalog into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..tasks.db import Database
from ..tasks.state_catalog import StateCatalog
from ..tasks.state_store import StateStore
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.matrix_store_path.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    db = Database.open(settings.tasks_db_path)
    try:
        state_store = StateStore(db)
        state_store.seed_defaults(getattr(settings, "state_emoji", None))
        catalog = StateCatalog(state_store.load_states)
        task_store = TaskStore(db)
    except Exception:
        db.close()
        raise

    return AppState(
        settings=settings,
        db=db,
        state_store=state_store,
        catalog=catalog,
        task_store=task_store,
    )
