# src/tasktrack/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..tasks.db import Database
from ..tasks.state_catalog import StateCatalog
from ..tasks.state_store import StateStore
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    """Long-lived application objects, built once by cli.bootstrap."""

    # Settings object (config.Settings in production, SimpleNamespace in tests).
    settings: Any

    db: Database
    state_store: StateStore
    catalog: StateCatalog
    task_store: TaskStore

    def close(self) -> None:
        self.db.close()
