# src/tasktrack/tasks/state_store.py

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Mapping
from dataclasses import dataclass

from .db import Database
from .emoji_keys import normalize_key
from .task_models import TaskState

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DefaultState:
    name: str
    emoji: str
    description: str
    color: str
    order_num: int
    is_terminal: bool
    transitions: str


DEFAULT_STATES: tuple[DefaultState, ...] = (
    DefaultState("open", "eyes", "Task needs attention", "#6E84F5", 1, False, "working,finished"),
    DefaultState("working", "hammer", "Task is being worked on", "#F5B86E", 2, False, "open,review,finished"),
    DefaultState("review", "mag", "Task completed, needs review", "#F5D76E", 3, False, "working,finished"),
    DefaultState("finished", "white_check_mark", "Task has been completed", "#6EF58E", 4, True, ""),
)


def _split_transitions(raw: str | None) -> frozenset[str]:
    if not raw:
        return frozenset()
    return frozenset(p.strip() for p in raw.split(",") if p.strip())


class StateStore:
    """Persistence for the task_states table (seeding + loading)."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def seed_defaults(self, emoji_overrides: Mapping[str, str] | None = None) -> None:
        """
        Insert the default states if missing, then re-apply the configured emoji.

        Existing rows keep their transitions/description; only the emoji follows
        configuration. Configured glyphs and :shortcodes: are stored as bare
        shortcodes, the form reaction keys are normalized to.
        """
        overrides = dict(emoji_overrides or {})
        with self._db.cursor() as cur:
            for st in DEFAULT_STATES:
                emoji = normalize_key(overrides.get(st.name) or st.emoji) or st.emoji
                cur.execute(
                    """
                    INSERT OR IGNORE INTO task_states
                    (name, emoji, description, color, order_num, is_terminal, allowed_transitions)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        st.name,
                        emoji,
                        st.description,
                        st.color,
                        st.order_num,
                        int(st.is_terminal),
                        st.transitions,
                    ),
                )
                cur.execute("UPDATE task_states SET emoji = ? WHERE name = ?", (emoji, st.name))
        logger.info("Task states seeded (%d defaults)", len(DEFAULT_STATES))

    @staticmethod
    def _row_to_state(row: sqlite3.Row) -> TaskState:
        return TaskState(
            name=str(row["name"]),
            emoji=str(row["emoji"]),
            order_num=int(row["order_num"]),
            is_terminal=bool(row["is_terminal"]),
            allowed_transitions=_split_transitions(row["allowed_transitions"]),
            description=str(row["description"] or ""),
            color=str(row["color"] or ""),
        )

    def load_states(self) -> list[TaskState]:
        with self._db.cursor() as cur:
            cur.execute("SELECT * FROM task_states ORDER BY order_num ASC, name ASC")
            return [self._row_to_state(r) for r in cur.fetchall()]
