# src/tasktrack/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class ReactionDirection(StrEnum):
    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True, slots=True)
class TaskState:
    """
    A named stage of the workflow.

    Notes:
    - order_num == 1 marks the entry state (the only state a task can be born in).
    - terminal states stamp completion fields and have no outgoing transitions.
    """

    name: str
    emoji: str
    order_num: int
    is_terminal: bool = False
    allowed_transitions: frozenset[str] = frozenset()
    description: str = ""
    color: str = ""


@dataclass(slots=True)
class Task:
    id: int
    channel: str
    message_id: str
    author: str
    status: str

    created_at: float
    state_changed_at: float | None
    state_changed_by: str | None

    completed_at: float | None = None
    completed_by: str | None = None

    preview: str = ""


@dataclass(frozen=True, slots=True)
class ReactionEvent:
    """A single reaction added to / removed from a message by one user."""

    emoji: str
    user: str
    channel: str
    message_id: str
    direction: ReactionDirection


@dataclass(frozen=True, slots=True)
class Reaction:
    emoji: str
    sender: str
    ts: float


@dataclass(slots=True)
class HistoryMessage:
    message_id: str
    author: str | None
    text: str
    ts: float
    # Ordered by the time each reaction was applied (oldest first).
    reactions: list[Reaction] = field(default_factory=list)
