# src/tasktrack/tasks/transitions.py

from __future__ import annotations

"""
Reaction-driven task state machine.

The engine enforces the transition graph strictly: one reaction event moves a
task at most one edge, and a move the graph does not allow is rejected
rather than recomputed from whatever reactions happen to be on the message.

decide() is pure; apply() performs the single store mutation it implies.
"""

import logging
import time
from collections.abc import Callable, Collection
from dataclasses import dataclass, replace
from enum import StrEnum

from .state_catalog import StateCatalog
from .task_models import ReactionDirection, ReactionEvent, Task, TaskState
from .task_store import DuplicateTaskError, TaskNotFoundError, TaskStore

logger = logging.getLogger(__name__)


class Action(StrEnum):
    NOOP = "noop"
    CREATE = "create"
    TRANSITION = "transition"
    REJECT = "reject"
    REVERT = "revert"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class Outcome:
    action: Action
    event: ReactionEvent
    task: Task | None = None
    from_status: str | None = None
    to_status: str | None = None
    reason: str = ""


class TransitionEngine:
    def __init__(
        self,
        catalog: StateCatalog,
        store: TaskStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._clock = clock

    @property
    def catalog(self) -> StateCatalog:
        return self._catalog

    # ---- decision ----

    def decide(
        self,
        event: ReactionEvent,
        existing: Task | None,
        present: Collection[str] | None = None,
    ) -> Outcome:
        """
        Decide what a reaction event does to the task behind its message.

        `present` is the set of emoji currently on the message, when known.
        It only matters for removals: a removed emoji that is still present
        (another user's reaction) keeps governing the task.
        """
        state = self._catalog.by_emoji(event.emoji)
        if state is None:
            return Outcome(Action.NOOP, event, existing, reason="unknown emoji")

        if event.direction == ReactionDirection.ADDED:
            return self._decide_added(event, state, existing)
        return self._decide_removed(event, state, existing, present)

    def _decide_added(self, event: ReactionEvent, target: TaskState, existing: Task | None) -> Outcome:
        if existing is None:
            if target.name != self._catalog.entry_state().name:
                return Outcome(Action.NOOP, event, reason="untracked message, not the entry state")
            return Outcome(Action.CREATE, event, to_status=target.name)

        if existing.status == target.name:
            return Outcome(Action.NOOP, event, existing, reason="already in this state")

        if self._catalog.transition_allowed(existing.status, target.name):
            return Outcome(
                Action.TRANSITION,
                event,
                existing,
                from_status=existing.status,
                to_status=target.name,
            )

        return Outcome(
            Action.REJECT,
            event,
            existing,
            from_status=existing.status,
            to_status=target.name,
            reason="transition not allowed",
        )

    def _decide_removed(
        self,
        event: ReactionEvent,
        removed: TaskState,
        existing: Task | None,
        present: Collection[str] | None,
    ) -> Outcome:
        if existing is None:
            return Outcome(Action.NOOP, event, reason="untracked message")

        if existing.status != removed.name:
            return Outcome(Action.NOOP, event, existing, reason="reaction does not govern the task")

        if present is not None and removed.emoji in present:
            return Outcome(Action.NOOP, event, existing, reason="reaction still present")

        if removed.name == self._catalog.entry_state().name:
            return Outcome(Action.DELETE, event, existing, from_status=existing.status)

        candidates = self._catalog.predecessors(removed.name)
        if not candidates:
            return Outcome(Action.NOOP, event, existing, reason="no predecessor state")

        # Prefer a predecessor whose reaction is still on the message.
        target = candidates[0]
        if present:
            target = next((c for c in candidates if c.emoji in present), target)

        return Outcome(
            Action.REVERT,
            event,
            existing,
            from_status=existing.status,
            to_status=target.name,
        )

    def would_create(self, event: ReactionEvent) -> bool:
        """True if applying `event` right now would create a task."""
        if event.direction != ReactionDirection.ADDED:
            return False
        state = self._catalog.by_emoji(event.emoji)
        if state is None or state.name != self._catalog.entry_state().name:
            return False
        return self._store.find(event.channel, event.message_id) is None

    # ---- application ----

    def apply(
        self,
        event: ReactionEvent,
        present: Collection[str] | None = None,
        *,
        preview: str = "",
    ) -> Outcome:
        existing = self._store.find(event.channel, event.message_id)
        outcome = self.decide(event, existing, present)

        if outcome.action in (Action.NOOP, Action.REJECT):
            if outcome.action == Action.REJECT:
                logger.info(
                    "Rejected %s -> %s channel=%s message=%s user=%s",
                    outcome.from_status,
                    outcome.to_status,
                    event.channel,
                    event.message_id,
                    event.user,
                )
            else:
                logger.debug(
                    "No-op (%s) emoji=%s channel=%s message=%s",
                    outcome.reason,
                    event.emoji,
                    event.channel,
                    event.message_id,
                )
            return outcome

        now = float(self._clock())

        if outcome.action == Action.CREATE:
            assert outcome.to_status is not None
            try:
                task = self._store.create(
                    channel=event.channel,
                    message_id=event.message_id,
                    author=event.user,
                    status=outcome.to_status,
                    created_at=now,
                    changed_by=event.user,
                    preview=preview,
                )
            except DuplicateTaskError:
                logger.info(
                    "Task already created concurrently channel=%s message=%s",
                    event.channel,
                    event.message_id,
                )
                return Outcome(Action.NOOP, event, reason="created concurrently")
            logger.info(
                "Task created channel=%s message=%s by %s status=%s",
                event.channel,
                event.message_id,
                event.user,
                task.status,
            )
            return replace(outcome, task=task)

        if outcome.action == Action.DELETE:
            try:
                self._store.delete(event.channel, event.message_id)
            except TaskNotFoundError:
                return Outcome(Action.NOOP, event, reason="already deleted")
            logger.info(
                "Task deleted channel=%s message=%s by %s",
                event.channel,
                event.message_id,
                event.user,
            )
            return outcome

        # TRANSITION / REVERT
        assert outcome.task is not None and outcome.to_status is not None
        target = self._catalog.by_name(outcome.to_status)
        terminal = bool(target and target.is_terminal)
        try:
            self._store.update_status(
                event.channel,
                event.message_id,
                status=outcome.to_status,
                actor=event.user,
                changed_at=now,
                terminal=terminal,
            )
        except TaskNotFoundError:
            return Outcome(Action.NOOP, event, reason="task disappeared")

        task = replace(
            outcome.task,
            status=outcome.to_status,
            state_changed_at=now,
            state_changed_by=event.user,
        )
        if terminal:
            task.completed_at = now
            task.completed_by = event.user

        logger.info(
            "Task %s %s -> %s channel=%s message=%s by %s",
            outcome.action.value,
            outcome.from_status,
            outcome.to_status,
            event.channel,
            event.message_id,
            event.user,
        )
        return replace(outcome, task=task)
