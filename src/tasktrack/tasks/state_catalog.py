# src/tasktrack/tasks/state_catalog.py

from __future__ import annotations

"""
In-memory catalog of task states.

Loaded once at startup from a loader callable (normally StateStore.load_states)
and refreshed only by an explicit reload(). Lookups never raise: an unknown
emoji or name simply has no match.
"""

import logging
from collections.abc import Callable, Iterable, Sequence

from .task_models import TaskState

logger = logging.getLogger(__name__)

StateLoader = Callable[[], Iterable[TaskState]]


class CatalogError(ValueError):
    """The configured states violate the catalog invariants."""


def validate_states(states: Sequence[TaskState]) -> None:
    if not states:
        raise CatalogError("no task states configured")

    names = [s.name for s in states]
    if len(set(names)) != len(names):
        raise CatalogError(f"duplicate state names: {names}")

    emoji_owner: dict[str, str] = {}
    for s in states:
        if not s.emoji:
            raise CatalogError(f"state {s.name!r} has no emoji")
        if s.emoji in emoji_owner:
            raise CatalogError(
                f"emoji {s.emoji!r} is used by both {emoji_owner[s.emoji]!r} and {s.name!r}"
            )
        emoji_owner[s.emoji] = s.name

    entries = [s.name for s in states if s.order_num == 1]
    if len(entries) != 1:
        raise CatalogError(f"exactly one state must have order_num 1, got {entries}")

    known = set(names)
    for s in states:
        unknown = s.allowed_transitions - known
        if unknown:
            raise CatalogError(f"state {s.name!r} transitions to unknown states {sorted(unknown)}")
        if s.is_terminal and s.allowed_transitions:
            raise CatalogError(f"terminal state {s.name!r} must not have outgoing transitions")
        if not s.is_terminal and not s.allowed_transitions:
            raise CatalogError(f"non-terminal state {s.name!r} has no outgoing transitions")


class StateCatalog:
    def __init__(self, loader: StateLoader) -> None:
        self._loader = loader
        self._states: tuple[TaskState, ...] = ()
        self._by_name: dict[str, TaskState] = {}
        self._by_emoji: dict[str, TaskState] = {}
        self.reload()

    @classmethod
    def from_states(cls, states: Iterable[TaskState]) -> StateCatalog:
        fixed = list(states)
        return cls(lambda: fixed)

    def reload(self) -> None:
        """
        Re-read states from the loader.

        On a validation error the previous catalog stays in place and the
        error propagates to the caller.
        """
        states = sorted(self._loader(), key=lambda s: (s.order_num, s.name))
        validate_states(states)

        self._states = tuple(states)
        self._by_name = {s.name: s for s in states}
        self._by_emoji = {s.emoji: s for s in states}
        logger.info(
            "State catalog loaded: %s",
            ", ".join(f"{s.name}({s.emoji})" for s in self._states),
        )

    def states(self) -> tuple[TaskState, ...]:
        return self._states

    def by_emoji(self, emoji: str | None) -> TaskState | None:
        if not emoji:
            return None
        return self._by_emoji.get(emoji)

    def by_name(self, name: str | None) -> TaskState | None:
        if not name:
            return None
        return self._by_name.get(name)

    def entry_state(self) -> TaskState:
        return next(s for s in self._states if s.order_num == 1)

    def active_names(self) -> list[str]:
        return [s.name for s in self._states if not s.is_terminal]

    def transition_allowed(self, from_name: str, to_name: str) -> bool:
        if from_name == to_name:
            return True
        src = self._by_name.get(from_name)
        if src is None:
            return False
        return to_name in src.allowed_transitions

    def predecessors(self, name: str) -> list[TaskState]:
        """
        States ranked below `name` that may legally move forward into it.

        Ordered closest first (highest order_num).
        """
        target = self._by_name.get(name)
        if target is None:
            return []
        found = [
            s
            for s in self._states
            if s.order_num < target.order_num and target.name in s.allowed_transitions
        ]
        return sorted(found, key=lambda s: s.order_num, reverse=True)
