# src/tasktrack/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import datetime
from typing import cast

from ..core.state import AppState
from ..tasks.emoji_keys import display
from ..tasks.notifications import truncate
from ..tasks.state_catalog import CatalogError

LinkBuilder = Callable[[str, str], str]
CommandHandler4 = Callable[[AppState, list[str], str | None, str | None], str]
CommandHandler5 = Callable[
    [AppState, list[str], str | None, str | None, LinkBuilder | None], str
]
CommandHandler = CommandHandler4 | CommandHandler5

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        user_id: str | None = None,
        room_id: str | None = None,
        links: LinkBuilder | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 5

        if nparams >= 5:
            h5 = cast(CommandHandler5, handler)
            return h5(state, args, user_id, room_id, links)

        h4 = cast(CommandHandler4, handler)
        return h4(state, args, user_id, room_id)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _ts_local(ts: float) -> str:
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M")


def cmd_help(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    return registry.build_help()


def cmd_tasks(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
    links: LinkBuilder | None = None,
) -> str:
    """List active (non-terminal) tasks across all channels."""
    catalog = state.catalog
    tasks = state.task_store.list_by_status(catalog.active_names())
    if not tasks:
        return "No active tasks."

    lines = ["Active Tasks:"]
    for task in tasks:
        st = catalog.by_name(task.status)
        emoji = display(st.emoji) if st else "❓"
        text = truncate(task.preview) or "(no preview)"
        link = links(task.channel, task.message_id) if links else ""
        link_part = f" | {link}" if link else ""
        lines.append(
            f"{emoji} `{task.status}` {text}{link_part} | {task.channel} "
            f"by {task.author} on {_ts_local(task.created_at)}"
        )
    return "\n".join(lines)


def cmd_task_states(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    lines = ["Available Task States:"]
    for st in state.catalog.states():
        targets = ", ".join(
            s.name for s in state.catalog.states() if s.name in st.allowed_transitions
        )
        lines.append(f"- {display(st.emoji)} `{st.name}` - {st.description}")
        lines.append(f"  Transitions to: {targets or 'None'}")
    return "\n".join(lines)


def cmd_reload_states(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    logger.info("State catalog reload requested (user_id=%s room_id=%s)", user_id, room_id)
    try:
        state.catalog.reload()
    except CatalogError as e:
        logger.warning("State catalog reload rejected: %s", e)
        return f"Reload failed, keeping the previous states: {e}"
    return f"Reloaded {len(state.catalog.states())} task states."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("tasks", cmd_tasks, help_text="List active tasks.")
registry.register(
    "task_states",
    cmd_task_states,
    help_text="List task states and their allowed transitions.",
    aliases=["states"],
)
registry.register("reload_states", cmd_reload_states, help_text="Re-read task states from the database.")
