# src/tasktrack/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the chat connector swappable and makes testing easier.
"""

from typing import Protocol

from ..tasks.task_models import HistoryMessage, Reaction


class ChannelAccessError(Exception):
    """The bot cannot see or act in this channel (not a member / not invited)."""

    def __init__(self, channel: str, detail: str = "") -> None:
        msg = f"no access to channel {channel}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.channel = channel


class ChatPlatform(Protocol):
    """
    Connector-side port: everything the task core needs from the chat platform.

    All calls may raise ChannelAccessError when the bot is not in the channel;
    any other exception is treated as a transient platform failure.
    """

    def bot_user_id(self) -> str | None: ...

    async def ensure_member(self, channel: str) -> None: ...

    async def fetch_message(self, channel: str, message_id: str) -> HistoryMessage | None: ...

    async def current_reactions(self, channel: str, message_id: str) -> list[Reaction]: ...

    async def fetch_history(
            self,
            channel: str,
            *,
            oldest_ts: float,
            limit: int,
    ) -> list[HistoryMessage]: ...

    async def list_joined_channels(self) -> list[str]: ...

    async def post_reply(self, channel: str, text: str, *, thread_id: str | None = None) -> None: ...

    def message_link(self, channel: str, message_id: str) -> str: ...
