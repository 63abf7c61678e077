# tests/fakes.py

from __future__ import annotations

from dataclasses import dataclass, field

from tasktrack.core.ports import ChannelAccessError, ChatPlatform
from tasktrack.tasks.task_models import HistoryMessage, Reaction


class FakeClock:
    """Deterministic clock: every call advances by `step` seconds."""

    def __init__(self, start: float = 1_700_000_000.0, step: float = 1.0) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now


@dataclass(slots=True)
class SentReply:
    channel: str
    text: str
    thread_id: str | None


@dataclass(slots=True)
class FakeChat(ChatPlatform):
    """
    In-memory ChatPlatform used by handler and reconciliation tests.

    - `members` are the channels the bot has joined
    - `messages[channel]` is the channel history (any order)
    - `fail_history` channels raise on fetch_history
    """

    bot_id: str = "@bot:example.org"
    members: set[str] = field(default_factory=set)
    messages: dict[str, list[HistoryMessage]] = field(default_factory=dict)
    fail_history: set[str] = field(default_factory=set)
    fail_post: bool = False
    sent: list[SentReply] = field(default_factory=list)
    post_attempts: list[str] = field(default_factory=list)
    history_calls: list[tuple[str, float, int]] = field(default_factory=list)

    def add_message(
        self,
        channel: str,
        message_id: str,
        *,
        author: str = "@alice:example.org",
        text: str = "",
        ts: float = 1_700_000_000.0,
        reactions: list[Reaction] | None = None,
    ) -> HistoryMessage:
        msg = HistoryMessage(
            message_id=message_id,
            author=author,
            text=text,
            ts=ts,
            reactions=list(reactions or []),
        )
        self.members.add(channel)
        self.messages.setdefault(channel, []).append(msg)
        return msg

    def _find(self, channel: str, message_id: str) -> HistoryMessage | None:
        for m in self.messages.get(channel, []):
            if m.message_id == message_id:
                return m
        return None

    def bot_user_id(self) -> str | None:
        return self.bot_id

    async def ensure_member(self, channel: str) -> None:
        if channel not in self.members:
            raise ChannelAccessError(channel, "not_in_channel")

    async def fetch_message(self, channel: str, message_id: str) -> HistoryMessage | None:
        await self.ensure_member(channel)
        return self._find(channel, message_id)

    async def current_reactions(self, channel: str, message_id: str) -> list[Reaction]:
        msg = self._find(channel, message_id)
        return list(msg.reactions) if msg else []

    async def fetch_history(self, channel: str, *, oldest_ts: float, limit: int) -> list[HistoryMessage]:
        self.history_calls.append((channel, oldest_ts, limit))
        if channel in self.fail_history:
            raise RuntimeError(f"history unavailable for {channel}")
        await self.ensure_member(channel)
        msgs = [m for m in self.messages.get(channel, []) if m.ts >= oldest_ts]
        msgs.sort(key=lambda m: m.ts, reverse=True)
        return msgs[:limit]

    async def list_joined_channels(self) -> list[str]:
        return sorted(self.members)

    async def post_reply(self, channel: str, text: str, *, thread_id: str | None = None) -> None:
        self.post_attempts.append(text)
        if self.fail_post:
            raise RuntimeError("post failed")
        self.sent.append(SentReply(channel=channel, text=text, thread_id=thread_id))

    def message_link(self, channel: str, message_id: str) -> str:
        return f"https://chat.example/{channel}/{message_id}"
