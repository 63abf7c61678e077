# src/tasktrack/connectors/matrix_chat.py

from __future__ import annotations

import logging
from typing import Any

from nio import (
    AsyncClient,
    JoinedRoomsResponse,
    MessageDirection,
    RoomGetEventResponse,
    RoomMessagesResponse,
    RoomSendResponse,
)

from ..core.ports import ChannelAccessError
from ..tasks.task_models import HistoryMessage, Reaction
from .matrix_reactions import ReactionIndex, parse_annotation

logger = logging.getLogger(__name__)

HISTORY_PAGE_SIZE = 100
FORBIDDEN_CODES = {"M_FORBIDDEN"}


class MatrixRequestError(RuntimeError):
    """A Matrix API call returned an error response."""

    def __init__(self, what: str, resp: Any) -> None:
        code = getattr(resp, "status_code", None)
        message = getattr(resp, "message", None) or repr(resp)
        super().__init__(f"{what} failed: {code} {message}")
        self.status_code = code


def _check(what: str, channel: str, resp: Any, expected: type) -> Any:
    if isinstance(resp, expected):
        return resp
    if getattr(resp, "status_code", None) in FORBIDDEN_CODES:
        raise ChannelAccessError(channel, str(getattr(resp, "message", "") or resp))
    raise MatrixRequestError(what, resp)


def _ts(event: Any) -> float:
    return float(getattr(event, "server_timestamp", 0) or 0) / 1000.0


def _message_from_event(event: Any) -> HistoryMessage | None:
    source = getattr(event, "source", None) or {}
    if source.get("type") != "m.room.message":
        return None
    content = source.get("content") or {}
    return HistoryMessage(
        message_id=str(getattr(event, "event_id", "") or source.get("event_id", "")),
        author=getattr(event, "sender", None) or source.get("sender"),
        text=str(content.get("body") or ""),
        ts=_ts(event),
    )


class MatrixChat:
    """
    ChatPlatform over a nio AsyncClient.

    A channel is a Matrix room id, a message id is an event id. Reactions are
    read from the shared ReactionIndex, which this class also feeds while
    paginating history.
    """

    def __init__(
        self,
        client: AsyncClient,
        index: ReactionIndex,
        *,
        allowed_rooms: set[str] | None = None,
    ) -> None:
        self._client = client
        self._index = index
        self._allowed_rooms = allowed_rooms

    @property
    def index(self) -> ReactionIndex:
        return self._index

    def bot_user_id(self) -> str | None:
        return self._client.user_id

    def room_allowed(self, room_id: str) -> bool:
        return self._allowed_rooms is None or room_id in self._allowed_rooms

    def index_reaction(self, room_id: str, event: Any) -> tuple[str, str] | None:
        """Remember an m.reaction event. Returns (target_id, emoji) for live annotations."""
        parsed = parse_annotation(getattr(event, "source", None))
        if parsed is None:
            return None
        target_id, emoji = parsed
        self._index.add(
            room_id=room_id,
            reaction_id=str(event.event_id),
            target_id=target_id,
            emoji=emoji,
            sender=str(event.sender),
            ts=_ts(event),
        )
        return parsed

    async def ensure_member(self, channel: str) -> None:
        if channel not in self._client.rooms:
            raise ChannelAccessError(channel, "bot is not joined")
        if not self.room_allowed(channel):
            raise ChannelAccessError(channel, "room is not in the allowlist")

    async def fetch_message(self, channel: str, message_id: str) -> HistoryMessage | None:
        resp = await self._client.room_get_event(channel, message_id)
        if getattr(resp, "status_code", None) == "M_NOT_FOUND":
            return None
        resp = _check("room_get_event", channel, resp, RoomGetEventResponse)
        return _message_from_event(resp.event)

    async def current_reactions(self, channel: str, message_id: str) -> list[Reaction]:
        return self._index.reactions_for(channel, message_id)

    async def fetch_history(self, channel: str, *, oldest_ts: float, limit: int) -> list[HistoryMessage]:
        """
        Page backwards from the current sync position until oldest_ts or limit.

        Reactions always come after the message they annotate, so by the time
        a message is reached its reactions are already in the index.
        """
        await self.ensure_member(channel)

        messages: list[HistoryMessage] = []
        token: str | None = self._client.next_batch or None
        while len(messages) < limit:
            resp = await self._client.room_messages(
                channel,
                start=token,
                direction=MessageDirection.back,
                limit=HISTORY_PAGE_SIZE,
            )
            resp = _check("room_messages", channel, resp, RoomMessagesResponse)

            reached_oldest = False
            for event in resp.chunk:
                if _ts(event) < oldest_ts:
                    reached_oldest = True
                    break
                if self.index_reaction(channel, event) is not None:
                    continue
                msg = _message_from_event(event)
                if msg is not None and msg.message_id:
                    messages.append(msg)
                    if len(messages) >= limit:
                        break

            if reached_oldest or not resp.chunk or not resp.end or resp.end == token:
                break
            token = resp.end

        for msg in messages:
            msg.reactions = self._index.reactions_for(channel, msg.message_id)

        logger.debug("History channel=%s messages=%d", channel, len(messages))
        return messages

    async def list_joined_channels(self) -> list[str]:
        resp = await self._client.joined_rooms()
        if not isinstance(resp, JoinedRoomsResponse):
            raise MatrixRequestError("joined_rooms", resp)
        return [r for r in resp.rooms if self.room_allowed(r)]

    async def post_reply(self, channel: str, text: str, *, thread_id: str | None = None) -> None:
        content: dict[str, Any] = {"msgtype": "m.notice", "body": text}
        if thread_id:
            content["m.relates_to"] = {
                "rel_type": "m.thread",
                "event_id": thread_id,
                "is_falling_back": True,
                "m.in_reply_to": {"event_id": thread_id},
            }
        resp = await self._client.room_send(
            room_id=channel,
            message_type="m.room.message",
            content=content,
            ignore_unverified_devices=True,
        )
        _check("room_send", channel, resp, RoomSendResponse)

    def message_link(self, channel: str, message_id: str) -> str:
        return f"https://matrix.to/#/{channel}/{message_id}"
