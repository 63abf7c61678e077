# src/tasktrack/connectors/matrix_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from typing import Any, Optional, Set

from nio import (
    InviteMemberEvent,
    JoinResponse,
    MatrixRoom,
    ReactionEvent as MatrixReactionEvent,
    RedactionEvent,
    RoomMemberEvent,
    RoomMessageText,
    UnknownEvent,
)

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..tasks.reaction_handler import ReactionHandler
from ..tasks.reconcile import ReconciliationScanner
from ..tasks.task_models import ReactionDirection, ReactionEvent
from ..tasks.transitions import TransitionEngine
from .matrix_chat import MatrixChat
from .matrix_client import create_matrix_client
from .matrix_reactions import ReactionIndex

logger = logging.getLogger(__name__)


def _ms_now() -> int:
    return int(time.time() * 1000)


def _room_allowlist(settings_rooms: list[str]) -> Optional[Set[str]]:
    rooms = [r.strip() for r in (settings_rooms or []) if str(r).strip()]
    return set(rooms) if rooms else None


class _BackgroundTasks:
    """Keep references to fire-and-forget tasks (history scans) until they finish."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        for task in list(self._tasks):
            with contextlib.suppress(BaseException):
                await task


class MatrixEventRouter:
    """
    Turns raw sync events into ReactionHandler calls.

    Every annotation is indexed, but only events newer than `startup_ms`
    reach the handler; older ones are covered by the history scan.
    """

    def __init__(
        self,
        chat: MatrixChat,
        handler: ReactionHandler,
        *,
        startup_ms: int,
        spawn: Callable[[Any], None] | None = None,
    ) -> None:
        self._chat = chat
        self._handler = handler
        self._startup_ms = startup_ms
        self._spawn = spawn

    def is_live(self, event: Any) -> bool:
        ts = getattr(event, "server_timestamp", None)
        return ts is None or ts > self._startup_ms

    async def on_reaction(self, room: MatrixRoom, event: Any) -> None:
        parsed = self._chat.index_reaction(room.room_id, event)
        if parsed is None or not self.is_live(event):
            return
        if event.sender == self._chat.bot_user_id() or not self._chat.room_allowed(room.room_id):
            return

        target_id, emoji = parsed
        await self._handler.on_reaction(
            ReactionEvent(
                emoji=emoji,
                user=event.sender,
                channel=room.room_id,
                message_id=target_id,
                direction=ReactionDirection.ADDED,
            )
        )

    async def on_redaction(self, room: MatrixRoom, event: RedactionEvent) -> None:
        removed = self._chat.index.remove(event.redacts)
        if removed is None or not self.is_live(event):
            return
        if event.sender == self._chat.bot_user_id() or not self._chat.room_allowed(removed.room_id):
            return

        await self._handler.on_reaction(
            ReactionEvent(
                emoji=removed.emoji,
                user=event.sender,
                channel=removed.room_id,
                message_id=removed.target_id,
                direction=ReactionDirection.REMOVED,
            )
        )

    async def on_member(self, room: MatrixRoom, event: RoomMemberEvent) -> None:
        if event.membership != "join" or not self.is_live(event):
            return
        prev = (getattr(event, "prev_content", None) or {}).get("membership")
        if prev == "join":
            # Profile change, not a join.
            return
        if not self._chat.room_allowed(room.room_id):
            return
        coro = self._handler.on_member_joined(room.room_id, event.state_key)
        if self._spawn is None:
            await coro
        else:
            self._spawn(coro)


async def run_matrix_bot(state: AppState, stop_event: asyncio.Event) -> None:
    """
    Matrix connector (async):

    client -> callbacks -> initial sync -> history scan -> sync loop

    Events older than startup are indexed (so later redactions resolve) but
    not replayed through the state machine; the history scan covers them.
    """
    settings = state.settings
    startup_ts = _ms_now()

    allowed_rooms = _room_allowlist(getattr(settings, "matrix_rooms", []) or [])
    logger.info("Matrix allowed_rooms=%s", allowed_rooms if allowed_rooms is not None else "ALL")

    client = await create_matrix_client(settings)
    if client is None:
        logger.error("Matrix client creation failed; connector will stop.")
        return

    chat = MatrixChat(client, ReactionIndex(), allowed_rooms=allowed_rooms)
    engine = TransitionEngine(state.catalog, state.task_store)
    scanner = ReconciliationScanner(
        state.catalog,
        state.task_store,
        chat,
        lookback_days=getattr(settings, "scan_lookback_days", 90),
        history_limit=getattr(settings, "scan_history_limit", 1000),
    )
    handler = ReactionHandler(engine, chat, scanner)
    background = _BackgroundTasks()

    router = MatrixEventRouter(chat, handler, startup_ms=startup_ts, spawn=background.spawn)

    # ---- Membership ----

    async def invite_callback(room: MatrixRoom, event: InviteMemberEvent) -> None:
        if event.state_key != client.user_id or event.membership != "invite":
            return
        if not getattr(settings, "auto_join", True) or not chat.room_allowed(room.room_id):
            logger.info("Invite to %s from %s ignored", room.room_id, event.sender)
            return

        resp = await client.join(room.room_id)
        if isinstance(resp, JoinResponse):
            logger.info("Joined %s (invited by %s)", room.room_id, event.sender)
        else:
            logger.warning("Failed to join %s: %r", room.room_id, resp)

    # ---- Commands ----

    async def message_callback(room: MatrixRoom, event: RoomMessageText) -> None:
        if not router.is_live(event) or event.sender == client.user_id:
            return
        if not chat.room_allowed(room.room_id):
            return

        body = (event.body or "").strip()
        if not body.startswith("/"):
            return

        logger.info("Command in %s from %s: %r", room.room_id, event.sender, body)
        try:
            resp = command_registry.handle(
                state,
                body,
                user_id=event.sender,
                room_id=room.room_id,
                links=chat.message_link,
            )
        except Exception:
            logger.exception("Command handler crashed.")
            resp = "⚠️ An error occurred while handling the command. Please try again or contact an administrator."

        if resp:
            try:
                await chat.post_reply(room.room_id, resp)
            except Exception:
                logger.exception("Failed to send command reply.")

    client.add_event_callback(router.on_reaction, (MatrixReactionEvent, UnknownEvent))
    client.add_event_callback(router.on_redaction, RedactionEvent)
    client.add_event_callback(invite_callback, InviteMemberEvent)
    client.add_event_callback(router.on_member, RoomMemberEvent)
    client.add_event_callback(message_callback, RoomMessageText)

    # ---- Sync loop ----

    try:
        logger.info("Matrix initial sync...")
        await client.sync(timeout=30000, full_state=True)
        logger.info("Matrix initial sync done. Joined rooms: %d", len(client.rooms))

        await scanner.scan_all_channels()

        logger.info("Matrix sync loop started.")
        while not stop_event.is_set():
            await client.sync(timeout=30000, full_state=False)

    except asyncio.CancelledError:
        logger.info("Matrix connector cancelled.")
    except Exception:
        logger.exception("Matrix connector crashed.")
    finally:
        await background.cancel_all()
        with contextlib.suppress(Exception):
            await client.close()

        logger.info("Matrix connector stopped.")
