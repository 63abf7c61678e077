# src/tasktrack/tasks/reaction_handler.py

from __future__ import annotations

"""
Event boundary between the chat connector and the state machine.

Each event is handled on its own: access problems are reported to the
channel once, any other failure is logged and reported generically, and
nothing propagates to the caller (the connector's sync loop).
"""

import contextlib
import logging

from ..core.ports import ChannelAccessError, ChatPlatform
from . import notifications
from .reconcile import ReconciliationScanner
from .task_models import ReactionDirection, ReactionEvent
from .transitions import Action, Outcome, TransitionEngine

logger = logging.getLogger(__name__)


class ReactionHandler:
    def __init__(
        self,
        engine: TransitionEngine,
        chat: ChatPlatform,
        scanner: ReconciliationScanner | None = None,
    ) -> None:
        self._engine = engine
        self._chat = chat
        self._scanner = scanner

    async def _reply(self, event: ReactionEvent, text: str) -> None:
        await self._chat.post_reply(event.channel, text, thread_id=event.message_id)

    async def on_reaction(self, event: ReactionEvent) -> Outcome | None:
        """Handle one reaction event. Returns the outcome, or None if the event was dropped."""
        # Unknown emoji: not a task-control reaction, stay silent and skip the network.
        if self._engine.catalog.by_emoji(event.emoji) is None:
            logger.debug("Ignoring reaction %r (no matching state)", event.emoji)
            return None

        try:
            await self._chat.ensure_member(event.channel)

            present: set[str] | None = None
            preview = ""
            if event.direction == ReactionDirection.REMOVED:
                reactions = await self._chat.current_reactions(event.channel, event.message_id)
                present = {r.emoji for r in reactions}
            elif self._engine.would_create(event):
                message = await self._chat.fetch_message(event.channel, event.message_id)
                preview = notifications.truncate(message.text if message else "")

            outcome = self._engine.apply(event, present, preview=preview)

            link = ""
            if outcome.action == Action.CREATE:
                link = self._chat.message_link(event.channel, event.message_id)
            text = notifications.render_outcome(outcome, link=link)
            if text:
                # Already committed: a lost notification is not a failed reaction.
                try:
                    await self._reply(event, text)
                except Exception:
                    logger.exception(
                        "Failed to post notification action=%s channel=%s message=%s",
                        outcome.action.value,
                        event.channel,
                        event.message_id,
                    )
            return outcome

        except ChannelAccessError as e:
            logger.warning("Channel access denied channel=%s: %s", event.channel, e)
            with contextlib.suppress(Exception):
                await self._reply(event, notifications.ACCESS_WARNING)
            return None

        except Exception:
            logger.exception(
                "Reaction handler error direction=%s emoji=%s channel=%s message=%s user=%s",
                event.direction.value,
                event.emoji,
                event.channel,
                event.message_id,
                event.user,
            )
            msg = (
                notifications.REMOVAL_FAILURE
                if event.direction == ReactionDirection.REMOVED
                else notifications.REACTION_FAILURE
            )
            try:
                await self._reply(event, msg)
            except Exception:
                logger.debug("Failed to report handler error to channel.", exc_info=True)
            return None

    async def on_member_joined(self, channel: str, user: str) -> int:
        """Backfill a channel when the bot itself joins it. Returns tasks created."""
        bot = self._chat.bot_user_id()
        if not bot or user != bot:
            logger.debug("Member %s joined %s (not the bot), ignoring", user, channel)
            return 0
        if self._scanner is None:
            return 0

        logger.info("Bot added to channel %s; scanning history", channel)
        try:
            return await self._scanner.scan_channel(channel)
        except Exception:
            logger.exception("Error scanning channel %s after join", channel)
            return 0
