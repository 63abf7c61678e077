# src/tasktrack/tasks/reconcile.py

from __future__ import annotations

"""
Channel history backfill.

Replays recent messages and the reactions already on them, creating tasks
for messages that are not tracked yet. A tracked message is never touched:
the scan only fills gaps, so running it again is harmless.
"""

import logging
import time
from collections.abc import Callable

from ..core.ports import ChatPlatform
from .notifications import truncate
from .state_catalog import StateCatalog
from .task_models import HistoryMessage, TaskState
from .task_store import DuplicateTaskError, TaskStore

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60


class ReconciliationScanner:
    def __init__(
        self,
        catalog: StateCatalog,
        store: TaskStore,
        chat: ChatPlatform,
        *,
        lookback_days: int = 90,
        history_limit: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._chat = chat
        self._lookback_s = max(0, int(lookback_days)) * DAY_SECONDS
        self._history_limit = max(1, int(history_limit))
        self._clock = clock

    def first_state(self, message: HistoryMessage) -> TaskState | None:
        """
        The state of the earliest state-reaction on the message.

        Reactions are compared by the time they were applied; ties fall back
        to the catalog order.
        """
        ranked: list[tuple[float, int, TaskState]] = []
        for r in message.reactions:
            st = self._catalog.by_emoji(r.emoji)
            if st is not None:
                ranked.append((r.ts, st.order_num, st))
        if not ranked:
            return None
        ranked.sort(key=lambda item: (item[0], item[1]))
        return ranked[0][2]

    async def scan_channel(self, channel: str) -> int:
        """Backfill one channel. Returns the number of tasks created."""
        now = float(self._clock())
        oldest = now - self._lookback_s

        messages = await self._chat.fetch_history(channel, oldest_ts=oldest, limit=self._history_limit)
        candidates = [m for m in messages if m.reactions and m.author and m.message_id]
        logger.info("Scanning channel %s: %d messages with reactions", channel, len(candidates))

        created = 0
        for message in candidates:
            if self._store.find(channel, message.message_id) is not None:
                continue

            state = self.first_state(message)
            if state is None or state.name != self._catalog.entry_state().name:
                continue

            assert message.author is not None
            try:
                self._store.create(
                    channel=channel,
                    message_id=message.message_id,
                    author=message.author,
                    status=state.name,
                    created_at=now,
                    changed_by=message.author,
                    preview=truncate(message.text),
                )
            except DuplicateTaskError:
                logger.debug("Backfill lost race channel=%s message=%s", channel, message.message_id)
                continue

            created += 1
            logger.info("Backfilled task channel=%s message=%s", channel, message.message_id)

        logger.info("Channel scan complete channel=%s created=%d", channel, created)
        return created

    async def scan_all_channels(self) -> dict[str, int]:
        """Backfill every joined channel; one failing channel does not stop the sweep."""
        try:
            channels = await self._chat.list_joined_channels()
        except Exception:
            logger.exception("Failed to list joined channels; historical scan skipped")
            return {}

        logger.info("Historical scan: %d channels", len(channels))
        results: dict[str, int] = {}
        for channel in channels:
            try:
                results[channel] = await self.scan_channel(channel)
            except Exception:
                logger.exception("Error scanning channel %s", channel)
        logger.info("Historical scan complete: %d tasks created", sum(results.values()))
        return results
