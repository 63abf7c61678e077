# src/tasktrack/connectors/matrix_reactions.py

from __future__ import annotations

"""
In-memory index of Matrix reactions.

Matrix reports a reaction as an m.reaction event annotating another event,
and reports its removal as a redaction that only names the reaction event id.
The index remembers every annotation seen (live sync or history pagination)
so a redaction can be turned back into "user X removed emoji Y from message Z",
and so the current reactions of a message can be listed without a server call.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

from ..tasks.emoji_keys import normalize_key
from ..tasks.task_models import Reaction

logger = logging.getLogger(__name__)

REACTION_EVENT_TYPE = "m.reaction"
ANNOTATION_REL_TYPE = "m.annotation"


@dataclass(frozen=True, slots=True)
class IndexedReaction:
    reaction_id: str
    room_id: str
    target_id: str
    emoji: str
    sender: str
    ts: float


def parse_annotation(source: dict[str, Any] | None) -> tuple[str, str] | None:
    """
    Extract (target_event_id, key) from a raw m.reaction event.

    Returns None for anything that is not a live annotation (other event
    types, redacted reactions with stripped content, malformed relations).
    """
    if not isinstance(source, dict) or source.get("type") != REACTION_EVENT_TYPE:
        return None
    content = source.get("content") or {}
    rel = content.get("m.relates_to") if isinstance(content, dict) else None
    if not isinstance(rel, dict) or rel.get("rel_type") != ANNOTATION_REL_TYPE:
        return None
    target = rel.get("event_id")
    key = rel.get("key")
    if not target or not isinstance(key, str) or not key.strip():
        return None
    return str(target), normalize_key(key)


class ReactionIndex:
    def __init__(self, max_entries: int = 50_000) -> None:
        self._max_entries = max(1, int(max_entries))
        self._lock = threading.Lock()
        self._by_id: OrderedDict[str, IndexedReaction] = OrderedDict()
        self._by_target: dict[tuple[str, str], dict[str, IndexedReaction]] = {}

    def add(
        self,
        *,
        room_id: str,
        reaction_id: str,
        target_id: str,
        emoji: str,
        sender: str,
        ts: float,
    ) -> bool:
        """Remember a reaction. Returns False if it was already known."""
        item = IndexedReaction(
            reaction_id=reaction_id,
            room_id=room_id,
            target_id=target_id,
            emoji=emoji,
            sender=sender,
            ts=float(ts),
        )
        with self._lock:
            if reaction_id in self._by_id:
                return False
            self._by_id[reaction_id] = item
            self._by_target.setdefault((room_id, target_id), {})[reaction_id] = item

            while len(self._by_id) > self._max_entries:
                _, old = self._by_id.popitem(last=False)
                self._drop_from_target(old)
        return True

    def _drop_from_target(self, item: IndexedReaction) -> None:
        key = (item.room_id, item.target_id)
        bucket = self._by_target.get(key)
        if bucket is None:
            return
        bucket.pop(item.reaction_id, None)
        if not bucket:
            del self._by_target[key]

    def remove(self, reaction_id: str) -> IndexedReaction | None:
        """Forget a redacted reaction and return what it was (None if unknown)."""
        with self._lock:
            item = self._by_id.pop(reaction_id, None)
            if item is not None:
                self._drop_from_target(item)
        if item is None:
            logger.debug("Redaction of unknown event %s ignored", reaction_id)
        return item

    def reactions_for(self, room_id: str, target_id: str) -> list[Reaction]:
        with self._lock:
            items = list(self._by_target.get((room_id, target_id), {}).values())
        items.sort(key=lambda r: r.ts)
        return [Reaction(emoji=r.emoji, sender=r.sender, ts=r.ts) for r in items]
