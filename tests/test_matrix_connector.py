# tests/test_matrix_connector.py

from __future__ import annotations

from types import SimpleNamespace

import pytest
from nio import RoomMessagesResponse

from tasktrack.connectors.matrix_chat import MatrixChat
from tasktrack.connectors.matrix_connector import MatrixEventRouter
from tasktrack.connectors.matrix_reactions import ReactionIndex
from tasktrack.tasks.task_models import ReactionDirection, ReactionEvent

BOT = "@bot:example.org"
STARTUP_MS = 1_700_000_000_000


class FakeMatrixClient:
    """Just enough of nio.AsyncClient for MatrixChat."""

    def __init__(self, rooms=("!r",), pages=None) -> None:
        self.user_id = BOT
        self.rooms = {r: object() for r in rooms}
        self.next_batch = "s_now"
        self.pages = list(pages or [])
        self.message_calls: list[dict] = []

    async def room_messages(self, room_id, start=None, direction=None, limit=10):
        self.message_calls.append({"room_id": room_id, "start": start, "limit": limit})
        return self.pages.pop(0)


class RecordingHandler:
    def __init__(self) -> None:
        self.events: list[ReactionEvent] = []
        self.joins: list[tuple[str, str]] = []

    async def on_reaction(self, event: ReactionEvent):
        self.events.append(event)
        return None

    async def on_member_joined(self, channel: str, user: str) -> int:
        self.joins.append((channel, user))
        return 0


def reaction(event_id: str, target: str, key: str, *, sender="@alice:example.org", ts=STARTUP_MS + 1000):
    return SimpleNamespace(
        event_id=event_id,
        sender=sender,
        server_timestamp=ts,
        source={
            "type": "m.reaction",
            "event_id": event_id,
            "sender": sender,
            "content": {"m.relates_to": {"rel_type": "m.annotation", "event_id": target, "key": key}},
        },
    )


def message(event_id: str, body: str, ts: int, sender="@alice:example.org"):
    return SimpleNamespace(
        event_id=event_id,
        sender=sender,
        server_timestamp=ts,
        source={"type": "m.room.message", "event_id": event_id, "sender": sender, "content": {"body": body}},
    )


def redaction(redacts: str, *, sender="@alice:example.org", ts=STARTUP_MS + 5000):
    return SimpleNamespace(redacts=redacts, sender=sender, server_timestamp=ts)


ROOM = SimpleNamespace(room_id="!r")


@pytest.fixture()
def recorder() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture()
def chat() -> MatrixChat:
    return MatrixChat(FakeMatrixClient(), ReactionIndex())


@pytest.fixture()
def router(chat: MatrixChat, recorder: RecordingHandler) -> MatrixEventRouter:
    return MatrixEventRouter(chat, recorder, startup_ms=STARTUP_MS)


@pytest.mark.asyncio
async def test_live_reaction_is_added(router: MatrixEventRouter, recorder: RecordingHandler) -> None:
    await router.on_reaction(ROOM, reaction("$r1", "$msg", "👀"))

    assert recorder.events == [
        ReactionEvent("eyes", "@alice:example.org", "!r", "$msg", ReactionDirection.ADDED)
    ]


@pytest.mark.asyncio
async def test_redaction_becomes_removal_of_original_reaction(
    router: MatrixEventRouter, recorder: RecordingHandler, chat: MatrixChat
) -> None:
    # Reacted before the bot started: remembered, not replayed.
    await router.on_reaction(ROOM, reaction("$r1", "$msg", "🔨", ts=STARTUP_MS - 60_000))
    assert recorder.events == []
    assert [r.emoji for r in chat.index.reactions_for("!r", "$msg")] == ["hammer"]

    await router.on_redaction(ROOM, redaction("$r1", sender="@carol:example.org"))

    assert recorder.events == [
        ReactionEvent("hammer", "@carol:example.org", "!r", "$msg", ReactionDirection.REMOVED)
    ]
    assert chat.index.reactions_for("!r", "$msg") == []


@pytest.mark.asyncio
async def test_unknown_or_old_redactions_are_ignored(
    router: MatrixEventRouter, recorder: RecordingHandler
) -> None:
    await router.on_redaction(ROOM, redaction("$never_seen"))
    await router.on_reaction(ROOM, reaction("$r1", "$msg", "👀", ts=STARTUP_MS - 2))
    await router.on_redaction(ROOM, redaction("$r1", ts=STARTUP_MS - 1))
    assert recorder.events == []


@pytest.mark.asyncio
async def test_bot_reactions_and_other_rooms_are_skipped(recorder: RecordingHandler) -> None:
    chat = MatrixChat(FakeMatrixClient(), ReactionIndex(), allowed_rooms={"!r"})
    router = MatrixEventRouter(chat, recorder, startup_ms=STARTUP_MS)

    await router.on_reaction(ROOM, reaction("$r1", "$msg", "👀", sender=BOT))
    await router.on_reaction(SimpleNamespace(room_id="!other"), reaction("$r2", "$msg", "👀"))

    assert recorder.events == []
    # Still indexed, so the current reactions of a message stay accurate.
    assert len(chat.index.reactions_for("!r", "$msg")) == 1


@pytest.mark.asyncio
async def test_member_join_only_for_live_new_joins(router: MatrixEventRouter, recorder: RecordingHandler) -> None:
    live = STARTUP_MS + 10
    await router.on_member(ROOM, SimpleNamespace(membership="join", state_key=BOT, server_timestamp=live, prev_content=None))
    await router.on_member(
        ROOM, SimpleNamespace(membership="join", state_key=BOT, server_timestamp=live, prev_content={"membership": "join"})
    )
    await router.on_member(ROOM, SimpleNamespace(membership="leave", state_key=BOT, server_timestamp=live, prev_content=None))
    await router.on_member(ROOM, SimpleNamespace(membership="join", state_key=BOT, server_timestamp=1, prev_content=None))

    assert recorder.joins == [("!r", BOT)]


def _page(chunk, end):
    return RoomMessagesResponse(room_id="!r", chunk=chunk, start="s", end=end)


@pytest.mark.asyncio
async def test_fetch_history_stops_at_window_and_attaches_reactions() -> None:
    client = FakeMatrixClient(
        pages=[
            _page(
                [
                    reaction("$r1", "$m2", "👀", ts=3_000),
                    message("$m2", "second", 2_500),
                    reaction("$r0", "$m1", "✅", ts=2_200),
                    message("$m1", "first", 2_000),
                ],
                end="t1",
            ),
            _page(
                [
                    message("$old", "too old", 500),
                    message("$older", "never read", 100),
                ],
                end="t2",
            ),
        ]
    )
    chat = MatrixChat(client, ReactionIndex())

    msgs = await chat.fetch_history("!r", oldest_ts=1.0, limit=100)

    assert [m.message_id for m in msgs] == ["$m2", "$m1"]
    assert [r.emoji for r in msgs[0].reactions] == ["eyes"]
    assert [r.emoji for r in msgs[1].reactions] == ["white_check_mark"]
    assert msgs[0].text == "second"
    assert msgs[0].ts == 2.5
    assert [c["start"] for c in client.message_calls] == ["s_now", "t1"]


@pytest.mark.asyncio
async def test_fetch_history_honours_limit() -> None:
    client = FakeMatrixClient(
        pages=[_page([message("$m3", "c", 3_000), message("$m2", "b", 2_000), message("$m1", "a", 1_500)], end="t1")]
    )
    chat = MatrixChat(client, ReactionIndex())

    msgs = await chat.fetch_history("!r", oldest_ts=0.0, limit=2)

    assert [m.message_id for m in msgs] == ["$m3", "$m2"]
    assert len(client.message_calls) == 1
