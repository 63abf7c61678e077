# tests/test_matrix_reactions.py

from __future__ import annotations

import pytest

from tasktrack.connectors.matrix_reactions import ReactionIndex, parse_annotation


def _annotation(target: str = "$msg", key: str = "👀", rel_type: str = "m.annotation") -> dict:
    return {
        "type": "m.reaction",
        "event_id": "$r1",
        "sender": "@bob:example.org",
        "content": {"m.relates_to": {"rel_type": rel_type, "event_id": target, "key": key}},
    }


def test_parse_annotation() -> None:
    assert parse_annotation(_annotation()) == ("$msg", "eyes")
    assert parse_annotation(_annotation(key=":mag:")) == ("$msg", "mag")
    assert parse_annotation(_annotation(key="\U0001f680")) == ("$msg", "rocket")


@pytest.mark.parametrize(
    "source",
    [
        None,
        {},
        {"type": "m.room.message", "content": {"body": "hi"}},
        {"type": "m.reaction", "content": {}},
        {"type": "m.reaction"},
        _annotation(rel_type="m.thread"),
        _annotation(target=""),
        _annotation(key="  "),
    ],
)
def test_parse_annotation_rejects_non_annotations(source) -> None:
    assert parse_annotation(source) is None


def test_index_add_remove_and_list() -> None:
    index = ReactionIndex()
    assert index.add(room_id="!r", reaction_id="$1", target_id="$m", emoji="hammer", sender="@a:x", ts=20.0)
    assert index.add(room_id="!r", reaction_id="$2", target_id="$m", emoji="eyes", sender="@b:x", ts=10.0)
    assert index.add(room_id="!r", reaction_id="$3", target_id="$other", emoji="eyes", sender="@b:x", ts=5.0)
    assert not index.add(room_id="!r", reaction_id="$1", target_id="$m", emoji="hammer", sender="@a:x", ts=20.0)
    assert [r.emoji for r in index.reactions_for("!r", "$other")] == ["eyes"]

    assert [r.emoji for r in index.reactions_for("!r", "$m")] == ["eyes", "hammer"]
    assert index.reactions_for("!elsewhere", "$m") == []

    gone = index.remove("$1")
    assert gone is not None
    assert (gone.room_id, gone.target_id, gone.emoji, gone.sender) == ("!r", "$m", "hammer", "@a:x")
    assert [r.emoji for r in index.reactions_for("!r", "$m")] == ["eyes"]

    assert index.remove("$1") is None
    assert index.remove("$unknown") is None


def test_index_evicts_oldest_entries() -> None:
    index = ReactionIndex(max_entries=2)
    index.add(room_id="!r", reaction_id="$1", target_id="$m1", emoji="eyes", sender="@a:x", ts=1.0)
    index.add(room_id="!r", reaction_id="$2", target_id="$m2", emoji="eyes", sender="@a:x", ts=2.0)
    index.add(room_id="!r", reaction_id="$3", target_id="$m3", emoji="eyes", sender="@a:x", ts=3.0)

    assert index.reactions_for("!r", "$m1") == []
    assert index.remove("$1") is None
    assert len(index.reactions_for("!r", "$m3")) == 1
