# tests/test_commands.py

from __future__ import annotations

from tasktrack.cli.commands import CommandRegistry, registry


def test_command_registry_routes_4_and_5_params(state) -> None:
    reg = CommandRegistry()
    called = {"h4": 0, "h5": 0}

    def h4(state, args, user_id, room_id):
        called["h4"] += 1
        return "h4"

    def h5(state, args, user_id, room_id, links):
        called["h5"] += 1
        if links is not None:
            return links(room_id, args[0])
        return "h5"

    reg.register("a", h4, "a")
    reg.register("b", h5, "b")

    assert reg.handle(state, "/a x", user_id="u", room_id="r") == "h4"
    assert reg.handle(state, "/b y", user_id="u", room_id="r", links=lambda c, m: f"{c}/{m}") == "r/y"
    assert reg.handle(state, "/b y", user_id="u", room_id="r") == "h5"
    assert called["h4"] == 1
    assert called["h5"] == 2


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_help_lists_task_commands(state) -> None:
    text = registry.handle(state, "/help") or ""
    for name in ("/tasks", "/task_states", "/reload_states"):
        assert name in text
    assert registry.handle(state, "/h") == text


def test_tasks_empty(state) -> None:
    assert registry.handle(state, "/tasks") == "No active tasks."


def test_tasks_lists_only_active(state) -> None:
    store = state.task_store
    store.create(channel="!a", message_id="$1", author="@alice:x", status="open", created_at=1.0, preview="fix login")
    store.create(channel="!a", message_id="$2", author="@bob:x", status="working", created_at=2.0)
    store.create(channel="!b", message_id="$3", author="@carol:x", status="finished", created_at=3.0)

    text = registry.handle(state, "/tasks", links=lambda c, m: f"https://chat.example/{c}/{m}") or ""
    lines = text.splitlines()

    assert lines[0] == "Active Tasks:"
    assert len(lines) == 3
    assert "👀 `open` fix login | https://chat.example/!a/$1 | !a by @alice:x" in lines[1]
    assert "🔨 `working` (no preview)" in lines[2]
    assert "$3" not in text


def test_task_states_shows_transitions(state) -> None:
    text = registry.handle(state, "/task_states") or ""
    assert text.startswith("Available Task States:")
    assert "- 👀 `open`" in text
    assert ":eyes:" not in text
    assert "Transitions to: working, finished" in text
    assert "Transitions to: open, review, finished" in text
    assert "Transitions to: None" in text
    assert registry.handle(state, "/states") == text


def _insert_state(state, name: str, emoji: str, order_num: int, transitions: str) -> None:
    with state.db.cursor() as cur:
        cur.execute(
            "INSERT INTO task_states (name, emoji, order_num, is_terminal, allowed_transitions) VALUES (?, ?, ?, 0, ?)",
            (name, emoji, order_num, transitions),
        )


def test_reload_states(state) -> None:
    _insert_state(state, "blocked", "no_entry", 5, "open")
    assert registry.handle(state, "/reload_states") == "Reloaded 5 task states."
    assert state.catalog.by_emoji("no_entry").name == "blocked"

    # A broken catalog is refused and the previous one stays active.
    _insert_state(state, "broken", "eyes", 6, "open")
    reply = registry.handle(state, "/reload_states") or ""
    assert reply.startswith("Reload failed")
    assert state.catalog.by_emoji("eyes").name == "open"
    assert state.catalog.by_name("broken") is None


def test_tasks_lists_every_active_task(state) -> None:
    for i in range(250):
        state.task_store.create(channel="!a", message_id=f"${i}", author="@a:x", status="open", created_at=float(i))

    lines = (registry.handle(state, "/tasks") or "").splitlines()
    assert len(lines) == 251
