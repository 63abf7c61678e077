# src/tasktrack/tasks/notifications.py

from __future__ import annotations

from .transitions import Action, Outcome

PREVIEW_MAX_CHARS = 50

ACCESS_WARNING = "⚠️ I need to be invited to this channel first. Please invite me to this room."
REACTION_FAILURE = (
    "⚠️ An error occurred while processing the reaction. "
    "Please try again or contact an administrator."
)
REMOVAL_FAILURE = (
    "⚠️ An error occurred while processing the removed reaction. "
    "Please try again or contact an administrator."
)


def truncate(text: str | None, limit: int = PREVIEW_MAX_CHARS) -> str:
    text = " ".join((text or "").split())
    if len(text) > limit:
        return f"{text[: limit - 3]}..."
    return text


def task_created(*, author: str, status: str, preview: str, link: str) -> str:
    lines = [f"Task created by {author} with status *{status}*"]
    if preview:
        lines.append(f"> {preview}")
    if link:
        lines.append(f"Jump to task: {link}")
    return "\n".join(lines)


def status_changed(*, status: str, actor: str) -> str:
    return f"Task status changed to *{status}* by {actor}"


def task_reverted(*, status: str, actor: str) -> str:
    return f"Task reverted to *{status}* by {actor}"


def task_deleted(*, actor: str) -> str:
    return f"Task deleted by {actor}"


def transition_rejected(*, from_status: str, to_status: str, actor: str) -> str:
    return (
        f"⚠️ {actor}: a task cannot move from *{from_status}* to *{to_status}*. "
        "Use /task_states to see the allowed transitions."
    )


def render_outcome(outcome: Outcome, *, link: str = "") -> str | None:
    """Render the thread reply for an applied outcome (None means stay quiet)."""
    actor = outcome.event.user

    if outcome.action == Action.CREATE and outcome.task is not None:
        return task_created(
            author=outcome.task.author,
            status=outcome.task.status,
            preview=outcome.task.preview,
            link=link,
        )
    if outcome.action == Action.TRANSITION and outcome.to_status:
        return status_changed(status=outcome.to_status, actor=actor)
    if outcome.action == Action.REVERT and outcome.to_status:
        return task_reverted(status=outcome.to_status, actor=actor)
    if outcome.action == Action.DELETE:
        return task_deleted(actor=actor)
    if outcome.action == Action.REJECT and outcome.from_status and outcome.to_status:
        return transition_rejected(
            from_status=outcome.from_status,
            to_status=outcome.to_status,
            actor=actor,
        )
    return None
