"""
Text rendering for queues and selections.

Pure functions only: the output depends on the arguments and nothing else,
so the Discord layer can post it as-is and tests can compare it verbatim.
"""
from __future__ import annotations

from typing import List, Mapping, Optional

from core.sessions.models import RoleQueue, SelectionResult, normalize_user_id


def mention(user_id: str) -> str:
    return f"<@{user_id}>"


def _format_score(score) -> str:
    if isinstance(score, float) and score.is_integer():
        score = int(score)
    return str(score)


def describe_roles(queue: RoleQueue) -> str:
    """
    One line per role: label, fill count, capacity.

        **Co-Host** (0/1)
        **Interviewer** (3/12) FULL
    """
    lines: List[str] = []
    for state in queue.roles.values():
        fill = len(state.enrolled)
        line = f"**{state.definition.label}** ({fill}/{state.capacity})"
        if state.is_full:
            line += " FULL"
        lines.append(line)

    if queue.finalized:
        lines.append("")
        lines.append("_Queue closed. Attendees have been selected._")
    elif queue.finalizing:
        lines.append("")
        lines.append("_Selecting attendees..._")

    return "\n".join(lines)


def describe_selection(
    result: SelectionResult,
    fairness_scores: Optional[Mapping[str, object]] = None,
) -> str:
    """
    Numbered attendee list per role, annotated with each user's score.

    Unfilled seats render as bare numbers up to the role capacity.
    When fairness_scores is None the result's own snapshot is used.
    Explicit score keys are normalized like user ids, so int snowflakes match.
    """
    if fairness_scores is None:
        scores = result.fairness_snapshot
    else:
        scores = {normalize_user_id(k): v for k, v in fairness_scores.items()}

    blocks: List[str] = []
    for definition in result.definitions:
        chosen = result.per_role.get(definition.key, ())
        lines = [f"**{definition.label}** ({len(chosen)}/{definition.capacity})"]

        for slot in range(1, definition.capacity + 1):
            if slot <= len(chosen):
                user_id = chosen[slot - 1].user_id
                score = _format_score(scores.get(user_id, 0))
                lines.append(f"{slot}. {mention(user_id)} ({score})")
            else:
                lines.append(f"{slot}.")

        blocks.append("\n".join(lines))

    text = "\n\n".join(blocks)

    if result.degraded:
        text += "\n\n_Fairness data was unavailable; seats were assigned in join order._"

    return text
