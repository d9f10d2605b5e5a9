"""
Selection engine.

Chooses who fills each role when a session starts. Per role, enrolled
participants are ordered by (fairness score ascending, joined_at ascending)
with a stable sort, so equal keys keep enrollment order. The lowest score
wins: a user who has run fewer sessions this period goes first.

Fairness data is fetched only here, never during join/leave. While the
fetch is pending the queue is marked finalizing and rejects enrollment
changes.
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple, Union

from core.sessions.errors import QueueAlreadyFinalized
from core.sessions.models import (
    Participant,
    RoleQueue,
    SelectionResult,
    normalize_user_id,
    utc_now,
)
from shared.logging.logger import get_logger

log = get_logger("core.sessions.selection")

Score = Union[int, float]
FairnessFetcher = Callable[[], Awaitable[Mapping[str, Score]]]

DEGRADED_WARNING = (
    "Fairness data unavailable; every score treated as 0 and "
    "seats assigned in join order"
)


def sanitize_scores(raw: Any) -> Optional[Dict[str, Score]]:
    """
    Normalize a provider response to {user_id: score}.

    Returns None when the response is malformed (not a mapping, or any
    value that is not a real number).
    """
    if not isinstance(raw, Mapping):
        return None

    scores: Dict[str, Score] = {}
    for user_id, value in raw.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        if value != value:  # NaN
            return None
        scores[normalize_user_id(user_id)] = value
    return scores


def _rank_role(
    enrolled: Tuple[Participant, ...],
    capacity: int,
    scores: Mapping[str, Score],
) -> Tuple[Participant, ...]:
    entries = list(enrolled)
    entries.sort(key=lambda p: (scores.get(p.user_id, 0), p.joined_at))
    return tuple(entries[:capacity])


def compute_selection(
    queue: RoleQueue,
    scores: Mapping[str, Score],
    *,
    degraded: bool = False,
    warning: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SelectionResult:
    """
    Pure ranking step: does not touch queue flags.
    """
    per_role: Dict[str, Tuple[Participant, ...]] = {}
    snapshot: Dict[str, Score] = {}

    for key, state in queue.roles.items():
        enrolled = tuple(state.enrolled)
        for participant in enrolled:
            snapshot[participant.user_id] = scores.get(participant.user_id, 0)
        per_role[key] = _rank_role(enrolled, state.capacity, scores)

    return SelectionResult(
        event_id=queue.event_id,
        definitions=queue.definitions,
        per_role=per_role,
        fairness_snapshot=snapshot,
        degraded=degraded,
        warning=warning,
        selected_at=now or utc_now(),
    )


def select(
    queue: RoleQueue,
    fairness_scores: Optional[Mapping[str, Score]],
    *,
    now: Optional[datetime] = None,
) -> SelectionResult:
    """
    Run selection once and mark the queue finalized.

    fairness_scores of None (or a malformed mapping) switches to
    degraded-fairness mode.
    """
    if queue.finalized:
        raise QueueAlreadyFinalized(queue.event_id)

    scores = sanitize_scores(fairness_scores) if fairness_scores is not None else None

    if scores is None:
        result = compute_selection(
            queue, {}, degraded=True, warning=DEGRADED_WARNING, now=now
        )
    else:
        result = compute_selection(queue, scores, now=now)

    queue.finalized = True

    log.info(
        f"[{queue.event_id}] Selection complete "
        f"(chosen={len(result.chosen_user_ids())}, "
        f"enrolled={queue.enrolled_count()}, degraded={result.degraded})"
    )
    return result


async def finalize(
    queue: RoleQueue,
    fetch_scores: Optional[FairnessFetcher],
    *,
    timeout: Optional[float] = None,
    now: Optional[datetime] = None,
) -> SelectionResult:
    """
    Lock the queue, fetch fairness data, then select.

    Provider failure of any kind (exception, timeout, malformed payload)
    degrades fairness instead of failing the selection.
    """
    if queue.finalized:
        raise QueueAlreadyFinalized(queue.event_id)
    if queue.finalizing:
        raise QueueAlreadyFinalized(queue.event_id, in_progress=True)

    queue.finalizing = True
    try:
        raw: Any = None
        if fetch_scores is None:
            log.warning(f"[{queue.event_id}] No fairness provider configured")
        else:
            try:
                if timeout:
                    raw = await asyncio.wait_for(fetch_scores(), timeout=timeout)
                else:
                    raw = await fetch_scores()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.warning(f"[{queue.event_id}] Fairness provider failed: {e!r}")
                raw = None

        if raw is not None and sanitize_scores(raw) is None:
            log.warning(
                f"[{queue.event_id}] Fairness provider returned a malformed "
                f"response ({type(raw).__name__})"
            )
            raw = None

        result = select(queue, raw, now=now)
    finally:
        queue.finalizing = False

    if result.degraded:
        log.warning(f"[{queue.event_id}] {DEGRADED_WARNING}")

    return result
