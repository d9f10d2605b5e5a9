"""
Enrollment engine.

join() and leave() are plain synchronous functions. They must stay free of
awaits: each check-and-append runs as one uninterrupted unit on the event
loop, so two button presses for the last seat cannot both succeed.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from core.sessions.models import (
    EnrollmentResult,
    Participant,
    ResultCode,
    RoleQueue,
    normalize_user_id,
    utc_now,
)


def _locked_result(queue: RoleQueue) -> Optional[EnrollmentResult]:
    if queue.finalized:
        return EnrollmentResult(ResultCode.QUEUE_FINALIZED)
    if queue.finalizing:
        return EnrollmentResult(ResultCode.QUEUE_FINALIZING)
    return None


def join(
    queue: RoleQueue,
    user_id,
    role_key: str,
    *,
    now: Optional[datetime] = None,
) -> EnrollmentResult:
    locked = _locked_result(queue)
    if locked is not None:
        return locked

    target = queue.roles.get(role_key)
    if target is None:
        return EnrollmentResult(ResultCode.UNKNOWN_ROLE, role_key=role_key)

    user_id = normalize_user_id(user_id)
    already_in_target = target.contains(user_id)

    # A full role rejects before the user's current seat is released, so a
    # ROLE_FULL answer leaves the queue exactly as it was.
    if not already_in_target and target.is_full:
        return EnrollmentResult(ResultCode.ROLE_FULL, role_key=role_key)

    previous_role_key = None
    for key, state in queue.roles.items():
        if key == role_key:
            continue
        idx = state.index_of(user_id)
        if idx != -1:
            del state.enrolled[idx]
            previous_role_key = key

    if already_in_target:
        return EnrollmentResult(
            ResultCode.OK,
            role_key=role_key,
            changed=previous_role_key is not None,
            previous_role_key=previous_role_key,
        )

    target.enrolled.append(Participant(user_id=user_id, joined_at=now or utc_now()))

    return EnrollmentResult(
        ResultCode.OK,
        role_key=role_key,
        changed=True,
        previous_role_key=previous_role_key,
    )


def leave(queue: RoleQueue, user_id) -> EnrollmentResult:
    locked = _locked_result(queue)
    if locked is not None:
        return locked

    user_id = normalize_user_id(user_id)

    for key, state in queue.roles.items():
        idx = state.index_of(user_id)
        if idx != -1:
            del state.enrolled[idx]
            return EnrollmentResult(ResultCode.OK, role_key=key, changed=True)

    return EnrollmentResult(ResultCode.NOT_ENROLLED)
