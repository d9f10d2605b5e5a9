"""
Session queue exceptions.

Raised by operations that return a value on success (open, finalize,
classify). Join and leave report through EnrollmentResult instead.
"""
from __future__ import annotations

from core.sessions.models import ResultCode


class SessionQueueError(Exception):
    """Base class for all session queue errors."""

    code: ResultCode = None

    def __init__(self, event_id, message: str):
        self.event_id = event_id
        super().__init__(message)


class QueueAlreadyOpen(SessionQueueError):
    code = ResultCode.ALREADY_OPEN

    def __init__(self, event_id):
        super().__init__(event_id, f"Queue for session {event_id} is already open")


class NoSuchQueue(SessionQueueError):
    code = ResultCode.NO_SUCH_QUEUE

    def __init__(self, event_id):
        super().__init__(event_id, f"No queue registered for session {event_id}")


class QueueAlreadyFinalized(SessionQueueError):
    code = ResultCode.ALREADY_FINALIZED

    def __init__(self, event_id, *, in_progress: bool = False):
        self.in_progress = in_progress
        state = "being finalized" if in_progress else "already finalized"
        super().__init__(event_id, f"Queue for session {event_id} is {state}")


class UnclassifiableSession(Exception):
    """The session's category could not be derived from board data."""

    def __init__(self, title: str, list_id=None):
        self.title = title
        self.list_id = list_id
        super().__init__(
            f"Cannot classify session {title!r} (list={list_id or 'unknown'})"
        )
