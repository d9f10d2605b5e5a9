"""
Session queue package.

Role queues for scheduled sessions: enrollment with per-role capacity,
one-shot fair selection when the session starts, and text rendering of both.
SessionQueueService is the entry point for callers.
"""

from .models import (
    EnrollmentResult,
    Participant,
    ResultCode,
    RoleQueue,
    RoleState,
    SelectionResult,
)
from .errors import (
    NoSuchQueue,
    QueueAlreadyFinalized,
    QueueAlreadyOpen,
    SessionQueueError,
    UnclassifiableSession,
)
from .registry import QueueRegistry
from .formatter import describe_roles, describe_selection
from .classifier import SessionClassifier
from .service import SessionQueueService

__all__ = [
    "EnrollmentResult",
    "Participant",
    "ResultCode",
    "RoleQueue",
    "RoleState",
    "SelectionResult",
    "NoSuchQueue",
    "QueueAlreadyFinalized",
    "QueueAlreadyOpen",
    "SessionQueueError",
    "UnclassifiableSession",
    "QueueRegistry",
    "describe_roles",
    "describe_selection",
    "SessionClassifier",
    "SessionQueueService",
]
