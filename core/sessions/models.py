"""
Session queue data model.

A RoleQueue is the in-memory state for one scheduled session: ordered role
states, their enrolled participants, and the lifecycle flags. Queues are
owned by a QueueRegistry and mutated only by the enrollment and selection
engines.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from shared.config.session_roles import RoleDefinition, SessionCategory


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def _from_iso(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def normalize_user_id(user_id: Any) -> str:
    """Discord snowflakes arrive as int or str; queues key on str."""
    return str(user_id).strip()


class ResultCode(Enum):
    OK = "ok"
    ROLE_FULL = "role_full"
    UNKNOWN_ROLE = "unknown_role"
    NOT_ENROLLED = "not_enrolled"
    QUEUE_FINALIZED = "queue_finalized"
    QUEUE_FINALIZING = "queue_finalizing"
    NO_SUCH_QUEUE = "no_such_queue"
    ALREADY_OPEN = "already_open"
    ALREADY_FINALIZED = "already_finalized"


class EnrollmentResult:
    """
    Outcome of a join or leave.

    role_key is the role affected (joined or left). changed is False for an
    idempotent re-join. previous_role_key is set when a join moved the user
    out of another role.
    """

    def __init__(
        self,
        code: ResultCode,
        *,
        role_key: Optional[str] = None,
        changed: bool = False,
        previous_role_key: Optional[str] = None,
    ):
        self.code = code
        self.role_key = role_key
        self.changed = changed
        self.previous_role_key = previous_role_key

    @property
    def ok(self) -> bool:
        return self.code is ResultCode.OK

    def __bool__(self) -> bool:
        return self.ok

    def __repr__(self) -> str:
        return (
            f"EnrollmentResult(code={self.code.name}, role_key={self.role_key!r}, "
            f"changed={self.changed}, previous_role_key={self.previous_role_key!r})"
        )


@dataclass(frozen=True)
class Participant:
    user_id: str
    joined_at: datetime

    def to_document(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "joined_at": _to_iso(self.joined_at),
        }

    @classmethod
    def from_document(cls, payload: Mapping[str, Any]) -> "Participant":
        return cls(
            user_id=normalize_user_id(payload["user_id"]),
            joined_at=_from_iso(payload["joined_at"]),
        )


@dataclass
class RoleState:
    definition: RoleDefinition
    enrolled: List[Participant] = field(default_factory=list)

    @property
    def capacity(self) -> int:
        return self.definition.capacity

    @property
    def is_full(self) -> bool:
        return len(self.enrolled) >= self.definition.capacity

    def index_of(self, user_id: str) -> int:
        for i, participant in enumerate(self.enrolled):
            if participant.user_id == user_id:
                return i
        return -1

    def contains(self, user_id: str) -> bool:
        return self.index_of(user_id) != -1

    def to_document(self) -> Dict[str, Any]:
        return {
            "definition": self.definition.to_document(),
            "enrolled": [p.to_document() for p in self.enrolled],
        }


@dataclass
class RoleQueue:
    """
    Queue state for one session.

    roles preserves the configured role order. finalizing is set while the
    selection engine awaits fairness data; finalized is terminal.
    """

    event_id: str
    roles: Dict[str, RoleState]
    category: Optional[SessionCategory] = None
    finalized: bool = False
    finalizing: bool = False
    created_at: datetime = field(default_factory=utc_now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        event_id: str,
        definitions: Tuple[RoleDefinition, ...],
        *,
        category: Optional[SessionCategory] = None,
        created_at: Optional[datetime] = None,
    ) -> "RoleQueue":
        if not definitions:
            raise ValueError(f"Queue {event_id} needs at least one role")

        roles: Dict[str, RoleState] = {}
        for definition in definitions:
            if definition.key in roles:
                raise ValueError(
                    f"Queue {event_id} defines role '{definition.key}' twice"
                )
            roles[definition.key] = RoleState(definition=definition)

        return cls(
            event_id=event_id,
            roles=roles,
            category=category,
            created_at=created_at or utc_now(),
        )

    @property
    def definitions(self) -> Tuple[RoleDefinition, ...]:
        return tuple(state.definition for state in self.roles.values())

    def role_of(self, user_id: str) -> Optional[str]:
        for key, state in self.roles.items():
            if state.contains(user_id):
                return key
        return None

    def enrolled_count(self) -> int:
        return sum(len(state.enrolled) for state in self.roles.values())

    def to_document(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "category": self.category.value if self.category else None,
            "finalized": self.finalized,
            "created_at": _to_iso(self.created_at),
            "roles": [state.to_document() for state in self.roles.values()],
            "metadata": self.metadata or {},
        }

    @classmethod
    def from_document(cls, payload: Mapping[str, Any]) -> "RoleQueue":
        """
        Rebuild a queue from a snapshot. A queue caught mid-finalize is
        restored as open so selection can run again.

        A user keeps only their first seat in snapshot order; later
        duplicates (same role or another role) are dropped.
        """
        roles: Dict[str, RoleState] = {}
        seated = set()
        for entry in payload.get("roles", []):
            definition = RoleDefinition.from_document(entry["definition"])
            enrolled = []
            for p in entry.get("enrolled", []):
                if len(enrolled) >= definition.capacity:
                    break
                participant = Participant.from_document(p)
                if participant.user_id in seated:
                    continue
                seated.add(participant.user_id)
                enrolled.append(participant)
            roles[definition.key] = RoleState(
                definition=definition,
                enrolled=enrolled,
            )

        category = payload.get("category")
        return cls(
            event_id=str(payload["event_id"]),
            roles=roles,
            category=SessionCategory.from_value(category) if category else None,
            finalized=bool(payload.get("finalized", False)),
            created_at=_from_iso(payload["created_at"]),
            metadata=dict(payload.get("metadata") or {}),
        )


@dataclass(frozen=True)
class SelectionResult:
    """
    Read-only outcome of selection for one queue.

    fairness_snapshot holds the score used for every enrolled user that
    was considered. degraded is True when the fairness provider could not
    be used and every score was treated as 0.
    """

    event_id: str
    definitions: Tuple[RoleDefinition, ...]
    per_role: Dict[str, Tuple[Participant, ...]]
    fairness_snapshot: Dict[str, int]
    degraded: bool = False
    warning: Optional[str] = None
    selected_at: datetime = field(default_factory=utc_now)

    def chosen_user_ids(self) -> List[str]:
        out: List[str] = []
        for definition in self.definitions:
            out.extend(p.user_id for p in self.per_role.get(definition.key, ()))
        return out

    def to_document(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "roles": [d.to_document() for d in self.definitions],
            "per_role": {
                key: [p.to_document() for p in chosen]
                for key, chosen in self.per_role.items()
            },
            "fairness_snapshot": dict(self.fairness_snapshot),
            "degraded": self.degraded,
            "warning": self.warning,
            "selected_at": _to_iso(self.selected_at),
        }
