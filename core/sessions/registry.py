from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple

from core.sessions.errors import QueueAlreadyOpen
from core.sessions.models import RoleQueue
from shared.config.session_roles import RoleDefinition, SessionCategory
from shared.logging.logger import get_logger

log = get_logger("core.sessions.registry")


class QueueRegistry:
    """
    Owns every active RoleQueue, keyed by event id.

    At most one queue exists per event id. A finalized queue may be
    replaced by a fresh open(); an open one may not.
    """

    def __init__(self):
        self._queues: Dict[str, RoleQueue] = {}

    # ------------------------------------------------------------------

    def open(
        self,
        event_id: str,
        definitions: Tuple[RoleDefinition, ...],
        *,
        category: Optional[SessionCategory] = None,
        now: Optional[datetime] = None,
    ) -> RoleQueue:
        event_id = str(event_id)

        existing = self._queues.get(event_id)
        if existing is not None and not existing.finalized:
            raise QueueAlreadyOpen(event_id)

        if existing is not None:
            log.info(f"[{event_id}] Replacing finalized queue with a fresh one")

        queue = RoleQueue.create(
            event_id,
            tuple(definitions),
            category=category,
            created_at=now,
        )
        self._queues[event_id] = queue

        log.info(
            f"[{event_id}] Queue opened "
            f"(roles={[d.key for d in queue.definitions]})"
        )
        return queue

    def get(self, event_id: str) -> Optional[RoleQueue]:
        return self._queues.get(str(event_id))

    def close(self, event_id: str) -> None:
        removed = self._queues.pop(str(event_id), None)
        if removed is not None:
            log.info(f"[{event_id}] Queue closed")

    # ------------------------------------------------------------------
    # RESTORE (SNAPSHOT HYDRATION)
    # ------------------------------------------------------------------

    def restore(self, queue: RoleQueue) -> None:
        """
        Register a queue rebuilt from a snapshot.

        Duplicate ids follow the same rule as open().
        """
        existing = self._queues.get(queue.event_id)
        if existing is not None and not existing.finalized:
            raise QueueAlreadyOpen(queue.event_id)
        self._queues[queue.event_id] = queue

    # ------------------------------------------------------------------

    def event_ids(self) -> List[str]:
        return list(self._queues.keys())

    def __iter__(self) -> Iterator[RoleQueue]:
        return iter(list(self._queues.values()))

    def __len__(self) -> int:
        return len(self._queues)

    def __contains__(self, event_id) -> bool:
        return str(event_id) in self._queues
