"""
Queue state persistence.

Open queues live in memory. When a QUEUE_STATE_PATH is configured the
runtime snapshots the whole registry after every mutation and restores it on
boot, so a restart does not silently drop enrollments.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

from core.sessions.models import RoleQueue
from shared.logging.logger import get_logger
from shared.storage.state_publisher import StatePublisher

log = get_logger("shared.queue_store")

SCHEMA_VERSION = 1


class QueueStateStore:
    def __init__(self, path: Path | str):
        path = Path(path)
        self._name = path.name
        self._publisher = StatePublisher(base_dir=path.parent)

    def save(self, queues: Iterable[RoleQueue]) -> bool:
        payload = {
            "version": SCHEMA_VERSION,
            "queues": [queue.to_document() for queue in queues],
        }
        return self._publisher.publish(self._name, payload)

    def load(self) -> List[RoleQueue]:
        raw = self._publisher.load(self._name)
        if raw is None:
            return []

        if not isinstance(raw, dict) or not isinstance(raw.get("queues"), list):
            log.warning("Queue state file has invalid shape; ignoring")
            return []

        out: List[RoleQueue] = []
        for entry in raw["queues"]:
            try:
                out.append(RoleQueue.from_document(entry))
            except (KeyError, TypeError, ValueError) as e:
                log.warning(f"Skipping unreadable queue snapshot entry: {e}")

        log.info(f"Loaded {len(out)} queue(s) from state file")
        return out
