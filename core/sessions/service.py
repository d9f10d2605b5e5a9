"""
Session queue service.

Command handlers for the queue lifecycle: open, join, leave, finalize,
close. The service owns its QueueRegistry (no module-level state), so each
bot runtime and each test gets an isolated set of queues.

Callers (Discord buttons, slash commands, the scheduler tick) invoke these
handlers and act on the typed result; none of them touch a RoleQueue
directly.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Tuple

from core.sessions import enrollment, selection
from core.sessions.errors import NoSuchQueue, QueueAlreadyFinalized, QueueAlreadyOpen
from core.sessions.models import (
    EnrollmentResult,
    ResultCode,
    RoleQueue,
    SelectionResult,
    utc_now,
)
from core.sessions.registry import QueueRegistry
from core.sessions.selection import FairnessFetcher
from shared.config.session_roles import RoleDefinition, SessionCategory
from shared.logging.logger import get_logger

if TYPE_CHECKING:
    from shared.storage.attendance_store import AttendanceStore
    from shared.storage.queue_store import QueueStateStore

log = get_logger("core.sessions.service")

RoleResolver = Callable[[SessionCategory], Tuple[RoleDefinition, ...]]


class SessionQueueService:
    def __init__(
        self,
        *,
        resolve_roles: RoleResolver,
        fetch_scores: Optional[FairnessFetcher] = None,
        fairness_timeout: Optional[float] = None,
        registry: Optional[QueueRegistry] = None,
        store: Optional[QueueStateStore] = None,
        attendance: Optional[AttendanceStore] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._resolve_roles = resolve_roles
        self._fetch_scores = fetch_scores
        self._fairness_timeout = fairness_timeout
        self._registry = registry if registry is not None else QueueRegistry()
        self._store = store
        self._attendance = attendance
        self._clock = clock

        # event_id -> last selection, kept until the queue is closed
        self._results: Dict[str, SelectionResult] = {}

    # ------------------------------------------------------------------
    # PERSISTENCE
    # ------------------------------------------------------------------

    def _persist(self) -> None:
        if self._store is not None:
            self._store.save(self._registry)

    def restore(self) -> int:
        """
        Hydrate the registry from the state store. Returns queues restored.
        """
        if self._store is None:
            return 0

        restored = 0
        for queue in self._store.load():
            try:
                self._registry.restore(queue)
                restored += 1
            except QueueAlreadyOpen:
                log.warning(f"[{queue.event_id}] Duplicate queue in state file; skipped")

        if restored:
            log.info(f"Restored {restored} session queue(s)")
        return restored

    # ------------------------------------------------------------------
    # QUERIES
    # ------------------------------------------------------------------

    @property
    def registry(self) -> QueueRegistry:
        return self._registry

    def get_queue(self, event_id) -> Optional[RoleQueue]:
        return self._registry.get(event_id)

    def get_selection(self, event_id) -> Optional[SelectionResult]:
        return self._results.get(str(event_id))

    # ------------------------------------------------------------------
    # COMMANDS
    # ------------------------------------------------------------------

    def open_queue(
        self,
        event_id,
        category: Any,
        *,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> RoleQueue:
        """
        Create and register the queue for a session.

        Raises QueueAlreadyOpen if the session already has a live queue, and
        RoleConfigError for an unknown category.
        """
        category = SessionCategory.from_value(category)
        definitions = self._resolve_roles(category)

        try:
            queue = self._registry.open(
                str(event_id), definitions, category=category, now=self._clock()
            )
        except QueueAlreadyOpen:
            log.warning(f"[{event_id}] Open rejected: queue already open")
            raise

        if metadata:
            queue.metadata.update(metadata)

        self._results.pop(queue.event_id, None)
        self._persist()
        return queue

    def join_role(self, event_id, user_id, role_key: str) -> EnrollmentResult:
        queue = self._registry.get(event_id)
        if queue is None:
            return EnrollmentResult(ResultCode.NO_SUCH_QUEUE, role_key=role_key)

        result = enrollment.join(queue, user_id, role_key, now=self._clock())

        if result.code is ResultCode.ROLE_FULL:
            log.debug(f"[{event_id}] {user_id} -> {role_key}: role full")
        elif not result.ok:
            log.warning(f"[{event_id}] Join by {user_id} rejected: {result.code.name}")
        elif result.changed:
            moved = f" (from {result.previous_role_key})" if result.previous_role_key else ""
            log.info(f"[{event_id}] {user_id} joined {role_key}{moved}")
            self._persist()

        return result

    def leave_role(self, event_id, user_id) -> EnrollmentResult:
        queue = self._registry.get(event_id)
        if queue is None:
            return EnrollmentResult(ResultCode.NO_SUCH_QUEUE)

        result = enrollment.leave(queue, user_id)

        if result.ok:
            log.info(f"[{event_id}] {user_id} left {result.role_key}")
            self._persist()
        elif result.code is not ResultCode.NOT_ENROLLED:
            log.warning(f"[{event_id}] Leave by {user_id} rejected: {result.code.name}")

        return result

    async def finalize_selection(self, event_id) -> SelectionResult:
        """
        Run selection for a session exactly once.

        Raises NoSuchQueue or QueueAlreadyFinalized. A fairness outage never
        raises; it yields a result with degraded=True.
        """
        queue = self._registry.get(event_id)
        if queue is None:
            log.warning(f"[{event_id}] Finalize rejected: no such queue")
            raise NoSuchQueue(str(event_id))

        try:
            result = await selection.finalize(
                queue,
                self._fetch_scores,
                timeout=self._fairness_timeout,
                now=self._clock(),
            )
        except QueueAlreadyFinalized as e:
            log.warning(f"[{event_id}] Finalize rejected: {e}")
            raise

        self._results[queue.event_id] = result
        self._persist()

        if self._attendance is not None:
            self._attendance.record_attendance(
                result.chosen_user_ids(),
                {
                    "event_id": queue.event_id,
                    "category": queue.category.value if queue.category else None,
                },
                now=result.selected_at,
            )

        return result

    def update_metadata(self, event_id, values: Mapping[str, Any]) -> bool:
        """
        Merge values into a queue's metadata (message ids, titles) and persist.
        """
        queue = self._registry.get(event_id)
        if queue is None:
            return False
        queue.metadata.update(values)
        self._persist()
        return True

    def close_queue(self, event_id) -> None:
        self._registry.close(event_id)
        self._results.pop(str(event_id), None)
        self._persist()
