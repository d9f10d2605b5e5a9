import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence, Tuple

from core.sessions.classifier import SessionClassifier
from core.sessions.errors import SessionQueueError, UnclassifiableSession
from core.sessions.models import RoleQueue, SelectionResult, utc_now
from core.sessions.service import SessionQueueService
from shared.logging.logger import get_logger

log = get_logger("core.scheduler")


@dataclass(frozen=True)
class ScheduledSession:
    """One upcoming session as reported by the task board."""

    event_id: str
    title: str
    starts_at: datetime
    list_id: Optional[str] = None
    labels: Sequence[str] = field(default_factory=tuple)
    url: Optional[str] = None
    short_link: Optional[str] = None

    @property
    def queue_ids(self) -> Tuple[str, ...]:
        """
        Ids a queue for this session may be registered under, preferred first.

        Moderators open queues from card links, which carry the short link,
        so the short link wins over the full card id.
        """
        if self.short_link and self.short_link != self.event_id:
            return (self.short_link, self.event_id)
        return (self.event_id,)


class SessionSource(Protocol):
    async def list_sessions(self) -> List[ScheduledSession]:
        ...


OpenHook = Callable[[RoleQueue, ScheduledSession], Awaitable[None]]
FinalizeHook = Callable[[RoleQueue, SelectionResult, ScheduledSession], Awaitable[None]]


class SessionScheduler:
    """
    Periodic driver for the queue lifecycle.

    Each tick:
    - opens a queue for every session starting within the lead window
    - finalizes every open queue whose session has started
    - closes finalized queues once the retention window has passed

    The scheduler never decides enrollment; it only fires the same
    service commands a moderator could fire by hand.
    """

    def __init__(
        self,
        *,
        service: SessionQueueService,
        source: SessionSource,
        classifier: SessionClassifier,
        lead: timedelta = timedelta(minutes=30),
        retention: timedelta = timedelta(minutes=120),
        on_open: Optional[OpenHook] = None,
        on_finalize: Optional[FinalizeHook] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._service = service
        self._source = source
        self._classifier = classifier
        self._lead = lead
        self._retention = retention
        self._on_open = on_open
        self._on_finalize = on_finalize
        self._clock = clock

        self._metrics = {
            "ticks": 0,
            "opened": 0,
            "finalized": 0,
            "closed": 0,
        }

    def get_metrics(self):
        return dict(self._metrics)

    # ------------------------------------------------------------

    async def tick(self) -> None:
        self._metrics["ticks"] += 1

        try:
            sessions = await self._source.list_sessions()
        except Exception as e:
            log.warning(f"Session source unavailable; tick skipped: {e}")
            return

        for session in sessions:
            await self._advance(session)

        self._expire_finalized()

    async def _advance(self, session: ScheduledSession) -> None:
        now = self._clock()
        until_start = session.starts_at - now
        queue = self._find_queue(session)

        if queue is None:
            if timedelta(0) < until_start <= self._lead:
                await self._open(session)
            return

        if queue.finalized or queue.finalizing:
            return

        if until_start <= timedelta(0):
            await self._finalize(queue, session)

    def _find_queue(self, session: ScheduledSession) -> Optional[RoleQueue]:
        for queue_id in session.queue_ids:
            queue = self._service.get_queue(queue_id)
            if queue is not None:
                return queue
        return None

    async def _open(self, session: ScheduledSession) -> None:
        queue_id = session.queue_ids[0]

        try:
            category = self._classifier.classify(
                session.title, list_id=session.list_id, labels=session.labels
            )
        except UnclassifiableSession as e:
            log.warning(f"[{queue_id}] {e}")
            return

        metadata = {
            "title": session.title,
            "starts_at": session.starts_at.isoformat(),
            "url": session.url,
        }
        if queue_id != session.event_id:
            metadata["card_id"] = session.event_id

        try:
            queue = self._service.open_queue(queue_id, category, metadata=metadata)
        except SessionQueueError as e:
            log.warning(f"[{queue_id}] Auto-open skipped: {e}")
            return

        self._metrics["opened"] += 1
        log.info(f"[{queue_id}] Auto-opened {category.value} queue")

        if self._on_open:
            try:
                await self._on_open(queue, session)
            except Exception:
                log.exception(f"[{queue_id}] on_open hook failed")

    async def _finalize(self, queue: RoleQueue, session: ScheduledSession) -> None:
        try:
            result = await self._service.finalize_selection(queue.event_id)
        except SessionQueueError as e:
            log.warning(f"[{queue.event_id}] Auto-finalize skipped: {e}")
            return

        self._metrics["finalized"] += 1

        if self._on_finalize:
            try:
                await self._on_finalize(queue, result, session)
            except Exception:
                log.exception(f"[{queue.event_id}] on_finalize hook failed")

    def _expire_finalized(self) -> None:
        now = self._clock()
        for queue in self._service.registry:
            if not queue.finalized:
                continue
            result = self._service.get_selection(queue.event_id)
            finalized_at = result.selected_at if result else queue.created_at
            if now - finalized_at >= self._retention:
                self._service.close_queue(queue.event_id)
                self._metrics["closed"] += 1

    # ------------------------------------------------------------

    async def run(self, interval_seconds: float) -> None:
        log.info(f"Session scheduler started (interval={interval_seconds}s)")
        try:
            while True:
                try:
                    await self.tick()
                except Exception:
                    log.exception("Session scheduler tick failed")
                await asyncio.sleep(interval_seconds)
        except asyncio.CancelledError:
            log.info("Session scheduler stopped")
            raise
