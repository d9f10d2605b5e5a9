"""
Composition root for the session queue runtime.

Builds the session service and the scheduler from SessionSettings. Nothing
here touches Discord; core.discord_app wires the result into the
supervisor.
"""

from datetime import timedelta
from typing import Optional

from core.scheduler import SessionScheduler
from core.sessions.classifier import SessionClassifier
from core.sessions.service import SessionQueueService
from services.hyra.client import HyraClient
from services.trello.client import TrelloSessionSource
from shared.config.session_roles import RoleConfigResolver
from shared.config.sessions import SessionSettings
from shared.logging.logger import get_logger
from shared.storage.attendance_store import AttendanceStore
from shared.storage.queue_store import QueueStateStore

log = get_logger("core.app")


def build_session_service(
    settings: SessionSettings,
    *,
    resolver: Optional[RoleConfigResolver] = None,
) -> SessionQueueService:
    """
    Build the service and restore any persisted queues.

    Fairness comes from Hyra when it is configured, otherwise from the
    local attendance ledger.
    """
    resolver = resolver or RoleConfigResolver()

    attendance = AttendanceStore(settings.attendance_state_path)
    attendance.load()

    if settings.hyra_configured:
        hyra = HyraClient(
            api_key=settings.hyra_api_key,
            workspace_id=settings.hyra_workspace_id,
            base_url=settings.hyra_base_url,
        )
        fetch_scores = hyra.fetch_fairness_scores
        log.info("Fairness provider: Hyra")
    else:
        fetch_scores = attendance.fetch_fairness_scores
        log.info("Fairness provider: local attendance ledger")

    store = QueueStateStore(settings.queue_state_path) if settings.queue_state_path else None

    service = SessionQueueService(
        resolve_roles=resolver,
        fetch_scores=fetch_scores,
        fairness_timeout=settings.fairness_timeout_seconds,
        store=store,
        attendance=attendance,
    )
    service.restore()
    return service


def build_scheduler(
    settings: SessionSettings,
    service: SessionQueueService,
    *,
    on_open=None,
    on_finalize=None,
) -> Optional[SessionScheduler]:
    """
    Build the Trello-driven scheduler, or None when Trello is not configured.
    """
    if not settings.trello_configured:
        return None

    source = TrelloSessionSource(
        key=settings.trello_key,
        token=settings.trello_token,
        list_ids=list(settings.trello_lists),
        skip_label_ids=settings.trello_skip_label_ids,
    )

    return SessionScheduler(
        service=service,
        source=source,
        classifier=SessionClassifier(settings.trello_lists),
        lead=timedelta(minutes=settings.queue_lead_minutes),
        retention=timedelta(minutes=settings.queue_retention_minutes),
        on_open=on_open,
        on_finalize=on_finalize,
    )
