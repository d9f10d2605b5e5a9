"""
Discord Session Commands (Control-Plane Runtime)

Handlers for the moderator-facing session queue commands:

- open a queue for a session and post it
- finalize a queue and post the selected attendees
- close a queue

This class does NOT register commands. session_commands.py wires these
handlers into slash commands; the handlers return plain dicts so they can
be exercised without a Discord connection.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

from core.sessions.errors import SessionQueueError
from core.sessions.service import SessionQueueService
from services.discord.announcements import SessionAnnouncer
from services.discord.logging import DiscordLogAdapter
from shared.config.session_roles import RoleConfigError
from shared.logging.logger import get_logger

log = get_logger("discord.commands.sessions", runtime="discord")

_TRELLO_CARD_URL = re.compile(r"trello\.com/c/([A-Za-z0-9]+)")


def parse_event_reference(value: str) -> str:
    """
    Accept a Trello card link or a bare id and return the event id.
    """
    raw = (value or "").strip()
    match = _TRELLO_CARD_URL.search(raw)
    if match:
        return match.group(1)
    return raw


class SessionCommandHandler:
    def __init__(
        self,
        *,
        service: SessionQueueService,
        announcer: SessionAnnouncer,
        logger: DiscordLogAdapter,
    ):
        self._service = service
        self._announcer = announcer
        self._logger = logger

    def _log(self, command: str, *, user_id, guild_id, success: bool, **extra):
        self._logger.log_command(
            command=command,
            guild_id=guild_id,
            user_id=user_id,
            success=success,
            extra=extra,
        )

    # --------------------------------------------------
    # /sessionqueue
    # --------------------------------------------------

    async def cmd_open_queue(
        self,
        *,
        user_id: int,
        guild_id: Optional[int],
        event: str,
        category: str,
        title: Optional[str] = None,
        channel=None,
    ) -> Dict[str, Any]:
        event_id = parse_event_reference(event)
        if not event_id:
            return {"ok": False, "message": "A session id or Trello card link is required."}

        metadata = {"title": title} if title else None

        try:
            queue = self._service.open_queue(event_id, category, metadata=metadata)
        except (SessionQueueError, RoleConfigError) as e:
            self._log("sessionqueue", user_id=user_id, guild_id=guild_id, success=False,
                      event_id=event_id, error=str(e))
            return {"ok": False, "message": str(e)}

        message = await self._announcer.post_queue(queue, channel=channel)

        self._log("sessionqueue", user_id=user_id, guild_id=guild_id, success=True,
                  event_id=event_id, category=queue.category.value)

        if message is None:
            return {
                "ok": True,
                "event_id": event_id,
                "message": f"Queue opened for `{event_id}`, but it could not be posted.",
            }

        return {
            "ok": True,
            "event_id": event_id,
            "message": f"Queue opened for `{event_id}`.",
        }

    # --------------------------------------------------
    # /sessionattendees
    # --------------------------------------------------

    async def cmd_post_attendees(
        self,
        *,
        user_id: int,
        guild_id: Optional[int],
        event: str,
        channel=None,
    ) -> Dict[str, Any]:
        """
        Finalize the queue, then post the attendees list.

        The configured attendees channel wins; channel is the fallback.
        """
        event_id = parse_event_reference(event)

        try:
            result = await self._service.finalize_selection(event_id)
        except SessionQueueError as e:
            self._log("sessionattendees", user_id=user_id, guild_id=guild_id, success=False,
                      event_id=event_id, error=str(e))
            return {"ok": False, "message": str(e)}

        queue = self._service.get_queue(event_id)
        await self._announcer.refresh_queue_message(queue)

        posted = await self._announcer.post_attendees(queue, result)
        if posted is None and channel is not None:
            posted = await self._announcer.post_attendees(queue, result, channel=channel)

        self._log("sessionattendees", user_id=user_id, guild_id=guild_id, success=True,
                  event_id=event_id, degraded=result.degraded)

        text = f"Attendees selected for `{event_id}`."
        if result.degraded:
            text += " Fairness data was unavailable; seats went by join order."
        if posted is None:
            text += " The list could not be posted."

        return {"ok": True, "event_id": event_id, "degraded": result.degraded, "message": text}

    # --------------------------------------------------
    # /sessionclose
    # --------------------------------------------------

    async def cmd_close_queue(
        self,
        *,
        user_id: int,
        guild_id: Optional[int],
        event: str,
    ) -> Dict[str, Any]:
        event_id = parse_event_reference(event)
        existed = self._service.get_queue(event_id) is not None

        self._service.close_queue(event_id)

        self._log("sessionclose", user_id=user_id, guild_id=guild_id, success=True,
                  event_id=event_id, existed=existed)

        if not existed:
            return {"ok": True, "message": f"No queue was open for `{event_id}`."}
        return {"ok": True, "message": f"Queue for `{event_id}` closed."}
