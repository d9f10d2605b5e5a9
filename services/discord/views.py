"""
Session queue buttons.

Buttons carry stable custom ids so presses keep working after a restart:

    queue:<event_id>:<role_key>    join (or move to) a role
    queueleave:<event_id>          leave the queue

Presses are routed through the bot's on_interaction listener to
QueueButtonHandler, which calls the service and answers ephemerally. The
view itself holds no callbacks and no state.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

import discord

from core.sessions.models import EnrollmentResult, ResultCode, RoleQueue
from core.sessions.service import SessionQueueService
from services.discord.embeds import queue_embed
from services.discord.logging import DiscordLogAdapter
from shared.logging.logger import get_logger

log = get_logger("discord.views", runtime="discord")

JOIN_PREFIX = "queue:"
LEAVE_PREFIX = "queueleave:"

# Discord allows 5 action rows of 5 buttons; the last slot is "Leave".
MAX_ROLE_BUTTONS = 24

RESULT_MESSAGES: Dict[ResultCode, str] = {
    ResultCode.ROLE_FULL: "That role is full. Pick another role or try again later.",
    ResultCode.UNKNOWN_ROLE: "That role no longer exists for this session.",
    ResultCode.NOT_ENROLLED: "You are not in this queue.",
    ResultCode.QUEUE_FINALIZED: "This queue is closed. Attendees have already been selected.",
    ResultCode.QUEUE_FINALIZING: "Attendees are being selected right now. The queue is locked.",
    ResultCode.NO_SUCH_QUEUE: "This queue is no longer active.",
}


def join_custom_id(event_id: str, role_key: str) -> str:
    return f"{JOIN_PREFIX}{event_id}:{role_key}"


def leave_custom_id(event_id: str) -> str:
    return f"{LEAVE_PREFIX}{event_id}"


def parse_custom_id(custom_id: str) -> Optional[Tuple[str, str, Optional[str]]]:
    """
    Return (action, event_id, role_key) for queue buttons, else None.
    """
    if not custom_id:
        return None

    if custom_id.startswith(LEAVE_PREFIX):
        event_id = custom_id[len(LEAVE_PREFIX):]
        return ("leave", event_id, None) if event_id else None

    if custom_id.startswith(JOIN_PREFIX):
        event_id, sep, role_key = custom_id[len(JOIN_PREFIX):].rpartition(":")
        if sep and event_id and role_key:
            return ("join", event_id, role_key)

    return None


def describe_result(
    action: str,
    result: EnrollmentResult,
    queue: Optional[RoleQueue],
) -> str:
    if not result.ok:
        return RESULT_MESSAGES.get(result.code, "Something went wrong. Try again.")

    if result.role_key is None or queue is None:
        return "Done."

    state = queue.roles.get(result.role_key)
    label = state.definition.label if state else result.role_key

    if action == "leave":
        return f"You left the **{label}** queue."

    if not result.changed:
        return f"You are already queued as **{label}**."

    if result.previous_role_key is not None:
        previous = queue.roles[result.previous_role_key].definition.label
        return f"Moved from **{previous}** to **{label}**."

    return f"You are queued as **{label}**."


def build_queue_view(queue: RoleQueue) -> discord.ui.View:
    view = discord.ui.View(timeout=None)

    for definition in queue.definitions[:MAX_ROLE_BUTTONS]:
        view.add_item(
            discord.ui.Button(
                label=definition.label,
                style=discord.ButtonStyle.primary,
                custom_id=join_custom_id(queue.event_id, definition.key),
                disabled=queue.finalized,
            )
        )

    view.add_item(
        discord.ui.Button(
            label="Leave",
            style=discord.ButtonStyle.danger,
            custom_id=leave_custom_id(queue.event_id),
            disabled=queue.finalized,
        )
    )
    return view


class QueueButtonHandler:
    """
    Routes queue button presses to the session service.
    """

    def __init__(
        self,
        *,
        service: SessionQueueService,
        logger: DiscordLogAdapter,
    ):
        self._service = service
        self._logger = logger

    async def on_interaction(self, interaction: discord.Interaction):
        await self.handle(interaction)

    async def handle(self, interaction: discord.Interaction) -> bool:
        """
        Handle a queue button press. Returns False when the interaction is
        not a queue button so other handlers can take it.
        """
        data = interaction.data or {}
        parsed = parse_custom_id(data.get("custom_id", ""))
        if parsed is None:
            return False

        action, event_id, role_key = parsed
        user_id = interaction.user.id

        try:
            if action == "join":
                result = self._service.join_role(event_id, user_id, role_key)
            else:
                result = self._service.leave_role(event_id, user_id)

            queue = self._service.get_queue(event_id)

            self._logger.log_queue_event(
                action=action,
                event_id=event_id,
                user_id=user_id,
                role_key=role_key,
                code=result.code.value,
                guild_id=getattr(interaction, "guild_id", None),
            )

            await interaction.response.send_message(
                content=describe_result(action, result, queue),
                ephemeral=True,
            )

            if result.ok and result.changed and queue is not None:
                await self._refresh(interaction, queue)

        except Exception:
            log.exception(f"[{event_id}] Queue button failed ({action})")
            if not interaction.response.is_done():
                try:
                    await interaction.response.send_message(
                        content="Something went wrong handling that button.",
                        ephemeral=True,
                    )
                except discord.HTTPException as e:
                    log.warning(f"[{event_id}] Failed to send error reply: {e}")

        return True

    async def _refresh(self, interaction: discord.Interaction, queue: RoleQueue):
        message = getattr(interaction, "message", None)
        if message is None:
            return
        try:
            await message.edit(embed=queue_embed(queue))
        except discord.HTTPException as e:
            log.warning(f"[{queue.event_id}] Failed to refresh queue message: {e}")
