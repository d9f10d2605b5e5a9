"""
Discord Session Announcements

Posts session queue messages and attendee lists to the channels configured
per session category.

The announcer is used in two places:
- as the scheduler's on_open / on_finalize hooks (automatic flow)
- by the session slash commands (manual flow)

IMPORTANT:
- This module MUST NOT register commands
- This module MUST NOT own a Discord client (the bot is passed in)
- Queue message ids are stored on queue.metadata so restarts can refresh
  the posted message
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import discord

from core.sessions.formatter import describe_selection
from core.sessions.models import RoleQueue, SelectionResult, utc_now
from core.sessions.service import SessionQueueService
from services.discord.embeds import queue_embed
from services.discord.views import build_queue_view
from shared.config.sessions import QueueChannels, SessionSettings
from shared.logging.logger import get_logger

log = get_logger("discord.announcements", runtime="discord")


def _starts_at(queue: RoleQueue) -> Optional[datetime]:
    raw = queue.metadata.get("starts_at")
    if not isinstance(raw, str):
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def render_queue_announcement(
    queue: RoleQueue,
    *,
    ping: str = "",
    now: Optional[datetime] = None,
) -> str:
    """
    Header text posted above the queue embed.
    """
    category = queue.category.display_name if queue.category else "Staff"
    starts_at = _starts_at(queue)

    lines = []
    if ping:
        lines.extend([ping, ""])

    if starts_at is not None:
        minutes = max(0, round((starts_at - (now or utc_now())).total_seconds() / 60))
        lines.append(f"A **{category}** session is starting in **{minutes} minutes**!")
    else:
        lines.append(f"A **{category}** session queue is now open!")
    lines.append("")

    title = queue.metadata.get("title")
    if title:
        lines.append(f"**Name:** {title}")
    if starts_at is not None:
        unix = int(starts_at.timestamp())
        lines.append(f"**Starts at:** <t:{unix}:T> (<t:{unix}:R>)")

    url = queue.metadata.get("url")
    if url:
        lines.append(f"**Trello card:** {url}")

    return "\n".join(lines).rstrip()


def render_attendees_announcement(
    queue: RoleQueue,
    result: SelectionResult,
    *,
    ping: str = "",
) -> str:
    title = queue.metadata.get("title") or f"Session {queue.event_id}"

    lines = []
    if ping:
        lines.extend([ping, ""])
    lines.extend([f"**Selected attendees for {title}**", ""])
    lines.append(describe_selection(result))
    return "\n".join(lines)


class SessionAnnouncer:
    def __init__(
        self,
        bot: Any,
        settings: SessionSettings,
        *,
        service: Optional[SessionQueueService] = None,
    ):
        self._bot = bot
        self._settings = settings
        self._service = service

    # --------------------------------------------------
    # Channel resolution
    # --------------------------------------------------

    def _channels(self, queue: RoleQueue) -> QueueChannels:
        if queue.category is None:
            return QueueChannels()
        return self._settings.channels_for(queue.category)

    async def _resolve_channel(self, channel_id: Optional[int]):
        if not channel_id:
            return None

        channel = self._bot.get_channel(channel_id)
        if channel is not None:
            return channel

        try:
            return await self._bot.fetch_channel(channel_id)
        except discord.HTTPException as e:
            log.warning(f"Failed to fetch channel {channel_id}: {e}")
            return None

    # --------------------------------------------------
    # Queue post
    # --------------------------------------------------

    async def post_queue(self, queue: RoleQueue, *, channel=None) -> Optional[discord.Message]:
        """
        Post the queue message with role buttons.

        When channel is None the category's configured queue channel is used.
        """
        channels = self._channels(queue)
        if channel is None:
            channel = await self._resolve_channel(channels.queue_channel_id)
        if channel is None:
            log.warning(f"[{queue.event_id}] No queue channel configured; queue not posted")
            return None

        try:
            message = await channel.send(
                content=render_queue_announcement(queue, ping=channels.ping),
                embed=queue_embed(queue),
                view=build_queue_view(queue),
            )
        except discord.HTTPException as e:
            log.error(f"[{queue.event_id}] Failed to post queue message: {e}")
            return None

        ids = {"queue_channel_id": message.channel.id, "queue_message_id": message.id}
        if self._service is None or not self._service.update_metadata(queue.event_id, ids):
            queue.metadata.update(ids)
        log.info(f"[{queue.event_id}] Queue posted (message={message.id})")
        return message

    async def refresh_queue_message(self, queue: RoleQueue) -> bool:
        """
        Re-render the posted queue message (buttons disable once finalized).
        """
        channel_id = queue.metadata.get("queue_channel_id")
        message_id = queue.metadata.get("queue_message_id")
        if not channel_id or not message_id:
            return False

        channel = await self._resolve_channel(channel_id)
        if channel is None:
            return False

        try:
            message = await channel.fetch_message(message_id)
            await message.edit(embed=queue_embed(queue), view=build_queue_view(queue))
        except discord.HTTPException as e:
            log.warning(f"[{queue.event_id}] Failed to refresh queue message: {e}")
            return False
        return True

    # --------------------------------------------------
    # Attendees post
    # --------------------------------------------------

    async def post_attendees(
        self,
        queue: RoleQueue,
        result: SelectionResult,
        *,
        channel=None,
    ) -> Optional[discord.Message]:
        channels = self._channels(queue)
        if channel is None:
            channel = await self._resolve_channel(channels.attendees_channel_id)
        if channel is None:
            log.warning(f"[{queue.event_id}] No attendees channel configured; list not posted")
            return None

        try:
            message = await channel.send(
                content=render_attendees_announcement(queue, result, ping=channels.ping),
                allowed_mentions=discord.AllowedMentions(users=True, roles=True),
            )
        except discord.HTTPException as e:
            log.error(f"[{queue.event_id}] Failed to post attendees: {e}")
            return None

        log.info(
            f"[{queue.event_id}] Attendees posted "
            f"({len(result.chosen_user_ids())} selected, degraded={result.degraded})"
        )
        return message

    # --------------------------------------------------
    # Scheduler hooks
    # --------------------------------------------------

    async def on_queue_opened(self, queue: RoleQueue, session) -> None:
        await self.post_queue(queue)

    async def on_queue_finalized(self, queue: RoleQueue, result: SelectionResult, session) -> None:
        await self.refresh_queue_message(queue)
        await self.post_attendees(queue, result)
