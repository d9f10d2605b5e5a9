from __future__ import annotations

import discord

from core.sessions.formatter import describe_roles
from core.sessions.models import RoleQueue


def queue_embed(queue: RoleQueue) -> discord.Embed:
    """Role fill overview; greys out once the queue is closed."""
    title = queue.metadata.get("title") or f"Session {queue.event_id}"
    color = discord.Color.dark_grey() if queue.finalized else discord.Color.blurple()

    embed = discord.Embed(
        title=f"Session Queue: {title}",
        description=describe_roles(queue),
        color=color,
    )

    url = queue.metadata.get("url")
    if url:
        embed.url = url

    embed.set_footer(text="Pick one role. Seats are assigned when the session starts.")
    return embed
