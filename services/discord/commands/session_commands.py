"""
Discord Session Slash Command Registration (Control-Plane Runtime)

Thin registration layer exposing the session queue commands and delegating
ALL logic to SessionCommandHandler.

IMPORTANT DESIGN RULES:
- NO business logic
- NO persistence
- Commands are hidden from members without Manage Events by default
"""

from __future__ import annotations

import discord
from discord import app_commands
from discord.ext import commands

from services.discord.commands.sessions import SessionCommandHandler
from shared.config.session_roles import SessionCategory
from shared.logging.logger import get_logger

log = get_logger("discord.commands.sessions.register", runtime="discord")

CATEGORY_CHOICES = [
    app_commands.Choice(name=category.display_name, value=category.value)
    for category in SessionCategory
]


async def _reply(interaction: discord.Interaction, result):
    prefix = "✅" if result.get("ok") else "⚠️"
    await interaction.followup.send(
        content=f"{prefix} {result['message']}",
        ephemeral=True,
    )


def setup(bot: commands.Bot, *, handler: SessionCommandHandler):
    """
    Register the session slash commands on the bot tree.
    """

    # --------------------------------------------------
    # /sessionqueue
    # --------------------------------------------------

    @app_commands.command(
        name="sessionqueue",
        description="Post a session queue for a Trello session card.",
    )
    @app_commands.describe(
        event="Trello card link or session id",
        category="Session type",
        title="Optional title shown on the queue",
    )
    @app_commands.choices(category=CATEGORY_CHOICES)
    @app_commands.default_permissions(manage_events=True)
    @app_commands.guild_only()
    async def sessionqueue(
        interaction: discord.Interaction,
        event: str,
        category: app_commands.Choice[str],
        title: str | None = None,
    ):
        await interaction.response.defer(ephemeral=True)

        result = await handler.cmd_open_queue(
            user_id=interaction.user.id,
            guild_id=interaction.guild_id,
            event=event,
            category=category.value,
            title=title,
            channel=interaction.channel,
        )
        await _reply(interaction, result)

    # --------------------------------------------------
    # /sessionattendees
    # --------------------------------------------------

    @app_commands.command(
        name="sessionattendees",
        description="Select and post the attendees for a session queue.",
    )
    @app_commands.describe(event="Trello card link or session id")
    @app_commands.default_permissions(manage_events=True)
    @app_commands.guild_only()
    async def sessionattendees(interaction: discord.Interaction, event: str):
        await interaction.response.defer(ephemeral=True)

        result = await handler.cmd_post_attendees(
            user_id=interaction.user.id,
            guild_id=interaction.guild_id,
            event=event,
            channel=interaction.channel,
        )
        await _reply(interaction, result)

    # --------------------------------------------------
    # /sessionclose
    # --------------------------------------------------

    @app_commands.command(
        name="sessionclose",
        description="Close a session queue and discard its state.",
    )
    @app_commands.describe(event="Trello card link or session id")
    @app_commands.default_permissions(manage_events=True)
    @app_commands.guild_only()
    async def sessionclose(interaction: discord.Interaction, event: str):
        await interaction.response.defer(ephemeral=True)

        result = await handler.cmd_close_queue(
            user_id=interaction.user.id,
            guild_id=interaction.guild_id,
            event=event,
        )
        await _reply(interaction, result)

    bot.tree.add_command(sessionqueue)
    bot.tree.add_command(sessionattendees)
    bot.tree.add_command(sessionclose)

    log.info("Discord session slash commands registered")
