"""
Discord Command Package (Control-Plane Runtime)

This package centralizes registration for all Discord command surfaces
used by the session queue bot.

Command categories:
- sessions   → moderator session queue controls (open, attendees, close)

IMPORTANT DESIGN RULES:
- No command registration on import
- No Discord client ownership
- Explicit setup() calls only
"""

from __future__ import annotations

from discord.ext import commands

from core.sessions.service import SessionQueueService
from services.discord.announcements import SessionAnnouncer
from services.discord.commands import session_commands
from services.discord.commands.sessions import SessionCommandHandler
from services.discord.logging import DiscordLogAdapter
from shared.logging.logger import get_logger

log = get_logger("discord.commands", runtime="discord")


def setup(
    bot: commands.Bot,
    *,
    service: SessionQueueService,
    announcer: SessionAnnouncer,
    logger: DiscordLogAdapter,
) -> SessionCommandHandler:
    """
    Register all Discord command surfaces.

    Called exactly once by the Discord client during bot construction.
    """
    handler = SessionCommandHandler(
        service=service,
        announcer=announcer,
        logger=logger,
    )
    session_commands.setup(bot, handler=handler)

    log.info("Discord command surfaces initialized")
    return handler
