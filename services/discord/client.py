"""
Discord Client (Control-Plane Runtime)

This module owns the Discord connection itself.
It is intentionally minimal and lifecycle-focused.

Responsibilities:
- connect to Discord
- handle ready / resume / disconnect events
- register the session command surface and the queue button listener
- expose a clean async run() / shutdown() contract

IMPORTANT:
- This client MUST be controlled by DiscordSupervisor
- This client MUST NOT create its own event loop
- The session service is injected; the client never builds one
"""

from __future__ import annotations

import asyncio
from typing import Optional

import discord
from discord.ext import commands

from core.sessions.service import SessionQueueService
from services.discord import commands as command_surfaces
from services.discord.announcements import SessionAnnouncer
from services.discord.logging import DiscordLogAdapter
from services.discord.views import QueueButtonHandler
from shared.config.sessions import SessionSettings
from shared.logging.logger import get_logger

# NOTE: routed to Discord runtime log file
log = get_logger("discord.client", runtime="discord")


class DiscordClient:
    """
    Thin wrapper around discord.py Bot.

    This class provides:
    - async run() entrypoint
    - async shutdown()
    - lifecycle event logging
    - command surface wiring
    """

    def __init__(
        self,
        *,
        settings: SessionSettings,
        service: SessionQueueService,
    ):
        if not settings.discord_token:
            raise RuntimeError("DISCORD_BOT_TOKEN not found in environment")

        log.info("Discord bot token present: True")

        self._settings = settings
        self._service = service
        self._token: str = settings.discord_token
        self._bot: Optional[commands.Bot] = None
        self._announcer: Optional[SessionAnnouncer] = None
        self._ready_event = asyncio.Event()
        self._connected: bool = False

        self.logger = DiscordLogAdapter()

    # --------------------------------------------------

    def _build_bot(self) -> commands.Bot:
        """
        Construct the discord.py Bot instance.

        NOTE:
        - Commands and the button listener are registered here
        - No runtime ownership beyond Discord itself
        """

        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = False
        intents.message_content = False  # slash-command and button focused

        bot = commands.Bot(
            command_prefix="!",
            intents=intents,
        )

        self._announcer = SessionAnnouncer(bot, self._settings, service=self._service)

        # --------------------------------------------------
        # Command Registration
        # --------------------------------------------------

        command_surfaces.setup(
            bot,
            service=self._service,
            announcer=self._announcer,
            logger=self.logger,
        )

        buttons = QueueButtonHandler(service=self._service, logger=self.logger)
        bot.add_listener(buttons.on_interaction, "on_interaction")

        # --------------------------------------------------
        # Lifecycle Events
        # --------------------------------------------------

        @bot.event
        async def on_ready():
            log.info(
                f"Discord connected as {bot.user} "
                f"(id={bot.user.id}) "
                f"guilds={len(bot.guilds)}"
            )

            # Sync slash commands
            try:
                await bot.tree.sync()
                log.info("Discord command tree synced")
            except Exception as e:
                log.error(f"Failed to sync Discord commands: {e}")

            self._connected = True
            self._ready_event.set()

        @bot.event
        async def on_resumed():
            self._connected = True
            log.info("Discord connection resumed")

        @bot.event
        async def on_disconnect():
            self._connected = False
            log.warning("Discord connection lost")

        @bot.event
        async def on_guild_join(guild: discord.Guild):
            log.info(
                f"Joined guild: {guild.name} "
                f"(id={guild.id}, members={guild.member_count})"
            )

        return bot

    # --------------------------------------------------

    async def run(self):
        """
        Start the Discord client and block until shutdown.
        """
        if self._bot is not None:
            raise RuntimeError("Discord client already running")

        log.info("Initializing Discord client")

        self._bot = self._build_bot()

        try:
            await self._bot.start(self._token)
        except asyncio.CancelledError:
            log.info("Discord client task cancelled")
            raise
        except Exception as e:
            log.error(f"Discord client crashed: {e}")
            raise
        finally:
            log.info("Discord client stopped")

    # --------------------------------------------------

    async def shutdown(self):
        """
        Gracefully close the Discord connection.
        """
        if not self._bot:
            return

        log.info("Closing Discord connection")

        try:
            await self._bot.close()
        except Exception as e:
            log.warning(f"Discord close error ignored: {e}")

        self._bot = None
        self._announcer = None
        self._ready_event.clear()
        self._connected = False

    # --------------------------------------------------

    async def wait_until_ready(self):
        await self._ready_event.wait()

    @property
    def bot(self) -> Optional[commands.Bot]:
        """
        Expose bot instance (read-only) for supervisor hooks.
        """
        return self._bot

    @property
    def connected(self) -> bool:
        """True between on_ready/on_resumed and the next disconnect."""
        return self._connected

    @property
    def announcer(self) -> Optional[SessionAnnouncer]:
        return self._announcer
