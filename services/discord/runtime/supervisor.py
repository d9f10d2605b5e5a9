"""
Discord Runtime Supervisor

Owns the lifecycle of the session queue bot runtime.

Responsibilities:
- start the Discord client
- start the session scheduler once Discord is ready
- publish a runtime snapshot for diagnostics
- perform graceful shutdown

IMPORTANT:
- MUST be started by core.discord_app
- MUST NOT create its own event loop
- MUST NOT install signal handlers
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from core.scheduler import SessionScheduler
from core.sessions.service import SessionQueueService
from services.discord.announcements import SessionAnnouncer
from services.discord.client import DiscordClient
from shared.config.sessions import SessionSettings
from shared.logging.logger import get_logger
from shared.storage.state_publisher import StatePublisher

# NOTE: routed to Discord runtime log file
log = get_logger("discord.supervisor", runtime="discord")

SchedulerFactory = Callable[[SessionAnnouncer], Optional[SessionScheduler]]

SNAPSHOT_PATH = "discord/runtime.json"
SNAPSHOT_INTERVAL_SECONDS = 30.0


class DiscordSupervisor:
    """
    Owns the Discord runtime lifecycle.

    Contract:
    - start() is awaitable
    - shutdown() is idempotent
    """

    def __init__(
        self,
        *,
        settings: SessionSettings,
        service: SessionQueueService,
        scheduler_factory: Optional[SchedulerFactory] = None,
        publisher: Optional[StatePublisher] = None,
        client_factory: Callable[..., DiscordClient] = DiscordClient,
        snapshot_interval: float = SNAPSHOT_INTERVAL_SECONDS,
    ):
        self._settings = settings
        self._service = service
        self._scheduler_factory = scheduler_factory
        self._publisher = publisher
        self._client_factory = client_factory
        self._snapshot_interval = snapshot_interval

        self._client: Optional[DiscordClient] = None
        self._scheduler: Optional[SessionScheduler] = None
        self._tasks: List[asyncio.Task] = []
        self._running: bool = False
        self._connected: bool = False
        self._started_at: Optional[datetime] = None

    # --------------------------------------------------
    # Snapshot helpers (supervisor-owned)
    # --------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        bot = self._client.bot if self._client else None
        return {
            "running": self._running,
            "connected": self._connected,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "guild_count": len(bot.guilds) if bot and self._connected else None,
            "task_count": len(self._tasks),
            "open_queues": len(self._service.registry),
            "scheduler": self._scheduler.get_metrics() if self._scheduler else None,
        }

    def _write_snapshot(self):
        if self._publisher is not None:
            self._publisher.publish(SNAPSHOT_PATH, self.snapshot())

    # --------------------------------------------------
    # Lifecycle
    # --------------------------------------------------

    async def start(self):
        """
        Start the Discord runtime.
        """
        if self._running:
            log.warning("Discord supervisor already running")
            return

        log.info("Starting Discord supervisor")

        self._client = self._client_factory(settings=self._settings, service=self._service)
        self._started_at = datetime.now(timezone.utc)

        # --------------------------------------------------
        # Discord client main loop
        # --------------------------------------------------
        self._tasks.append(asyncio.create_task(self._client.run()))

        # --------------------------------------------------
        # Post-ready initialization (scheduler)
        # --------------------------------------------------
        self._tasks.append(asyncio.create_task(self._post_ready_init()))

        # --------------------------------------------------
        # Snapshot refresh loop (supervisor-owned)
        # --------------------------------------------------
        self._tasks.append(asyncio.create_task(self._snapshot_loop()))

        self._running = True
        log.info("Discord supervisor started")
        self._write_snapshot()

    async def _post_ready_init(self):
        try:
            await self._client.wait_until_ready()
            self._connected = True

            announcer = self._client.announcer
            if self._scheduler_factory and announcer is not None:
                self._scheduler = self._scheduler_factory(announcer)

            if self._scheduler is None:
                log.info("Session scheduler disabled (no session source configured)")
            else:
                self._tasks.append(
                    asyncio.create_task(
                        self._scheduler.run(self._settings.scheduler_interval_seconds)
                    )
                )

            self._write_snapshot()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.warning(f"Post-ready Discord init failed: {e}")

    async def _snapshot_loop(self):
        """
        Republish the runtime snapshot so queue counts, scheduler metrics
        and the connection flag stay current.
        """
        try:
            while True:
                await asyncio.sleep(self._snapshot_interval)
                if self._client is not None:
                    self._connected = self._client.connected
                self._write_snapshot()
        except asyncio.CancelledError:
            raise

    # --------------------------------------------------
    # Shutdown
    # --------------------------------------------------

    async def shutdown(self):
        """
        Gracefully shut down the Discord runtime.
        """
        if not self._running:
            return

        log.info("Shutting down Discord supervisor")

        # --------------------------------------------------
        # Stop Discord client first
        # --------------------------------------------------
        try:
            if self._client:
                await self._client.shutdown()
        except Exception as e:
            log.warning(f"Discord client shutdown error ignored: {e}")

        # --------------------------------------------------
        # Cancel remaining tasks (scheduler included)
        # --------------------------------------------------
        for task in self._tasks:
            if not task.done():
                task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks.clear()
        self._connected = False
        self._running = False
        self._write_snapshot()

        self._client = None
        self._scheduler = None

        log.info("Discord supervisor shutdown complete")

    # --------------------------------------------------
    # Read-only Introspection
    # --------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def scheduler(self) -> Optional[SessionScheduler]:
        return self._scheduler
