"""
Session queue bot entrypoint.

This module launches the Discord runtime as an independent process. It owns:

- event loop creation
- lifecycle wiring
- orderly startup and shutdown
"""

import asyncio
import signal
import sys

from core.app import build_scheduler, build_session_service
from services.discord.runtime.supervisor import DiscordSupervisor
from shared.config.sessions import load_session_settings
from shared.logging.logger import get_logger
from shared.storage.state_publisher import StatePublisher

log = get_logger("core.discord_app")


# ----------------------------------------------------------------------
# MAIN ASYNC ENTRYPOINT
# ----------------------------------------------------------------------

async def main(stop_event: asyncio.Event):
    settings = load_session_settings()

    log.info("Session queue runtime booting")

    service = build_session_service(settings)

    def _scheduler_factory(announcer):
        return build_scheduler(
            settings,
            service,
            on_open=announcer.on_queue_opened,
            on_finalize=announcer.on_queue_finalized,
        )

    supervisor = DiscordSupervisor(
        settings=settings,
        service=service,
        scheduler_factory=_scheduler_factory,
        publisher=StatePublisher(),
    )

    # --------------------------------------------------
    # START DISCORD RUNTIME
    # --------------------------------------------------
    try:
        await supervisor.start()
        log.info("Discord supervisor started successfully")
    except Exception as e:
        log.error(f"Failed to start Discord supervisor: {e}")
        raise

    # --------------------------------------------------
    # BLOCK UNTIL SHUTDOWN SIGNAL
    # --------------------------------------------------
    await stop_event.wait()

    log.info("Shutdown initiated")

    # --------------------------------------------------
    # ORDERLY SHUTDOWN
    # --------------------------------------------------
    try:
        await supervisor.shutdown()
    except Exception as e:
        log.warning(f"Discord supervisor shutdown error ignored: {e}")

    log.info("Session queue runtime stopped")


# ----------------------------------------------------------------------
# SIGNAL HANDLING (WINDOWS-SAFE)
# ----------------------------------------------------------------------

def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    stop_event: asyncio.Event,
):
    """
    Windows-safe Ctrl+C handler.
    Uses signal.signal + asyncio.Event to unwind cleanly.
    """

    def _handler(signum, frame):
        loop.call_soon_threadsafe(stop_event.set)

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
    except (ValueError, OSError) as e:
        log.warning(f"Signal handlers not installed: {e}")


# ----------------------------------------------------------------------
# ENTRYPOINT
# ----------------------------------------------------------------------

def run():
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    stop_event = asyncio.Event()
    _install_signal_handlers(loop, stop_event)

    try:
        loop.run_until_complete(main(stop_event))

    except KeyboardInterrupt:
        log.info("KeyboardInterrupt received, shutdown initiated")

    finally:
        # --------------------------------------------------
        # CANCEL REMAINING TASKS (CLEANLY)
        # --------------------------------------------------
        pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
        for task in pending:
            task.cancel()

        if pending:
            loop.run_until_complete(
                asyncio.gather(*pending, return_exceptions=True)
            )

        # --------------------------------------------------
        # FINAL LOOP CLEANUP
        # --------------------------------------------------
        loop.run_until_complete(loop.shutdown_asyncgens())

        asyncio.set_event_loop(None)
        loop.close()


if __name__ == "__main__":
    run()
    sys.exit(0)
