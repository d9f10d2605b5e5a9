"""
Discord Logging Adapter

Normalizes Discord-originated events (slash commands, queue button presses)
into structured log lines on the Discord runtime log.

IMPORTANT:
- This module MUST NOT send network requests
- This module MUST NOT depend on discord.py objects directly
"""

from __future__ import annotations

from typing import Optional, Dict, Any

from shared.logging.logger import get_logger

log = get_logger("discord.logging", runtime="discord")


class DiscordLogAdapter:
    # --------------------------------------------------
    # Structured Event Hooks
    # --------------------------------------------------

    def log_event(
        self,
        *,
        event: str,
        level: str = "info",
        guild_id: Optional[int] = None,
        user_id: Optional[int] = None,
        channel_id: Optional[int] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        payload = {
            "event": event,
            "guild_id": guild_id,
            "user_id": user_id,
            "channel_id": channel_id,
            "data": data or {},
        }

        if level == "debug":
            log.debug(f"Discord event: {payload}")
        elif level == "warning":
            log.warning(f"Discord event: {payload}")
        elif level == "error":
            log.error(f"Discord event: {payload}")
        else:
            log.info(f"Discord event: {payload}")

    # --------------------------------------------------
    # Convenience Helpers
    # --------------------------------------------------

    def log_command(
        self,
        *,
        command: str,
        guild_id: Optional[int],
        user_id: Optional[int],
        success: bool,
        extra: Optional[Dict[str, Any]] = None,
    ):
        """Log a slash command execution."""
        self.log_event(
            event="discord_command",
            level="info" if success else "warning",
            data={
                "command": command,
                "success": success,
                "extra": extra or {},
            },
            guild_id=guild_id,
            user_id=user_id,
        )

    def log_queue_event(
        self,
        *,
        action: str,
        event_id: str,
        user_id: Optional[int],
        code: str,
        role_key: Optional[str] = None,
        guild_id: Optional[int] = None,
    ):
        """Log a queue button press and its outcome (debug level)."""
        self.log_event(
            event="queue_button",
            level="debug",
            data={
                "action": action,
                "event_id": event_id,
                "role_key": role_key,
                "code": code,
            },
            guild_id=guild_id,
            user_id=user_id,
        )
