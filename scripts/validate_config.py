"""
Configuration validation script.

Checks the session role configuration and the queue environment before a
deploy, without starting the bot.

Design rules:
- No side effects on import
- No runtime startup
- Validation only (no mutation)
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Mapping, Optional

from shared.config.session_roles import RoleConfigError, RoleConfigResolver, SessionCategory
from shared.config.sessions import SessionSettings, load_session_settings


# ------------------------------------------------------------
# Paths
# ------------------------------------------------------------

ROOT = Path(__file__).resolve().parents[1]
ROLES_PATH = ROOT / "shared" / "config" / "session_roles.json"


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------

def _error(msg: str):
    print(f"[CONFIG ERROR] {msg}", file=sys.stderr)


def _warn(msg: str):
    print(f"[CONFIG WARNING] {msg}", file=sys.stderr)


# ------------------------------------------------------------
# Validators
# ------------------------------------------------------------

def validate_roles_config(path: Path = ROLES_PATH) -> bool:
    """
    Validate session_roles.json (key format, labels, capacities, duplicates).
    """
    try:
        resolver = RoleConfigResolver(path)
    except RoleConfigError as e:
        _error(f"{path.name}: {e}")
        return False

    for category in SessionCategory:
        roles = resolver(category)
        print(
            f"{category.display_name}: "
            + ", ".join(f"{r.label} x{r.capacity}" for r in roles)
        )
    return True


def check_settings(settings: SessionSettings) -> List[str]:
    """
    Return warnings for settings that will disable part of the runtime.
    """
    warnings: List[str] = []

    if not settings.discord_token:
        warnings.append("DISCORD_BOT_TOKEN is not set; the bot cannot start")

    for category in SessionCategory:
        channels = settings.channels_for(category)
        if not channels.queue_channel_id:
            warnings.append(f"No queue channel for {category.display_name} sessions")
        if not channels.attendees_channel_id:
            warnings.append(f"No attendees channel for {category.display_name} sessions")

    if not settings.hyra_configured:
        warnings.append("Hyra is not configured; fairness uses the local attendance ledger")
    if not settings.trello_configured:
        warnings.append("Trello is not configured; queues open only via /sessionqueue")

    return warnings


# ------------------------------------------------------------
# Entry point
# ------------------------------------------------------------

def main(env: Optional[Mapping[str, str]] = None, roles_path: Path = ROLES_PATH) -> int:
    ok = validate_roles_config(roles_path)

    for warning in check_settings(load_session_settings(env)):
        _warn(warning)

    if not ok:
        print("Configuration validation failed.", file=sys.stderr)
        return 1

    print("Configuration validation passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
