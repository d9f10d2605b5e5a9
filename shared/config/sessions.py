"""
Session queue runtime settings.

Settings are read from the process environment (after load_dotenv) once at
boot and frozen into a SessionSettings instance.

Design rules:
- Import-safe (no side effects)
- Missing channel/role ids are None, never empty strings
- Invalid numeric values fall back to defaults with a warning
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv

from shared.config.session_roles import SessionCategory
from shared.logging.logger import get_logger

log = get_logger("shared.config.sessions")

DEFAULT_HYRA_BASE_URL = "https://api.hyra.io"

# Env prefix per category (QUEUE_<PREFIX>_CHANNEL_ID, ...)
_QUEUE_ENV_PREFIX: Dict[SessionCategory, str] = {
    SessionCategory.INTERVIEW: "INTERVIEW",
    SessionCategory.TRAINING: "TRAINING",
    SessionCategory.MASS_SHIFT: "MASSSHIFT",
}

_TRELLO_LIST_ENV: Dict[SessionCategory, str] = {
    SessionCategory.INTERVIEW: "TRELLO_LIST_INTERVIEW_ID",
    SessionCategory.TRAINING: "TRELLO_LIST_TRAINING_ID",
    SessionCategory.MASS_SHIFT: "TRELLO_LIST_MASS_SHIFT_ID",
}


def _normalize_snowflake(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        raw = value.strip()
        if raw and raw.isdigit():
            return int(raw)
    return None


def _normalize_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    raw = value.strip()
    return raw or None


def _read_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        log.warning(f"{key}={raw!r} is not a number; using {default}")
        return default
    if value <= 0:
        log.warning(f"{key} must be positive; using {default}")
        return default
    return value


@dataclass(frozen=True)
class QueueChannels:
    """Discord destinations for one session category."""

    queue_channel_id: Optional[int] = None
    attendees_channel_id: Optional[int] = None
    ping_role_id: Optional[int] = None

    @property
    def ping(self) -> str:
        return f"<@&{self.ping_role_id}>" if self.ping_role_id else ""


@dataclass(frozen=True)
class SessionSettings:
    discord_token: Optional[str] = None
    channels: Dict[SessionCategory, QueueChannels] = field(default_factory=dict)

    hyra_api_key: Optional[str] = None
    hyra_workspace_id: Optional[str] = None
    hyra_base_url: str = DEFAULT_HYRA_BASE_URL
    fairness_timeout_seconds: float = 10.0

    queue_lead_minutes: float = 30.0
    queue_retention_minutes: float = 120.0
    scheduler_interval_seconds: float = 60.0

    queue_state_path: Optional[str] = None
    attendance_state_path: Optional[str] = None

    trello_key: Optional[str] = None
    trello_token: Optional[str] = None
    trello_lists: Dict[str, SessionCategory] = field(default_factory=dict)
    trello_skip_label_ids: Tuple[str, ...] = ()

    @property
    def trello_configured(self) -> bool:
        return bool(self.trello_key and self.trello_token and self.trello_lists)

    @property
    def hyra_configured(self) -> bool:
        return bool(self.hyra_api_key and self.hyra_workspace_id)

    def channels_for(self, category: SessionCategory) -> QueueChannels:
        return self.channels.get(category, QueueChannels())


def load_session_settings(env: Optional[Mapping[str, str]] = None) -> SessionSettings:
    """
    Build SessionSettings from the environment.

    When env is None the process environment is used after load_dotenv().
    """
    if env is None:
        load_dotenv()
        env = os.environ

    channels: Dict[SessionCategory, QueueChannels] = {}
    for category, prefix in _QUEUE_ENV_PREFIX.items():
        channels[category] = QueueChannels(
            queue_channel_id=_normalize_snowflake(env.get(f"QUEUE_{prefix}_CHANNEL_ID")),
            attendees_channel_id=_normalize_snowflake(
                env.get(f"QUEUE_{prefix}_ATTENDEES_CHANNEL_ID")
            ),
            ping_role_id=_normalize_snowflake(env.get(f"QUEUE_{prefix}_PING_ROLE_ID")),
        )

    trello_lists: Dict[str, SessionCategory] = {}
    for category, key in _TRELLO_LIST_ENV.items():
        list_id = _normalize_text(env.get(key))
        if list_id:
            trello_lists[list_id] = category

    settings = SessionSettings(
        discord_token=_normalize_text(env.get("DISCORD_BOT_TOKEN")),
        channels=channels,
        hyra_api_key=_normalize_text(env.get("HYRA_API_KEY")),
        hyra_workspace_id=_normalize_text(env.get("HYRA_WORKSPACE_ID")),
        hyra_base_url=_normalize_text(env.get("HYRA_BASE_URL")) or DEFAULT_HYRA_BASE_URL,
        fairness_timeout_seconds=_read_float(env, "FAIRNESS_TIMEOUT_SECONDS", 10.0),
        queue_lead_minutes=_read_float(env, "QUEUE_LEAD_MINUTES", 30.0),
        queue_retention_minutes=_read_float(env, "QUEUE_RETENTION_MINUTES", 120.0),
        scheduler_interval_seconds=_read_float(env, "SCHEDULER_INTERVAL_SECONDS", 60.0),
        queue_state_path=_normalize_text(env.get("QUEUE_STATE_PATH")),
        attendance_state_path=_normalize_text(env.get("ATTENDANCE_STATE_PATH")),
        trello_key=_normalize_text(env.get("TRELLO_KEY")),
        trello_token=_normalize_text(env.get("TRELLO_TOKEN")),
        trello_lists=trello_lists,
        trello_skip_label_ids=tuple(
            label_id
            for label_id in (
                _normalize_text(env.get("TRELLO_LABEL_COMPLETED_ID")),
                _normalize_text(env.get("TRELLO_LABEL_CANCELED_ID")),
            )
            if label_id
        ),
    )

    log.debug(
        "Session settings resolved: "
        f"token={'SET' if settings.discord_token else 'MISSING'}, "
        f"hyra={'SET' if settings.hyra_configured else 'MISSING'}, "
        f"queue_state={settings.queue_state_path or 'volatile'}"
    )

    return settings
