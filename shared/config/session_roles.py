"""
Session role configuration.

Each session category (interview, training, mass shift) owns a fixed,
ordered set of role definitions. Definitions are resolved once per queue and
are immutable afterwards.

Design rules:
- Import-safe (no side effects)
- JSON-only configuration (session_roles.json beside this module)
- Malformed configuration is rejected at load time, never at join time
- Missing file falls back to built-in defaults
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from shared.logging.logger import get_logger

log = get_logger("shared.config.session_roles")

_CONFIG_PATH = Path(__file__).parent / "session_roles.json"

_ROLE_KEY_RE = re.compile(r"^[a-z0-9_]{1,32}$")


class RoleConfigError(ValueError):
    """Raised when role configuration is malformed."""


class SessionCategory(Enum):
    INTERVIEW = "interview"
    TRAINING = "training"
    MASS_SHIFT = "mass_shift"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    @classmethod
    def from_value(cls, value: Any) -> "SessionCategory":
        if isinstance(value, cls):
            return value

        if isinstance(value, str):
            normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
            for member in cls:
                if normalized in {member.name.lower(), member.value}:
                    return member

        raise RoleConfigError(f"Unknown session category: {value!r}")


@dataclass(frozen=True)
class RoleDefinition:
    key: str
    label: str
    capacity: int

    def __post_init__(self):
        if not isinstance(self.key, str) or not _ROLE_KEY_RE.match(self.key):
            raise RoleConfigError(
                f"Role key must match {_ROLE_KEY_RE.pattern}: {self.key!r}"
            )
        if not isinstance(self.label, str) or not self.label.strip():
            raise RoleConfigError(f"Role '{self.key}' is missing a label")
        if (
            isinstance(self.capacity, bool)
            or not isinstance(self.capacity, int)
            or self.capacity < 1
        ):
            raise RoleConfigError(
                f"Role '{self.key}' capacity must be an integer >= 1, "
                f"got {self.capacity!r}"
            )

    def to_document(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "capacity": self.capacity,
        }

    @classmethod
    def from_document(cls, payload: Any) -> "RoleDefinition":
        if not isinstance(payload, dict):
            raise RoleConfigError("Role entry must be an object")
        return cls(
            key=payload.get("key"),
            label=payload.get("label"),
            capacity=payload.get("capacity"),
        )


DEFAULT_ROLE_DEFINITIONS: Dict[SessionCategory, Tuple[RoleDefinition, ...]] = {
    SessionCategory.INTERVIEW: (
        RoleDefinition("cohost", "Co-Host", 1),
        RoleDefinition("overseer", "Overseer", 2),
        RoleDefinition("interviewer", "Interviewer", 12),
        RoleDefinition("spectator", "Spectator", 4),
    ),
    SessionCategory.TRAINING: (
        RoleDefinition("cohost", "Co-Host", 1),
        RoleDefinition("overseer", "Overseer", 1),
        RoleDefinition("trainer", "Trainer", 8),
        RoleDefinition("spectator", "Spectator", 4),
    ),
    SessionCategory.MASS_SHIFT: (
        RoleDefinition("cohost", "Co-Host", 1),
        RoleDefinition("overseer", "Overseer", 2),
        RoleDefinition("attendee", "Attendee", 15),
    ),
}


def _parse_roles(category: SessionCategory, raw: Any) -> Tuple[RoleDefinition, ...]:
    if not isinstance(raw, list) or not raw:
        raise RoleConfigError(
            f"Category '{category.value}' must define a non-empty list of roles"
        )

    roles = tuple(RoleDefinition.from_document(entry) for entry in raw)

    seen = set()
    for role in roles:
        if role.key in seen:
            raise RoleConfigError(
                f"Category '{category.value}' defines role '{role.key}' twice"
            )
        seen.add(role.key)

    return roles


def parse_role_config(
    payload: Any,
) -> Dict[SessionCategory, Tuple[RoleDefinition, ...]]:
    """
    Validate a role configuration document.

    Expected shape:
    {
        "interview": [ {"key": "cohost", "label": "Co-Host", "capacity": 1}, ... ],
        "training":  [ ... ],
        "mass_shift": [ ... ]
    }

    Categories missing from the document keep their built-in defaults.
    """
    if not isinstance(payload, dict):
        raise RoleConfigError("Role config root must be an object")

    resolved = dict(DEFAULT_ROLE_DEFINITIONS)
    for name, raw_roles in payload.items():
        category = SessionCategory.from_value(name)
        resolved[category] = _parse_roles(category, raw_roles)

    return resolved


class RoleConfigResolver:
    """
    Resolves role definitions by session category.

    The document is loaded and validated once on construction.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path else _CONFIG_PATH
        self._roles = self._load()

    def _load(self) -> Dict[SessionCategory, Tuple[RoleDefinition, ...]]:
        if not self._path.exists():
            log.debug(f"{self._path.name} not found; using built-in role defaults")
            return dict(DEFAULT_ROLE_DEFINITIONS)

        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise RoleConfigError(f"Invalid JSON in {self._path}: {e}") from e

        roles = parse_role_config(payload)
        log.info(
            "Loaded session roles: "
            + ", ".join(
                f"{category.value}={[r.key for r in defs]}"
                for category, defs in roles.items()
            )
        )
        return roles

    def resolve(self, category: Any) -> Tuple[RoleDefinition, ...]:
        return self._roles[SessionCategory.from_value(category)]

    __call__ = resolve
