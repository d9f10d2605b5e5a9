"""
Shared fixtures for the session queue tests.

- File logging is disabled (GLACE_LOG_DIR="") before any module creates
  its logger.
- Async code is driven with asyncio.run inside plain test functions.
"""

import os

os.environ["GLACE_LOG_DIR"] = ""

import pytest

from core.sessions.models import RoleQueue
from shared.config.session_roles import RoleDefinition, SessionCategory
from tests.helpers.clock import T0


@pytest.fixture
def definitions():
    return (
        RoleDefinition("cohost", "Co-Host", 1),
        RoleDefinition("trainer", "Trainer", 2),
        RoleDefinition("spectator", "Spectator", 3),
    )


@pytest.fixture
def queue(definitions):
    return RoleQueue.create(
        "evt-1",
        definitions,
        category=SessionCategory.TRAINING,
        created_at=T0,
    )


@pytest.fixture
def resolve_roles(definitions):
    def _resolve(category):
        return definitions

    return _resolve
