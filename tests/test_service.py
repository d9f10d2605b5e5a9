"""
Tests for SessionQueueService: lifecycle commands, persistence, attendance.
"""
from __future__ import annotations

import asyncio

import pytest

from core.sessions.errors import NoSuchQueue, QueueAlreadyFinalized, QueueAlreadyOpen
from core.sessions.models import ResultCode
from core.sessions.service import SessionQueueService
from shared.config.session_roles import RoleConfigError, SessionCategory
from shared.storage.attendance_store import AttendanceStore
from shared.storage.queue_store import QueueStateStore

from tests.helpers.clock import StepClock


def _service(resolve_roles, **kwargs):
    kwargs.setdefault("clock", StepClock())
    return SessionQueueService(resolve_roles=resolve_roles, **kwargs)


def test_open_join_finalize_flow(resolve_roles):
    async def fetch():
        return {"1": 3, "2": 0}

    service = _service(resolve_roles, fetch_scores=fetch, fairness_timeout=1)
    service.open_queue("evt", "training", metadata={"title": "Trainer session"})

    assert service.join_role("evt", 1, "trainer").ok
    assert service.join_role("evt", 2, "trainer").ok
    assert service.join_role("evt", 3, "trainer").code is ResultCode.ROLE_FULL

    result = asyncio.run(service.finalize_selection("evt"))

    assert [p.user_id for p in result.per_role["trainer"]] == ["2", "1"]
    assert service.get_selection("evt") is result
    assert service.get_queue("evt").metadata["title"] == "Trainer session"
    assert service.get_queue("evt").category is SessionCategory.TRAINING


def test_join_assigns_increasing_timestamps(resolve_roles):
    service = _service(resolve_roles)
    service.open_queue("evt", SessionCategory.TRAINING)

    service.join_role("evt", "a", "spectator")
    service.join_role("evt", "b", "spectator")

    enrolled = service.get_queue("evt").roles["spectator"].enrolled
    assert enrolled[0].joined_at < enrolled[1].joined_at


def test_unknown_event_paths(resolve_roles):
    service = _service(resolve_roles)

    assert service.join_role("nope", "a", "trainer").code is ResultCode.NO_SUCH_QUEUE
    assert service.leave_role("nope", "a").code is ResultCode.NO_SUCH_QUEUE
    with pytest.raises(NoSuchQueue):
        asyncio.run(service.finalize_selection("nope"))

    service.close_queue("nope")


def test_open_twice_and_unknown_category(resolve_roles):
    service = _service(resolve_roles)
    service.open_queue("evt", "training")

    with pytest.raises(QueueAlreadyOpen):
        service.open_queue("evt", "training")
    with pytest.raises(RoleConfigError):
        service.open_queue("other", "karaoke")


def test_finalize_twice_raises(resolve_roles):
    service = _service(resolve_roles)
    service.open_queue("evt", "training")
    asyncio.run(service.finalize_selection("evt"))

    with pytest.raises(QueueAlreadyFinalized):
        asyncio.run(service.finalize_selection("evt"))
    assert service.join_role("evt", "a", "trainer").code is ResultCode.QUEUE_FINALIZED


def test_reopen_after_finalize_clears_old_result(resolve_roles):
    service = _service(resolve_roles)
    service.open_queue("evt", "training")
    asyncio.run(service.finalize_selection("evt"))

    service.open_queue("evt", "training")

    assert service.get_selection("evt") is None
    assert not service.get_queue("evt").finalized


def test_close_discards_queue_and_result(resolve_roles):
    service = _service(resolve_roles)
    service.open_queue("evt", "training")
    asyncio.run(service.finalize_selection("evt"))

    service.close_queue("evt")

    assert service.get_queue("evt") is None
    assert service.get_selection("evt") is None


def test_update_metadata(resolve_roles):
    service = _service(resolve_roles)
    service.open_queue("evt", "training")

    assert service.update_metadata("evt", {"queue_message_id": 99})
    assert not service.update_metadata("missing", {"queue_message_id": 1})
    assert service.get_queue("evt").metadata["queue_message_id"] == 99


def test_state_survives_restart(resolve_roles, tmp_path):
    path = tmp_path / "queues.json"

    service = _service(resolve_roles, store=QueueStateStore(path))
    service.open_queue("evt", "training", metadata={"title": "T"})
    service.join_role("evt", "a", "trainer")
    service.join_role("evt", "b", "spectator")

    restored = _service(resolve_roles, store=QueueStateStore(path))
    assert restored.restore() == 1

    queue = restored.get_queue("evt")
    assert queue.role_of("a") == "trainer"
    assert queue.role_of("b") == "spectator"
    assert queue.metadata["title"] == "T"
    assert restored.join_role("evt", "c", "cohost").ok


def test_restore_without_store_is_noop(resolve_roles):
    assert _service(resolve_roles).restore() == 0


def test_finalize_records_attendance(resolve_roles):
    attendance = AttendanceStore()
    service = _service(resolve_roles, attendance=attendance)
    service.open_queue("evt", "training")
    service.join_role("evt", "a", "trainer")
    service.join_role("evt", "b", "spectator")

    asyncio.run(service.finalize_selection("evt"))

    assert attendance.get_attended_count("a") == 1
    assert attendance.get_attended_count("b") == 1
    assert attendance.get_attended_count("c") == 0
    assert attendance.get_last_attended_at("a") is not None


def test_attendance_ledger_as_fairness_provider(resolve_roles):
    attendance = AttendanceStore()
    attendance.record_attendance(["veteran"])

    service = _service(
        resolve_roles,
        attendance=attendance,
        fetch_scores=attendance.fetch_fairness_scores,
    )
    service.open_queue("evt", "training")
    service.join_role("evt", "veteran", "cohost")
    service.join_role("evt", "veteran", "trainer")
    service.join_role("evt", "rookie", "trainer")

    result = asyncio.run(service.finalize_selection("evt"))

    assert [p.user_id for p in result.per_role["trainer"]] == ["rookie", "veteran"]
    assert result.fairness_snapshot == {"veteran": 1, "rookie": 0}
