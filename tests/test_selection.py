"""
Tests for fairness-ranked selection and the finalize lock.
"""
from __future__ import annotations

import asyncio

import pytest

from core.sessions import enrollment, selection
from core.sessions.errors import QueueAlreadyFinalized
from core.sessions.models import Participant, ResultCode, RoleQueue
from shared.config.session_roles import RoleDefinition

from tests.helpers.clock import T0, at


def _single_role_queue(capacity, participants):
    queue = RoleQueue.create("evt-sel", (RoleDefinition("trainer", "Trainer", capacity),))
    queue.roles["trainer"].enrolled.extend(
        Participant(user_id=user_id, joined_at=joined_at)
        for user_id, joined_at in participants
    )
    return queue


def _chosen(result, role_key="trainer"):
    return [p.user_id for p in result.per_role[role_key]]


# ------------------------------------------------------------
# RANKING
# ------------------------------------------------------------

def test_lowest_score_wins():
    queue = _single_role_queue(2, [("A", at(1)), ("B", at(2)), ("C", at(3))])

    result = selection.select(queue, {"A": 5, "B": 0, "C": 2}, now=T0)

    assert _chosen(result) == ["B", "C"]
    assert result.fairness_snapshot == {"A": 5, "B": 0, "C": 2}
    assert not result.degraded


def test_ties_break_by_join_order():
    queue = _single_role_queue(1, [("D", at(1)), ("E", at(2))])

    result = selection.select(queue, {"D": 3, "E": 3}, now=T0)

    assert _chosen(result) == ["D"]


def test_missing_score_defaults_to_zero():
    queue = _single_role_queue(2, [("A", at(1)), ("B", at(2))])

    result = selection.select(queue, {"A": 4}, now=T0)

    assert _chosen(result) == ["B", "A"]
    assert result.fairness_snapshot == {"A": 4, "B": 0}


def test_float_scores_are_accepted():
    queue = _single_role_queue(1, [("A", at(1)), ("B", at(2))])

    result = selection.select(queue, {"A": 1.5, "B": 0.5}, now=T0)

    assert _chosen(result) == ["B"]


def test_selection_is_deterministic(queue):
    for i, user in enumerate(["u1", "u2", "u3", "u4"]):
        enrollment.join(queue, user, "spectator" if i % 2 else "trainer", now=at(i))
    scores = {"u1": 2, "u2": 1, "u3": 0, "u4": 7}

    first = selection.compute_selection(queue, scores, now=T0)
    second = selection.compute_selection(queue, scores, now=T0)

    assert first == second
    assert not queue.finalized


def test_every_role_is_selected_in_config_order(queue):
    enrollment.join(queue, "host", "cohost", now=at(1))
    enrollment.join(queue, "t1", "trainer", now=at(2))

    result = selection.select(queue, {}, now=T0)

    assert [d.key for d in result.definitions] == ["cohost", "trainer", "spectator"]
    assert result.chosen_user_ids() == ["host", "t1"]
    assert result.per_role["spectator"] == ()


def test_select_sets_finalized_and_runs_once(queue):
    selection.select(queue, {}, now=T0)

    assert queue.finalized
    with pytest.raises(QueueAlreadyFinalized) as exc:
        selection.select(queue, {}, now=T0)
    assert exc.value.code is ResultCode.ALREADY_FINALIZED


# ------------------------------------------------------------
# SCORE SANITIZING
# ------------------------------------------------------------

@pytest.mark.parametrize(
    "raw",
    [
        None,
        [("A", 1)],
        "not a mapping",
        {"A": "5"},
        {"A": True},
        {"A": float("nan")},
    ],
)
def test_sanitize_rejects_malformed(raw):
    assert selection.sanitize_scores(raw) is None


def test_sanitize_normalizes_keys():
    assert selection.sanitize_scores({123: 4, " 9 ": 1}) == {"123": 4, "9": 1}


def test_malformed_scores_degrade_select():
    queue = _single_role_queue(1, [("A", at(1)), ("B", at(2))])

    result = selection.select(queue, {"A": "lots", "B": 0}, now=T0)

    assert result.degraded
    assert result.warning == selection.DEGRADED_WARNING
    assert _chosen(result) == ["A"]
    assert result.fairness_snapshot == {"A": 0, "B": 0}


# ------------------------------------------------------------
# FINALIZE (ASYNC FETCH)
# ------------------------------------------------------------

def test_finalize_uses_provider_scores():
    queue = _single_role_queue(1, [("A", at(1)), ("B", at(2))])

    async def fetch():
        return {"A": 9, "B": 1}

    result = asyncio.run(selection.finalize(queue, fetch, timeout=1, now=T0))

    assert _chosen(result) == ["B"]
    assert queue.finalized
    assert not queue.finalizing


def test_finalize_degrades_when_provider_raises():
    queue = _single_role_queue(1, [("A", at(1)), ("B", at(2))])

    async def fetch():
        raise RuntimeError("hyra down")

    result = asyncio.run(selection.finalize(queue, fetch, now=T0))

    assert result.degraded
    assert _chosen(result) == ["A"]
    assert queue.finalized
    assert not queue.finalizing


def test_finalize_degrades_on_timeout():
    queue = _single_role_queue(1, [("A", at(1)), ("B", at(2))])

    async def fetch():
        await asyncio.sleep(5)
        return {"A": 9, "B": 0}

    result = asyncio.run(selection.finalize(queue, fetch, timeout=0.01, now=T0))

    assert result.degraded
    assert _chosen(result) == ["A"]


def test_finalize_degrades_on_malformed_response():
    queue = _single_role_queue(1, [("A", at(1)), ("B", at(2))])

    async def fetch():
        return ["A", "B"]

    result = asyncio.run(selection.finalize(queue, fetch, now=T0))

    assert result.degraded


def test_finalize_without_provider_degrades():
    queue = _single_role_queue(1, [("A", at(1))])

    result = asyncio.run(selection.finalize(queue, None, now=T0))

    assert result.degraded
    assert _chosen(result) == ["A"]


def test_queue_locked_while_fetch_pending(queue):
    enrollment.join(queue, "a", "trainer", now=at(1))

    async def scenario():
        release = asyncio.Event()

        async def fetch():
            await release.wait()
            return {"a": 0}

        task = asyncio.create_task(selection.finalize(queue, fetch, now=T0))
        await asyncio.sleep(0)

        assert queue.finalizing
        join = enrollment.join(queue, "b", "trainer", now=at(2))
        leave = enrollment.leave(queue, "a")

        with pytest.raises(QueueAlreadyFinalized) as exc:
            await selection.finalize(queue, fetch, now=T0)
        assert exc.value.in_progress

        release.set()
        result = await task
        return join, leave, result

    join, leave, result = asyncio.run(scenario())

    assert join.code is ResultCode.QUEUE_FINALIZING
    assert leave.code is ResultCode.QUEUE_FINALIZING
    assert _chosen(result) == ["a"]
    assert queue.finalized
    assert not queue.finalizing


def test_finalize_twice_raises(queue):
    async def fetch():
        return {}

    asyncio.run(selection.finalize(queue, fetch, now=T0))

    with pytest.raises(QueueAlreadyFinalized) as exc:
        asyncio.run(selection.finalize(queue, fetch, now=T0))
    assert not exc.value.in_progress
