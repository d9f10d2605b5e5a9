"""
Tests for DiscordSupervisor lifecycle with a fake Discord client.
"""
from __future__ import annotations

import asyncio

from core.sessions.service import SessionQueueService
from services.discord.runtime.supervisor import SNAPSHOT_PATH, DiscordSupervisor
from shared.config.sessions import load_session_settings
from shared.storage.state_publisher import StatePublisher


class FakeClient:
    def __init__(self, *, settings, service):
        self.settings = settings
        self.service = service
        self.bot = None
        self.announcer = object()
        self.stopped = asyncio.Event()
        self.shutdown_calls = 0
        self.connected = True

    async def run(self):
        await self.stopped.wait()

    async def wait_until_ready(self):
        return None

    async def shutdown(self):
        self.shutdown_calls += 1
        self.stopped.set()


class FakeScheduler:
    def __init__(self):
        self.ran_with = None

    async def run(self, interval_seconds):
        self.ran_with = interval_seconds
        await asyncio.sleep(3600)

    def get_metrics(self):
        return {"ticks": 0}


def test_start_runs_scheduler_and_shutdown_is_idempotent(resolve_roles, tmp_path):
    settings = load_session_settings({"SCHEDULER_INTERVAL_SECONDS": "5"})
    service = SessionQueueService(resolve_roles=resolve_roles)
    scheduler = FakeScheduler()
    factory_args = []

    def scheduler_factory(announcer):
        factory_args.append(announcer)
        return scheduler

    supervisor = DiscordSupervisor(
        settings=settings,
        service=service,
        scheduler_factory=scheduler_factory,
        publisher=StatePublisher(tmp_path),
        client_factory=FakeClient,
    )

    async def scenario():
        await supervisor.start()
        client = supervisor._client
        for _ in range(5):
            await asyncio.sleep(0)

        assert supervisor.running
        assert supervisor.connected
        assert supervisor.scheduler is scheduler
        assert scheduler.ran_with == 5.0

        await supervisor.shutdown()
        await supervisor.shutdown()
        return client

    client = asyncio.run(scenario())

    assert factory_args == [client.announcer]
    assert client.shutdown_calls == 1
    assert not supervisor.running
    snapshot = StatePublisher(tmp_path).load(SNAPSHOT_PATH)
    assert snapshot["running"] is False
    assert snapshot["open_queues"] == 0


def test_scheduler_disabled_without_factory(resolve_roles):
    supervisor = DiscordSupervisor(
        settings=load_session_settings({}),
        service=SessionQueueService(resolve_roles=resolve_roles),
        client_factory=FakeClient,
    )

    async def scenario():
        await supervisor.start()
        for _ in range(3):
            await asyncio.sleep(0)
        assert supervisor.connected
        assert supervisor.scheduler is None
        await supervisor.shutdown()

    asyncio.run(scenario())


class CountingScheduler(FakeScheduler):
    def __init__(self):
        super().__init__()
        self.ticks = 0

    def get_metrics(self):
        return {"ticks": self.ticks}


def test_snapshot_is_refreshed_while_running(resolve_roles, tmp_path):
    service = SessionQueueService(resolve_roles=resolve_roles)
    scheduler = CountingScheduler()
    publisher = StatePublisher(tmp_path)
    supervisor = DiscordSupervisor(
        settings=load_session_settings({}),
        service=service,
        scheduler_factory=lambda announcer: scheduler,
        publisher=publisher,
        client_factory=FakeClient,
        snapshot_interval=0,
    )

    async def settle():
        for _ in range(5):
            await asyncio.sleep(0)

    async def scenario():
        await supervisor.start()
        await settle()
        first = publisher.load(SNAPSHOT_PATH)

        service.open_queue("evt-1", "training")
        scheduler.ticks = 3
        await settle()
        second = publisher.load(SNAPSHOT_PATH)

        supervisor._client.connected = False
        await settle()
        third = publisher.load(SNAPSHOT_PATH)

        await supervisor.shutdown()
        return first, second, third

    first, second, third = asyncio.run(scenario())

    assert first["open_queues"] == 0
    assert first["scheduler"] == {"ticks": 0}
    assert first["connected"] is True
    assert second["open_queues"] == 1
    assert second["scheduler"] == {"ticks": 3}
    assert third["connected"] is False
    assert not supervisor.connected
