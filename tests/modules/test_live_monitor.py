"""Tests for the LiveMonitor module."""

import asyncio
import threading

import pytest

from errorsurface.config import ErrorSurfaceConfig
from errorsurface.modules.live_monitor import LiveMonitor


def _config(**overrides):
    values = dict(live_poll_interval=3600, live_window_minutes=60, _env_file=None)
    values.update(overrides)
    return ErrorSurfaceConfig(**values)


async def _wait_until(predicate, timeout=3.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class TestPollOnce:
    @pytest.mark.asyncio
    async def test_poll_reconciles_live_window(self, store, event_bus, event_factory, fake_collector):
        collector = fake_collector([[event_factory()]])
        monitor = LiveMonitor(store, collector=collector, config=_config(), event_bus=event_bus)

        events = await monitor.poll_once()

        assert len(events) == 1
        assert collector.calls == [("live", 60)]
        stats = await store.stats()
        assert stats["recent_runs"][0]["scan_days"] == 0
        assert event_bus.recent(event_type="live_update")[0]["data"]["events"] == 1

    @pytest.mark.asyncio
    async def test_window_change_applies_to_next_poll(self, store, fake_collector):
        collector = fake_collector()
        monitor = LiveMonitor(store, collector=collector, config=_config())

        assert monitor.set_window_minutes(15) == 15
        await monitor.poll_once()
        assert collector.calls == [("live", 15)]

    def test_setters_floor_at_one(self, fake_collector):
        from errorsurface.storage.event_store import EventStore

        monitor = LiveMonitor(EventStore(), collector=fake_collector(), config=_config())
        assert monitor.set_window_minutes(0) == 1
        assert monitor.set_poll_interval(-3) == 1

    @pytest.mark.asyncio
    async def test_live_and_scan_share_store_without_duplicates(self, store, event_factory, fake_collector):
        event = event_factory()
        monitor = LiveMonitor(store, collector=fake_collector([[event]]), config=_config())

        await monitor.poll_once()
        events = await monitor.poll_once()
        assert len(events) == 1


class TestInFlightGuard:
    @pytest.mark.asyncio
    async def test_overlapping_poll_skipped(self, store, event_factory, fake_collector):
        started = threading.Event()
        release = threading.Event()

        class BlockingCollector(fake_collector):
            def collect_live(self, window_minutes=None):
                started.set()
                release.wait(5)
                return super().collect_live(window_minutes)

        collector = BlockingCollector([[event_factory()]])
        monitor = LiveMonitor(store, collector=collector, config=_config())

        first = asyncio.create_task(monitor.poll_once())
        await asyncio.get_running_loop().run_in_executor(None, started.wait, 5)

        assert monitor.is_polling
        assert await monitor.poll_once() == []

        release.set()
        assert len(await first) == 1
        assert len(collector.calls) == 1
        health = await monitor.health_check()
        assert health["details"]["skipped_polls"] == 1


class TestPollLoop:
    @pytest.mark.asyncio
    async def test_first_poll_runs_immediately(self, store, fake_collector):
        collector = fake_collector()
        monitor = LiveMonitor(store, collector=collector, config=_config())

        await monitor.start()
        await _wait_until(lambda: len(collector.calls) == 1)
        await monitor.stop()

        assert monitor.health_status == "stopped"

    @pytest.mark.asyncio
    async def test_interval_change_restarts_pending_wait(self, store, fake_collector):
        collector = fake_collector()
        monitor = LiveMonitor(store, collector=collector, config=_config(live_poll_interval=3600))

        await monitor.start()
        await _wait_until(lambda: len(collector.calls) == 1)

        # Without the restart the next poll would be an hour away
        monitor.set_poll_interval(1)
        await _wait_until(lambda: len(collector.calls) >= 2, timeout=3.0)
        await monitor.stop()

        assert monitor.poll_interval == 1

    @pytest.mark.asyncio
    async def test_interval_change_during_poll_does_not_duplicate(self, store, fake_collector):
        started = threading.Event()
        release = threading.Event()

        class BlockingCollector(fake_collector):
            def collect_live(self, window_minutes=None):
                started.set()
                release.wait(5)
                return super().collect_live(window_minutes)

        collector = BlockingCollector()
        monitor = LiveMonitor(store, collector=collector, config=_config(live_poll_interval=3600))

        await monitor.start()
        await asyncio.get_running_loop().run_in_executor(None, started.wait, 5)
        monitor.set_poll_interval(600)
        release.set()
        await _wait_until(lambda: monitor.last_run is not None)
        await asyncio.sleep(0.1)
        await monitor.stop()

        assert len(collector.calls) == 1

    @pytest.mark.asyncio
    async def test_loop_survives_collector_exception(self, store, fake_collector):
        class FlakyCollector(fake_collector):
            def collect_live(self, window_minutes=None):
                self.calls.append(("live", window_minutes))
                if len(self.calls) == 1:
                    raise RuntimeError("boom")
                return []

        collector = FlakyCollector()
        monitor = LiveMonitor(store, collector=collector, config=_config(live_poll_interval=1))

        await monitor.start()
        await _wait_until(lambda: len(collector.calls) >= 2, timeout=3.0)
        await monitor.stop()

        assert monitor.last_run is not None
