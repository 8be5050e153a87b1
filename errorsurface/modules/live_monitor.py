"""Live Monitor -- short-window polling reconciled into the event store.

Every ``poll_interval`` seconds the last ``window_minutes`` of logs are
collected and reconciled. Changing the interval restarts the pending wait
with the new value; a poll already running is neither interrupted nor
repeated.
"""

import asyncio
from typing import Optional

from ..ingest.collector import LogCollector
from ..models.entities import LogEvent
from ..storage.event_store import EventStore
from ..storage.reconciler import MergeReconciler
from .base_module import BaseModule


class LiveMonitor(BaseModule):
    def __init__(
        self,
        store: EventStore,
        collector: Optional[LogCollector] = None,
        config=None,
        event_bus=None,
    ):
        super().__init__(name="live_monitor", event_bus=event_bus)
        self._collector = collector or LogCollector(config=config)
        self._reconciler = MergeReconciler(store)
        self._poll_interval: int = getattr(config, "live_poll_interval", 5)
        self._window_minutes: int = getattr(config, "live_window_minutes", 60)

        self._events: list[LogEvent] = []
        self._poll_lock = asyncio.Lock()
        self._reschedule = asyncio.Event()
        self._poll_task: Optional[asyncio.Task] = None
        self._poll_count = 0
        self._skipped_polls = 0
        self._last_errors: list[str] = []

    async def start(self) -> None:
        self.running = True
        self.health_status = "running"
        self._poll_task = asyncio.create_task(self._poll_loop())
        self.heartbeat()
        self.logger.info(
            "live_monitor_started",
            poll_interval=self._poll_interval,
            window_minutes=self._window_minutes,
        )

    async def stop(self) -> None:
        self.running = False
        if self._poll_task and not self._poll_task.done():
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
        self._poll_task = None
        self.health_status = "stopped"
        self.logger.info("live_monitor_stopped")

    async def health_check(self) -> dict:
        self.heartbeat()
        return {
            "status": self.health_status,
            "details": {
                "events": len(self._events),
                "threat_events": sum(1 for e in self._events if e.threats),
                "poll_count": self._poll_count,
                "skipped_polls": self._skipped_polls,
                "polling": self.is_polling,
                "poll_interval": self._poll_interval,
                "window_minutes": self._window_minutes,
                "last_run": self.last_run.isoformat() if self.last_run else None,
                "last_errors": list(self._last_errors),
            },
        }

    @property
    def poll_interval(self) -> int:
        return self._poll_interval

    @property
    def window_minutes(self) -> int:
        return self._window_minutes

    @property
    def is_polling(self) -> bool:
        return self._poll_lock.locked()

    @property
    def events(self) -> list[LogEvent]:
        return list(self._events)

    def set_poll_interval(self, seconds: int) -> int:
        """Use ``seconds`` between polls, restarting the current wait."""
        self._poll_interval = max(1, int(seconds))
        self._reschedule.set()
        self.logger.info("poll_interval_changed", poll_interval=self._poll_interval)
        return self._poll_interval

    def set_window_minutes(self, minutes: int) -> int:
        """Collect the last ``minutes`` from the next poll on."""
        self._window_minutes = max(1, int(minutes))
        self.logger.info("live_window_changed", window_minutes=self._window_minutes)
        return self._window_minutes

    async def poll_once(self) -> list[LogEvent]:
        """Collect the live window and reconcile it. Skipped if a poll is already running."""
        if self._poll_lock.locked():
            self._skipped_polls += 1
            self.logger.debug("live_poll_skipped")
            return list(self._events)

        async with self._poll_lock:
            window = self._window_minutes
            loop = asyncio.get_event_loop()
            fresh = await loop.run_in_executor(None, self._collector.collect_live, window)
            self._last_errors = list(self._collector.last_errors)
            self.publish_collection_errors(self._last_errors)

            self._events = await self._reconciler.reconcile(fresh, scan_days=0)
            self._poll_count += 1
            self.mark_run()
            self.publish("live_update", {
                "collected": len(fresh),
                "events": len(self._events),
                "threat_events": sum(1 for e in self._events if e.threats),
                "window_minutes": window,
            })
            return list(self._events)

    async def _poll_loop(self) -> None:
        while self.running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error("live_poll_error", error=str(e))
            try:
                await self._wait_for_next_poll()
            except asyncio.CancelledError:
                break

    async def _wait_for_next_poll(self) -> None:
        # An interval change wakes the wait, which then starts over with the new value
        while self.running:
            self._reschedule.clear()
            try:
                await asyncio.wait_for(self._reschedule.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                return
