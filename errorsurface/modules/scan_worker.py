"""Scan Worker -- full lookback collection reconciled into the event store.

Runs one scan on start (optional) and then either waits for on-demand scans
or rescans every ``scan_interval`` seconds. Only one scan runs at a time; a
scan requested while another is in flight gets the previous result back.
"""

import asyncio
from typing import Optional

from ..ingest.collector import LogCollector
from ..models.entities import LogEvent
from ..storage.event_store import EventStore
from ..storage.reconciler import MergeReconciler
from .base_module import BaseModule


class ScanWorker(BaseModule):
    def __init__(
        self,
        store: EventStore,
        collector: Optional[LogCollector] = None,
        config=None,
        event_bus=None,
    ):
        super().__init__(name="scan_worker", event_bus=event_bus)
        self._collector = collector or LogCollector(config=config)
        self._reconciler = MergeReconciler(store)
        self._lookback_days: int = getattr(config, "lookback_days", 7)
        self._scan_interval: int = getattr(config, "scan_interval", 0)
        self._scan_on_start: bool = getattr(config, "scan_on_start", True)

        self._events: list[LogEvent] = []
        self._scan_lock = asyncio.Lock()
        self._initial_task: Optional[asyncio.Task] = None
        self._loop_task: Optional[asyncio.Task] = None
        self._scan_count = 0
        self._last_errors: list[str] = []

    async def start(self) -> None:
        self.running = True
        self.health_status = "running"
        if self._scan_on_start:
            self._initial_task = asyncio.create_task(self._initial_scan())
        if self._scan_interval > 0:
            self._loop_task = asyncio.create_task(self._scan_loop())
        self.heartbeat()
        self.logger.info(
            "scan_worker_started",
            lookback_days=self._lookback_days,
            scan_interval=self._scan_interval,
        )

    async def stop(self) -> None:
        self.running = False
        for task in (self._loop_task, self._initial_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._loop_task = None
        self._initial_task = None
        self.health_status = "stopped"
        self.logger.info("scan_worker_stopped")

    async def health_check(self) -> dict:
        self.heartbeat()
        return {
            "status": self.health_status,
            "details": {
                "events": len(self._events),
                "threat_events": sum(1 for e in self._events if e.threats),
                "scan_count": self._scan_count,
                "scanning": self.is_scanning,
                "lookback_days": self._lookback_days,
                "scan_interval": self._scan_interval,
                "last_run": self.last_run.isoformat() if self.last_run else None,
                "last_errors": list(self._last_errors),
            },
        }

    @property
    def is_scanning(self) -> bool:
        return self._scan_lock.locked()

    @property
    def events(self) -> list[LogEvent]:
        return list(self._events)

    async def run_scan(self, lookback_days: Optional[int] = None) -> list[LogEvent]:
        """Collect the last ``lookback_days`` of logs and reconcile them into the store."""
        if self._scan_lock.locked():
            self.logger.info("scan_already_running")
            return list(self._events)

        async with self._scan_lock:
            days = lookback_days if lookback_days is not None else self._lookback_days
            self.logger.info("scan_starting", lookback_days=days)

            loop = asyncio.get_event_loop()
            fresh = await loop.run_in_executor(None, self._collector.collect_all, days)
            self._last_errors = list(self._collector.last_errors)
            self.publish_collection_errors(self._last_errors)

            self._events = await self._reconciler.reconcile(fresh, scan_days=days)
            self._scan_count += 1
            self.mark_run()

            threat_events = sum(1 for e in self._events if e.threats)
            self.logger.info(
                "scan_complete",
                collected=len(fresh),
                events=len(self._events),
                threat_events=threat_events,
            )
            self.publish("scan_complete", {
                "collected": len(fresh),
                "events": len(self._events),
                "threat_events": threat_events,
                "lookback_days": days,
            })
            return list(self._events)

    async def _initial_scan(self) -> None:
        try:
            await self.run_scan()
        except Exception as e:
            self.logger.error("initial_scan_error", error=str(e))

    async def _scan_loop(self) -> None:
        while self.running:
            try:
                await asyncio.sleep(self._scan_interval)
                if self.running:
                    await self.run_scan()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error("scan_loop_error", error=str(e))
