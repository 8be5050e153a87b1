"""Notification bus for non-fatal pipeline signals.

The readers, the store and the workers never raise into the host process.
What they would otherwise raise (a degraded kernel source, a store that did
not open, a purge that removed rows) is published here instead. The bus keeps
a bounded history so the control surface can list recent notifications even
when nobody was subscribed at the time.
"""

import asyncio
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Any, Callable, Coroutine

from .logging import get_logger

logger = get_logger("utils.event_bus")

Handler = Callable[[str, dict], Coroutine[Any, Any, Any]]

NOTIFICATION_TYPES = (
    "collection_error",
    "database_opened",
    "database_error",
    "purge_complete",
    "store_cleared",
    "scan_complete",
    "live_update",
)


class EventBus:
    """Async publish/subscribe bus. Handlers are coroutines ``handler(event_type, data)``."""

    def __init__(self, queue_size: int = 1000, history_size: int = 200):
        self._subscribers: dict[str, list[Handler]] = defaultdict(list)
        self._wildcard_subscribers: list[Handler] = []
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._history: deque[dict] = deque(maxlen=history_size)
        self._running = False
        self._dispatch_task: asyncio.Task | None = None
        self._counters = {"published": 0, "dispatched": 0, "dropped": 0}

    def subscribe(self, event_type: str, handler: Handler) -> None:
        """Register ``handler`` for one notification type, or ``"*"`` for all of them."""
        handlers = self._wildcard_subscribers if event_type == "*" else self._subscribers[event_type]
        if handler not in handlers:
            handlers.append(handler)
            logger.debug("event_bus_subscribed", event_type=event_type)

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        handlers = self._wildcard_subscribers if event_type == "*" else self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event_type: str, data: dict) -> None:
        """Queue a notification without blocking. Must be called on the loop's thread."""
        event = {
            "type": event_type,
            "data": data,
            "published_at": datetime.now(timezone.utc).isoformat(),
        }
        self._history.append(event)
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._counters["dropped"] += 1
            logger.warning("event_bus_queue_full", event_type=event_type)
            return
        self._counters["published"] += 1

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._dispatch_task = asyncio.create_task(self._dispatch_loop())
        logger.info("event_bus_started")

    async def stop(self) -> None:
        self._running = False
        if self._dispatch_task and not self._dispatch_task.done():
            self._dispatch_task.cancel()
            try:
                await self._dispatch_task
            except asyncio.CancelledError:
                pass
        self._dispatch_task = None
        logger.info("event_bus_stopped", **self._counters)

    async def drain(self) -> int:
        """Dispatch everything already queued, in order. Returns how many were dispatched."""
        dispatched = 0
        while not self._queue.empty():
            await self._dispatch(self._queue.get_nowait())
            dispatched += 1
        return dispatched

    def recent(self, limit: int = 50, event_type: str | None = None) -> list[dict]:
        """Most recent notifications, newest first."""
        events = [e for e in reversed(self._history) if event_type is None or e["type"] == event_type]
        return events[:limit]

    async def _dispatch_loop(self) -> None:
        while self._running:
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break
            await self._dispatch(event)

    async def _dispatch(self, event: dict) -> None:
        event_type = event["type"]
        handlers = list(self._subscribers.get(event_type, [])) + list(self._wildcard_subscribers)
        for handler in handlers:
            try:
                await asyncio.wait_for(handler(event_type, event["data"]), timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("event_bus_handler_timeout", event_type=event_type)
            except Exception as e:
                logger.error("event_bus_handler_error", event_type=event_type, error=str(e))
        self._counters["dispatched"] += 1

    def get_stats(self) -> dict:
        return {
            "running": self._running,
            "total_published": self._counters["published"],
            "total_dispatched": self._counters["dispatched"],
            "total_dropped": self._counters["dropped"],
            "queue_size": self._queue.qsize(),
            "subscriber_count": sum(len(v) for v in self._subscribers.values()) + len(self._wildcard_subscribers),
        }
