"""Lifecycle base for the background collection workers."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from ..utils.event_bus import EventBus
from ..utils.logging import get_logger


class BaseModule(ABC):
    """A long-running worker with start/stop, health reporting and notifications.

    Subclasses own their collector and their last result; the event store is
    the only state they share.
    """

    def __init__(self, name: str, event_bus: Optional[EventBus] = None):
        self.name = name
        self.running = False
        self.health_status = "initialized"
        self.last_heartbeat: Optional[datetime] = None
        self.last_run: Optional[datetime] = None
        self._event_bus = event_bus
        self.logger = get_logger(f"module.{name}")

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...

    @abstractmethod
    async def health_check(self) -> dict:
        """Return ``{"status": str, "details": dict}``."""
        ...

    def heartbeat(self) -> None:
        self.last_heartbeat = datetime.now(timezone.utc)

    def mark_run(self) -> None:
        self.last_run = datetime.now(timezone.utc)
        self.last_heartbeat = self.last_run

    def publish(self, event_type: str, data: dict) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event_type, {"module": self.name, **data})

    def publish_collection_errors(self, errors: list[str]) -> None:
        """Report each unavailable source as a non-fatal ``collection_error``."""
        for error in errors:
            self.publish("collection_error", {"error": error})

    def get_status(self) -> dict:
        return {
            "name": self.name,
            "running": self.running,
            "health_status": self.health_status,
            "last_heartbeat": self.last_heartbeat.isoformat() if self.last_heartbeat else None,
            "last_run": self.last_run.isoformat() if self.last_run else None,
        }
