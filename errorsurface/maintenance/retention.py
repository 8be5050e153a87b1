"""Retention manager -- periodic purge of expired events."""

import asyncio
from datetime import datetime, timezone
from typing import Optional

from ..storage.event_store import EventStore
from ..utils.logging import get_logger

logger = get_logger("maintenance.retention")


class RetentionManager:
    """Deletes rows whose ``expires_at`` has passed.

    Expiry is fixed per row at insert time, so this never needs to know the
    retention setting; it only asks the store to drop what is already dead.
    """

    def __init__(self, store: EventStore, config=None):
        self._store = store
        self._purge_on_start: bool = getattr(config, "purge_on_start", True)
        self._purge_interval: int = getattr(config, "purge_interval", 3600)
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self.last_cleanup: Optional[datetime] = None
        self.total_removed = 0

    async def run_cleanup(self) -> dict:
        """Purge once. Returns a summary of what was removed."""
        if not self._store.is_open():
            logger.debug("retention_cleanup_skipped", reason="store not open")
            return {"removed": 0, "skipped": True}

        removed = await self._store.purge_expired()
        self.last_cleanup = datetime.now(timezone.utc)
        self.total_removed += removed
        logger.info("retention_cleanup", removed=removed, location=self._store.current_location())
        return {"removed": removed, "skipped": False, "error": self._store.last_error}

    async def start(self) -> None:
        self._running = True
        if self._purge_on_start:
            await self.run_cleanup()
        if self._purge_interval > 0:
            self._task = asyncio.create_task(self._cleanup_loop())

    async def stop(self) -> None:
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def _cleanup_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._purge_interval)
                await self.run_cleanup()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("retention_cleanup_error", error=str(e))

    def get_status(self) -> dict:
        return {
            "running": self._running,
            "purge_interval": self._purge_interval,
            "last_cleanup": self.last_cleanup.isoformat() if self.last_cleanup else None,
            "total_removed": self.total_removed,
        }
