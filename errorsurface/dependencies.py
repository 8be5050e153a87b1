"""FastAPI dependency providers.

The application builds one store, one bus and the workers in its lifespan and
hangs them on ``app.state``; routes reach them only through these providers.
"""

from fastapi import Depends, HTTPException, Request, status

from .maintenance.retention import RetentionManager
from .modules.live_monitor import LiveMonitor
from .modules.scan_worker import ScanWorker
from .storage.event_store import EventStore
from .utils.event_bus import EventBus


def get_store(request: Request) -> EventStore:
    return request.app.state.store


def get_open_store(store: EventStore = Depends(get_store)) -> EventStore:
    """The store, or 503 when no database is open."""
    if not store.is_open():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=store.last_error or "Event store is not open",
        )
    return store


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


def get_scan_worker(request: Request) -> ScanWorker:
    return request.app.state.scan_worker


def get_live_monitor(request: Request) -> LiveMonitor:
    return request.app.state.live_monitor


def get_retention_manager(request: Request) -> RetentionManager:
    return request.app.state.retention_manager
