"""Health and notification routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...bridge.contracts import HealthResponse, NotificationResponse
from ...dependencies import get_event_bus, get_live_monitor, get_retention_manager, get_scan_worker, get_store
from ...maintenance.retention import RetentionManager
from ...modules.live_monitor import LiveMonitor
from ...modules.scan_worker import ScanWorker
from ...storage.event_store import EventStore
from ...utils.event_bus import NOTIFICATION_TYPES, EventBus

router = APIRouter(tags=["system"])


@router.get("/health", response_model=HealthResponse)
async def health(
    store: EventStore = Depends(get_store),
    scan_worker: ScanWorker = Depends(get_scan_worker),
    live_monitor: LiveMonitor = Depends(get_live_monitor),
    retention: RetentionManager = Depends(get_retention_manager),
    bus: EventBus = Depends(get_event_bus),
):
    modules = {
        scan_worker.name: await scan_worker.health_check(),
        live_monitor.name: await live_monitor.health_check(),
        "retention": retention.get_status(),
        "event_bus": bus.get_stats(),
    }
    return HealthResponse(
        status="healthy" if store.is_open() else "degraded",
        store_open=store.is_open(),
        modules=modules,
    )


@router.get("/notifications", response_model=list[NotificationResponse])
async def recent_notifications(
    limit: int = Query(50, ge=1, le=500),
    event_type: Optional[str] = Query(None, pattern="^(" + "|".join(NOTIFICATION_TYPES) + ")$"),
    bus: EventBus = Depends(get_event_bus),
):
    """Recent non-fatal notifications (source errors, purges, store changes), newest first."""
    return bus.recent(limit=limit, event_type=event_type)
