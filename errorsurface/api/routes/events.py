"""Scan and live event routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...bridge.contracts import (
    EventListResponse,
    LiveSettingsResponse,
    LiveWindowRequest,
    LogEventResponse,
    PollIntervalRequest,
    ScanRequest,
)
from ...dependencies import get_live_monitor, get_scan_worker
from ...models.entities import LogEvent
from ...modules.live_monitor import LiveMonitor
from ...modules.scan_worker import ScanWorker

router = APIRouter(tags=["events"])


def _event_list(
    worker: str,
    events: list[LogEvent],
    last_run,
    in_progress: bool,
    limit: int,
    severity_group: Optional[str] = None,
    threats_only: bool = False,
) -> EventListResponse:
    if severity_group:
        events = [e for e in events if e.severity_group == severity_group]
    if threats_only:
        events = [e for e in events if e.threats]
    return EventListResponse(
        worker=worker,
        total=len(events),
        threat_events=sum(1 for e in events if e.threats),
        last_run=last_run.isoformat() if last_run else None,
        in_progress=in_progress,
        events=[LogEventResponse.from_event(e) for e in events[:limit]],
    )


@router.get("/events/scan", response_model=EventListResponse)
async def get_scan_events(
    limit: int = Query(500, ge=1, le=50000),
    severity_group: Optional[str] = Query(None, pattern="^(critical|error|warning)$"),
    threats_only: bool = False,
    worker: ScanWorker = Depends(get_scan_worker),
):
    """Result of the most recent full scan, newest first."""
    return _event_list(
        "scan", worker.events, worker.last_run, worker.is_scanning, limit, severity_group, threats_only,
    )


@router.post("/events/scan", response_model=EventListResponse)
async def run_scan(
    body: Optional[ScanRequest] = None,
    limit: int = Query(500, ge=1, le=50000),
    worker: ScanWorker = Depends(get_scan_worker),
):
    """Run a full scan now. If one is already running its previous result is returned."""
    events = await worker.run_scan(body.lookback_days if body else None)
    return _event_list("scan", events, worker.last_run, worker.is_scanning, limit)


@router.get("/events/live", response_model=EventListResponse)
async def get_live_events(
    limit: int = Query(500, ge=1, le=50000),
    severity_group: Optional[str] = Query(None, pattern="^(critical|error|warning)$"),
    threats_only: bool = False,
    monitor: LiveMonitor = Depends(get_live_monitor),
):
    """Result of the most recent live poll, newest first."""
    return _event_list(
        "live", monitor.events, monitor.last_run, monitor.is_polling, limit, severity_group, threats_only,
    )


@router.get("/live", response_model=LiveSettingsResponse)
async def get_live_settings(monitor: LiveMonitor = Depends(get_live_monitor)):
    return LiveSettingsResponse(poll_interval=monitor.poll_interval, window_minutes=monitor.window_minutes)


@router.put("/live/interval", response_model=LiveSettingsResponse)
async def set_live_interval(body: PollIntervalRequest, monitor: LiveMonitor = Depends(get_live_monitor)):
    monitor.set_poll_interval(body.seconds)
    return LiveSettingsResponse(poll_interval=monitor.poll_interval, window_minutes=monitor.window_minutes)


@router.put("/live/window", response_model=LiveSettingsResponse)
async def set_live_window(body: LiveWindowRequest, monitor: LiveMonitor = Depends(get_live_monitor)):
    monitor.set_window_minutes(body.minutes)
    return LiveSettingsResponse(poll_interval=monitor.poll_interval, window_minutes=monitor.window_minutes)
