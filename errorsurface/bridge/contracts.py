"""Bridge contracts -- Pydantic models defining API request and response shapes."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from ..models.entities import LogEvent


# ── Events ──
class ThreatMatchResponse(BaseModel):
    id: str
    severity: str
    category: str
    description: str
    pattern: str = ""


class LogEventResponse(BaseModel):
    source: str
    timestamp: str
    priority: int
    severity_group: str
    unit: str = ""
    pid: str = ""
    exe: str = ""
    cmdline: str = ""
    hostname: str = ""
    boot_id: str = ""
    message: str = ""
    message_id: str = ""
    transport: str = ""
    cursor: str = ""
    threats: list[ThreatMatchResponse] = []
    threat_count: int = 0
    max_threat_severity: str = ""
    fingerprint: Optional[str] = None
    expires_at: Optional[str] = None

    @classmethod
    def from_event(cls, event: LogEvent) -> "LogEventResponse":
        return cls(**event.to_dict())


class EventListResponse(BaseModel):
    worker: str
    total: int
    threat_events: int
    last_run: Optional[str] = None
    in_progress: bool = False
    events: list[LogEventResponse] = []


class ScanRequest(BaseModel):
    lookback_days: Optional[int] = Field(None, ge=1, le=3650)


# ── Live monitor ──
class PollIntervalRequest(BaseModel):
    seconds: int = Field(..., ge=1, le=86400)


class LiveWindowRequest(BaseModel):
    minutes: int = Field(..., ge=1, le=10080)


class LiveSettingsResponse(BaseModel):
    poll_interval: int
    window_minutes: int


# ── Store ──
class ScanRunResponse(BaseModel):
    run_at: str
    new_events: int
    scan_days: int


class StoreStatsResponse(BaseModel):
    location: str
    is_open: bool
    size_bytes: int = 0
    retention_days: int
    active_events: int = 0
    total_events: int = 0
    recent_runs: list[ScanRunResponse] = []
    last_error: Optional[str] = None


class RetentionRequest(BaseModel):
    days: int = Field(..., ge=1, le=3650)


class RetentionResponse(BaseModel):
    retention_days: int


class LocationRequest(BaseModel):
    path: str = Field(..., min_length=1)


class LocationResponse(BaseModel):
    opened: bool
    location: str
    error: Optional[str] = None


class PurgeResponse(BaseModel):
    removed: int


class ClearResponse(BaseModel):
    cleared: bool


# ── Health / notifications ──
class HealthResponse(BaseModel):
    status: str
    store_open: bool
    modules: dict = {}


class NotificationResponse(BaseModel):
    type: str
    data: dict = {}
    published_at: str
