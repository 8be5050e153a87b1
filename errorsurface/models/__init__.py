"""Data models: SQLAlchemy tables and the in-memory event types."""

from .base import Base
from .entities import LogEvent, StoredEvent, ThreatMatch
from .log_event import LogEventRow
from .scan_run import ScanRun

__all__ = [
    "Base",
    "LogEvent",
    "LogEventRow",
    "ScanRun",
    "StoredEvent",
    "ThreatMatch",
]
