"""In-memory log event types shared by the collector, classifier and store."""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional, Sequence

SOURCE_JOURNAL = "journal"
SOURCE_KERNEL = "kernel"

# Transport of synthetic records describing a source that could not be read
TRANSPORT_COLLECTOR = "collector"

# Threat severities, most severe first
SEVERITY_RANK = {"critical": 0, "high": 1, "medium": 2, "low": 3}


def group_for_priority(priority: int) -> str:
    """Map a syslog priority to its severity group.

    0-2 (emerg, alert, crit) -> critical, 3 (err) -> error, 4 (warning) ->
    warning. Anything else has no group and is not collected.
    """
    if priority < 0:
        return ""
    if priority <= 2:
        return "critical"
    if priority == 3:
        return "error"
    if priority == 4:
        return "warning"
    return ""


def max_threat_severity(threats: Sequence["ThreatMatch"]) -> str:
    """Highest severity among ``threats``; the first one seen wins a tie."""
    best = ""
    best_rank = len(SEVERITY_RANK)
    for threat in threats:
        rank = SEVERITY_RANK.get(threat.severity, len(SEVERITY_RANK))
        if rank < best_rank:
            best, best_rank = threat.severity, rank
    return best


@dataclass(frozen=True)
class ThreatMatch:
    """One signature group matched against one event's message."""

    id: str
    severity: str  # critical / high / medium / low
    category: str
    description: str
    pattern: str = ""


@dataclass
class LogEvent:
    """A normalized journal or kernel record."""

    source: str  # journal / kernel
    timestamp: datetime
    priority: int
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
    threats: list[ThreatMatch] = field(default_factory=list)

    @property
    def severity_group(self) -> str:
        return group_for_priority(self.priority)

    @property
    def threat_count(self) -> int:
        return len(self.threats)

    @property
    def max_threat_severity(self) -> str:
        return max_threat_severity(self.threats)

    @property
    def is_diagnostic(self) -> bool:
        """True for a collector diagnostic rather than a real log line."""
        return self.transport == TRANSPORT_COLLECTOR

    def to_dict(self) -> dict:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["severity_group"] = self.severity_group
        data["threat_count"] = self.threat_count
        data["max_threat_severity"] = self.max_threat_severity
        return data


@dataclass
class StoredEvent(LogEvent):
    """A LogEvent as read back from the event store."""

    fingerprint: str = ""
    expires_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["expires_at"] = self.expires_at.isoformat() if self.expires_at else None
        return data


def utc_from_epoch(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def epoch_seconds(ts: datetime) -> int:
    """Whole UTC seconds since the epoch; naive datetimes are taken as UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return int(ts.replace(microsecond=0).timestamp())
