"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from errorsurface.models.entities import LogEvent, ThreatMatch
from errorsurface.storage.event_store import EventStore
from errorsurface.utils.event_bus import EventBus


def make_event(
    message: str = "disk failure",
    unit: str = "disk.service",
    timestamp: datetime | None = None,
    priority: int = 3,
    source: str = "journal",
    threats: list[ThreatMatch] | None = None,
    **fields,
) -> LogEvent:
    """Build a LogEvent; the timestamp defaults to one minute ago, whole seconds."""
    if timestamp is None:
        timestamp = (datetime.now(timezone.utc) - timedelta(minutes=1)).replace(microsecond=0)
    return LogEvent(
        source=source,
        timestamp=timestamp,
        priority=priority,
        unit=unit,
        message=message,
        threats=list(threats or []),
        **fields,
    )


AUTH_THREAT = ThreatMatch(
    id="auth_failure",
    severity="high",
    category="Authentication",
    description="Failed authentication attempt",
    pattern="failed password",
)


class FakeCollector:
    """Stands in for LogCollector: returns canned batches, counts calls."""

    def __init__(self, batches=None, errors=None):
        self.batches = list(batches or [])
        self.errors = list(errors or [])
        self.last_errors: list[str] = []
        self.calls: list[tuple[str, int]] = []

    def _next(self) -> list[LogEvent]:
        self.last_errors = list(self.errors)
        if not self.batches:
            return []
        if len(self.batches) == 1:
            return list(self.batches[0])
        return list(self.batches.pop(0))

    def collect_all(self, lookback_days=None):
        self.calls.append(("all", lookback_days))
        return self._next()

    def collect_live(self, window_minutes=None):
        self.calls.append(("live", window_minutes))
        return self._next()


@pytest.fixture
def event_factory():
    return make_event


@pytest.fixture
def event_bus():
    return EventBus()


@pytest_asyncio.fixture
async def store(tmp_path, event_bus):
    """An open EventStore on a fresh SQLite file."""
    s = EventStore(retention_days=30, event_bus=event_bus)
    assert await s.open(tmp_path / "events.db")
    yield s
    await s.close()


@pytest.fixture
def auth_threat():
    return AUTH_THREAT


@pytest.fixture
def fake_collector():
    """Factory for FakeCollector instances."""
    return FakeCollector
