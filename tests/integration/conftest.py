"""Integration test fixtures: a full app on a temp database, async client, canned collectors."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from errorsurface.config import ErrorSurfaceConfig
from errorsurface.main import create_app


@pytest.fixture
def canned_events(event_factory, auth_threat):
    return [
        event_factory(message="Failed password for root from 10.0.0.5", unit="sshd.service", priority=4,
                      threats=[auth_threat]),
        event_factory(message="I/O error on sda", unit="kernel", source="kernel", priority=3),
        event_factory(message="watchdog timeout", unit="watchdog.service", priority=2),
    ]


@pytest_asyncio.fixture
async def test_app(tmp_path, canned_events, fake_collector):
    """App with its lifespan entered; no background scan, live loop or periodic purge."""
    config = ErrorSurfaceConfig(
        database_path=str(tmp_path / "events.db"),
        scan_on_start=False,
        live_enabled=False,
        purge_on_start=False,
        purge_interval=0,
        _env_file=None,
    )
    app = create_app(config, collector_factory=lambda c: fake_collector([canned_events]))
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(test_app):
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
