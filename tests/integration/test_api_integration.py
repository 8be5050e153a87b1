"""End-to-end API tests against a real store on a temp database."""

import pytest


class TestScanEndpoints:
    @pytest.mark.asyncio
    async def test_scan_before_any_run(self, client):
        resp = await client.get("/api/v1/events/scan")
        assert resp.status_code == 200
        data = resp.json()
        assert data["worker"] == "scan"
        assert data["total"] == 0
        assert data["last_run"] is None

    @pytest.mark.asyncio
    async def test_run_scan_persists_and_returns_events(self, client, test_app):
        resp = await client.post("/api/v1/events/scan", json={"lookback_days": 3})
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 3
        assert data["threat_events"] == 1
        assert data["last_run"] is not None
        assert all(e["fingerprint"] for e in data["events"])

        collector = test_app.state.scan_worker._collector
        assert collector.calls == [("all", 3)]

        stats = (await client.get("/api/v1/store/stats")).json()
        assert stats["active_events"] == 3
        assert stats["recent_runs"][0]["new_events"] == 3
        assert stats["recent_runs"][0]["scan_days"] == 3

    @pytest.mark.asyncio
    async def test_rescan_does_not_duplicate(self, client):
        await client.post("/api/v1/events/scan")
        resp = await client.post("/api/v1/events/scan")
        assert resp.json()["total"] == 3

        stats = (await client.get("/api/v1/store/stats")).json()
        assert stats["total_events"] == 3
        assert stats["recent_runs"][0]["new_events"] == 0

    @pytest.mark.asyncio
    async def test_filters(self, client):
        await client.post("/api/v1/events/scan")

        critical = (await client.get("/api/v1/events/scan", params={"severity_group": "critical"})).json()
        assert [e["message"] for e in critical["events"]] == ["watchdog timeout"]

        threats = (await client.get("/api/v1/events/scan", params={"threats_only": "true"})).json()
        assert threats["total"] == 1
        assert threats["events"][0]["threats"][0]["category"] == "Authentication"

        limited = (await client.get("/api/v1/events/scan", params={"limit": 1})).json()
        assert limited["total"] == 3
        assert len(limited["events"]) == 1

    @pytest.mark.asyncio
    async def test_invalid_lookback_rejected(self, client):
        resp = await client.post("/api/v1/events/scan", json={"lookback_days": 0})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_invalid_severity_group_rejected(self, client):
        resp = await client.get("/api/v1/events/scan", params={"severity_group": "info"})
        assert resp.status_code == 422


class TestLiveEndpoints:
    @pytest.mark.asyncio
    async def test_live_settings(self, client):
        resp = await client.get("/api/v1/live")
        assert resp.json() == {"poll_interval": 5, "window_minutes": 60}

    @pytest.mark.asyncio
    async def test_update_interval_and_window(self, client):
        resp = await client.put("/api/v1/live/interval", json={"seconds": 30})
        assert resp.json()["poll_interval"] == 30

        resp = await client.put("/api/v1/live/window", json={"minutes": 15})
        assert resp.json() == {"poll_interval": 30, "window_minutes": 15}

    @pytest.mark.asyncio
    async def test_invalid_interval_rejected(self, client):
        resp = await client.put("/api/v1/live/interval", json={"seconds": 0})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_live_events_after_poll(self, client, test_app):
        await test_app.state.live_monitor.poll_once()
        data = (await client.get("/api/v1/events/live")).json()
        assert data["worker"] == "live"
        assert data["total"] == 3


class TestStoreEndpoints:
    @pytest.mark.asyncio
    async def test_stats_on_open_store(self, client, tmp_path):
        data = (await client.get("/api/v1/store/stats")).json()
        assert data["is_open"] is True
        assert data["location"] == str(tmp_path / "events.db")
        assert data["retention_days"] == 30
        assert data["last_error"] is None

    @pytest.mark.asyncio
    async def test_set_retention(self, client):
        resp = await client.put("/api/v1/store/retention", json={"days": 90})
        assert resp.json() == {"retention_days": 90}
        assert (await client.get("/api/v1/store/stats")).json()["retention_days"] == 90

    @pytest.mark.asyncio
    async def test_purge_with_nothing_expired(self, client):
        await client.post("/api/v1/events/scan")
        resp = await client.post("/api/v1/store/purge")
        assert resp.status_code == 200
        assert resp.json() == {"removed": 0}

    @pytest.mark.asyncio
    async def test_clear(self, client):
        await client.post("/api/v1/events/scan")
        resp = await client.post("/api/v1/store/clear")
        assert resp.json() == {"cleared": True}

        stats = (await client.get("/api/v1/store/stats")).json()
        assert stats["total_events"] == 0
        assert stats["recent_runs"] == []

    @pytest.mark.asyncio
    async def test_switch_location(self, client, tmp_path):
        await client.post("/api/v1/events/scan")
        new_path = tmp_path / "other" / "events.db"

        resp = await client.put("/api/v1/store/location", json={"path": str(new_path)})
        assert resp.json() == {"opened": True, "location": str(new_path), "error": None}
        assert new_path.exists()
        assert (await client.get("/api/v1/store/stats")).json()["total_events"] == 0

    @pytest.mark.asyncio
    async def test_closed_store_returns_503(self, client, test_app):
        await test_app.state.store.close()

        assert (await client.post("/api/v1/store/purge")).status_code == 503
        assert (await client.post("/api/v1/store/clear")).status_code == 503

        stats = (await client.get("/api/v1/store/stats")).json()
        assert stats["is_open"] is False
        assert stats["location"] == ""

    @pytest.mark.asyncio
    async def test_scan_with_closed_store_passes_events_through(self, client, test_app):
        await test_app.state.store.close()
        data = (await client.post("/api/v1/events/scan")).json()
        assert data["total"] == 3
        assert all(e["fingerprint"] is None for e in data["events"])


class TestSystemEndpoints:
    @pytest.mark.asyncio
    async def test_health(self, client):
        data = (await client.get("/api/v1/health")).json()
        assert data["status"] == "healthy"
        assert data["store_open"] is True
        assert set(data["modules"]) == {"scan_worker", "live_monitor", "retention", "event_bus"}

    @pytest.mark.asyncio
    async def test_health_degraded_when_store_closed(self, client, test_app):
        await test_app.state.store.close()
        data = (await client.get("/api/v1/health")).json()
        assert data["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_notifications(self, client):
        await client.post("/api/v1/events/scan")

        data = (await client.get("/api/v1/notifications")).json()
        types = [n["type"] for n in data]
        assert "database_opened" in types
        assert types[0] == "scan_complete"

        opened = (await client.get("/api/v1/notifications", params={"event_type": "database_opened"})).json()
        assert len(opened) == 1

    @pytest.mark.asyncio
    async def test_unknown_notification_type_rejected(self, client):
        resp = await client.get("/api/v1/notifications", params={"event_type": "nonsense"})
        assert resp.status_code == 422
