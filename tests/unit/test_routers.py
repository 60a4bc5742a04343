"""Unit tests for the HTTP surface (routers, middleware, lifespan)."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from prober.config.settings import ProberSettings
from prober.main import create_app
from prober.middleware.error_handler import register_error_handlers
from prober.middleware.request_id import RequestIdMiddleware
from prober.models.domain import HistoryPoint, Rollup, SiteStatus, Verdict
from prober.routers.health import create_health_router
from prober.routers.status import create_status_router
from prober.services.aggregator import StatusAggregator
from prober.services.cooldown import NotificationCooldownGate
from prober.services.scheduler import SchedulerState
from prober.services.status_service import StatusService

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def app(memory_store, fake_catalog, make_endpoint, make_status) -> FastAPI:
    catalog = fake_catalog(
        [make_endpoint("gw", "hq", is_critical=True), make_endpoint("ap1", "hq")]
    )
    service = StatusService(
        store=memory_store,
        catalog=catalog,
        aggregator=StatusAggregator(memory_store),
        cooldown_gate=NotificationCooldownGate(memory_store),
    )

    async def _seed() -> None:
        await memory_store.set_endpoint_status(make_status("gw"))
        await memory_store.set_endpoint_status(make_status("ap1", reachable=False))
        await memory_store.add_history_point(
            HistoryPoint(endpoint_id="gw", timestamp=NOW, status=Verdict.REACHABLE)
        )
        await memory_store.set_site_status(
            SiteStatus(
                site_id="hq",
                status=Rollup.YELLOW,
                online_count=1,
                offline_count=1,
                total_count=2,
            )
        )

    asyncio.run(_seed())

    application = FastAPI()
    register_error_handlers(application)
    application.add_middleware(RequestIdMiddleware)
    application.include_router(create_status_router(status_service=service))
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


class TestStatusRoutes:
    def test_list_endpoint_statuses(self, client: TestClient):
        body = client.get("/api/v1/endpoints/status").json()

        assert body["success"] is True
        assert body["meta"] == {"count": 2}
        assert {s["endpoint_id"] for s in body["data"]} == {"gw", "ap1"}

    def test_get_endpoint_status(self, client: TestClient):
        response = client.get("/api/v1/endpoints/ap1/status")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "unreachable"

    def test_unknown_endpoint_is_404_envelope(self, client: TestClient):
        response = client.get("/api/v1/endpoints/nope/status")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Endpoint status not found"
        assert body["meta"] == {"endpoint_id": "nope"}

    def test_history_with_explicit_range(self, client: TestClient):
        response = client.get(
            "/api/v1/endpoints/gw/history",
            params={"start": "2024-06-01T11:00:00Z", "end": "2024-06-01T13:00:00Z"},
        )

        assert response.status_code == 200
        assert response.json()["meta"] == {"count": 1}

    def test_history_inverted_range_is_422(self, client: TestClient):
        response = client.get(
            "/api/v1/endpoints/gw/history",
            params={"start": "2024-06-02T00:00:00Z", "end": "2024-06-01T00:00:00Z"},
        )

        assert response.status_code == 422
        assert response.json()["success"] is False

    def test_site_status_on_demand(self, client: TestClient):
        data = client.get("/api/v1/sites/hq/status").json()["data"]

        assert data["status"] == "yellow"
        assert data["online_count"] == 1
        assert data["offline_count"] == 1

    def test_list_site_statuses_and_summary(self, client: TestClient):
        sites = client.get("/api/v1/sites/status").json()
        summary = client.get("/api/v1/dashboard/summary").json()

        assert [s["site_id"] for s in sites["data"]] == ["hq"]
        assert summary["data"] == {
            "total_sites": 1,
            "red_count": 0,
            "yellow_count": 1,
            "green_count": 0,
        }

    def test_notification_cooldown_flow(self, client: TestClient):
        url = "/api/v1/sites/hq/notifications/down"

        first = client.get(url).json()["data"]
        assert first["should_notify"] is True
        assert first["last_sent"] is None

        recorded = client.post(url)
        assert recorded.status_code == 200
        assert recorded.json()["data"]["event_type"] == "down"

        assert client.get(url).json()["data"]["should_notify"] is False
        assert client.get(url, params={"cooldown_seconds": 0}).json()["data"]["should_notify"] is True

    def test_negative_cooldown_is_422(self, client: TestClient):
        response = client.get(
            "/api/v1/sites/hq/notifications/down", params={"cooldown_seconds": -5}
        )

        assert response.status_code == 422

    def test_request_id_propagated(self, client: TestClient):
        response = client.get("/api/v1/sites/status", headers={"X-Request-ID": "abc-123"})

        assert response.headers["X-Request-ID"] == "abc-123"

    def test_request_id_generated(self, client: TestClient):
        response = client.get("/api/v1/sites/status")

        assert response.headers["X-Request-ID"]


def _health_app(*, store_ok: bool, state: SchedulerState) -> FastAPI:
    store = MagicMock()
    store.ping = AsyncMock(return_value=store_ok)
    scheduler = MagicMock()
    scheduler.state = state
    scheduler.get_stats.return_value = {"cycles_completed": 7}
    sweeper = MagicMock()
    sweeper.get_stats.return_value = {"last_removed": 0}

    app = FastAPI()
    app.include_router(create_health_router(store=store, scheduler=scheduler, sweeper=sweeper))
    return app


class TestHealthRoutes:
    def test_health(self):
        body = TestClient(_health_app(store_ok=True, state=SchedulerState.IDLE)).get("/health").json()

        assert body["data"] == {"status": "healthy", "scheduler_state": "idle"}

    @pytest.mark.parametrize(
        "store_ok,state,expected",
        [
            (True, SchedulerState.IDLE, 200),
            (True, SchedulerState.TICKING, 200),
            (False, SchedulerState.IDLE, 503),
            (True, SchedulerState.STOPPED, 503),
        ],
    )
    def test_readiness(self, store_ok: bool, state: SchedulerState, expected: int):
        response = TestClient(_health_app(store_ok=store_ok, state=state)).get("/readiness")

        assert response.status_code == expected
        assert response.json()["data"]["ready"] is (expected == 200)

    def test_metrics(self):
        body = TestClient(_health_app(store_ok=True, state=SchedulerState.IDLE)).get("/metrics").json()

        assert body["data"]["scheduler"] == {"cycles_completed": 7}
        assert body["data"]["retention"] == {"last_removed": 0}


class TestApplication:
    def test_lifespan_wires_and_drains(self, tmp_path: Path):
        catalog_path = tmp_path / "catalog.yaml"
        catalog_path.write_text("sites: {}\n")
        settings = ProberSettings(
            store_backend="memory",
            catalog_backend="file",
            catalog_path=str(catalog_path),
            tick_interval_seconds=0.05,
            graceful_shutdown_seconds=2,
        )
        app = create_app(settings)

        with TestClient(app) as client:
            assert client.get("/health").json()["success"] is True
            assert client.get("/readiness").status_code == 200
            assert client.get("/api/v1/dashboard/summary").json()["data"]["total_sites"] == 0
            components = app.state.components

        assert components.scheduler.state == SchedulerState.STOPPED
