"""Unit tests for the StatusService facade."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from prober.middleware.error_handler import (
    CatalogUnavailableError,
    EndpointStatusNotFoundError,
    InvalidRequestError,
)
from prober.models.domain import HistoryPoint, Rollup, SiteStatus, Verdict
from prober.services.aggregator import StatusAggregator
from prober.services.cooldown import NotificationCooldownGate
from prober.services.scheduler import ProbeScheduler
from prober.services.status_service import StatusService

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def catalog(fake_catalog, make_endpoint):
    return fake_catalog(
        [
            make_endpoint("gw", "hq", is_critical=True),
            make_endpoint("ap1", "hq"),
            make_endpoint("ap2", "hq"),
            make_endpoint("ap3", "hq"),
        ]
    )


@pytest.fixture
def service(memory_store, catalog) -> StatusService:
    return StatusService(
        store=memory_store,
        catalog=catalog,
        aggregator=StatusAggregator(memory_store),
        cooldown_gate=NotificationCooldownGate(memory_store, clock=lambda: NOW),
        clock=lambda: NOW,
    )


def _point(at: datetime) -> HistoryPoint:
    return HistoryPoint(endpoint_id="gw", timestamp=at, status=Verdict.REACHABLE, response_time_ms=3.0)


class TestEndpointQueries:
    @pytest.mark.asyncio
    async def test_missing_status_raises_not_found(self, service):
        with pytest.raises(EndpointStatusNotFoundError) as exc_info:
            await service.get_endpoint_status("gw")

        assert exc_info.value.details == {"endpoint_id": "gw"}

    @pytest.mark.asyncio
    async def test_returns_current_status(self, service, memory_store, make_status):
        await memory_store.set_endpoint_status(make_status("gw"))

        assert (await service.get_endpoint_status("gw")).is_reachable

    @pytest.mark.asyncio
    async def test_lists_statuses_sorted_by_id(self, service, memory_store, make_status):
        await memory_store.set_endpoint_status(make_status("b"))
        await memory_store.set_endpoint_status(make_status("a"))

        assert [s.endpoint_id for s in await service.list_endpoint_statuses()] == ["a", "b"]


class TestHistory:
    @pytest.mark.asyncio
    async def test_defaults_to_last_24_hours(self, service, memory_store):
        await memory_store.add_history_point(_point(NOW - timedelta(hours=25)))
        await memory_store.add_history_point(_point(NOW - timedelta(hours=23)))
        await memory_store.add_history_point(_point(NOW))

        points = await service.get_endpoint_history("gw")

        assert [p.timestamp for p in points] == [NOW - timedelta(hours=23), NOW]

    @pytest.mark.asyncio
    async def test_naive_bounds_are_utc(self, service, memory_store):
        await memory_store.add_history_point(_point(NOW - timedelta(hours=1)))

        points = await service.get_endpoint_history(
            "gw", start=datetime(2024, 6, 1, 10, 0), end=datetime(2024, 6, 1, 12, 0)
        )

        assert len(points) == 1

    @pytest.mark.asyncio
    async def test_start_after_end_rejected(self, service):
        with pytest.raises(InvalidRequestError):
            await service.get_endpoint_history("gw", start=NOW, end=NOW - timedelta(seconds=1))

    @pytest.mark.asyncio
    async def test_equal_bounds_allowed(self, service, memory_store):
        await memory_store.add_history_point(_point(NOW))

        assert len(await service.get_endpoint_history("gw", start=NOW, end=NOW)) == 1


class TestSiteQueries:
    @pytest.mark.asyncio
    async def test_site_status_computed_on_demand(self, service, memory_store, make_status):
        for endpoint_id in ("gw", "ap1", "ap3"):
            await memory_store.set_endpoint_status(make_status(endpoint_id))
        await memory_store.set_endpoint_status(make_status("ap2", reachable=False))

        site = await service.get_site_status("hq")

        assert site.status == Rollup.YELLOW
        assert (site.online_count, site.offline_count) == (3, 1)
        # On-demand computation does not overwrite the stored rollup
        assert await memory_store.get_site_status("hq") is None

    @pytest.mark.asyncio
    async def test_catalog_outage_serves_last_stored_rollup(
        self, service, memory_store, catalog, fake_probe
    ):
        scheduler = ProbeScheduler(
            catalog=catalog,
            probe=fake_probe(down={"ap2"}),
            store=memory_store,
            aggregator=StatusAggregator(memory_store),
        )
        await scheduler.run_cycle()
        assert (await service.get_site_status("hq")).status == Rollup.YELLOW

        catalog.error = CatalogUnavailableError("catalog down")

        site = await service.get_site_status("hq")
        assert site.status == Rollup.YELLOW
        assert (site.online_count, site.offline_count) == (3, 1)

    @pytest.mark.asyncio
    async def test_catalog_outage_without_stored_rollup_raises(self, service, catalog):
        catalog.error = CatalogUnavailableError("catalog down")

        with pytest.raises(CatalogUnavailableError):
            await service.get_site_status("hq")

    @pytest.mark.asyncio
    async def test_unknown_site_is_green_and_empty(self, service):
        site = await service.get_site_status("nowhere")

        assert site.status == Rollup.GREEN
        assert site.total_count == 0

    @pytest.mark.asyncio
    async def test_dashboard_summary_over_stored_rollups(self, service, memory_store):
        await memory_store.set_site_status(SiteStatus(site_id="a", status=Rollup.RED))
        await memory_store.set_site_status(SiteStatus(site_id="b", status=Rollup.GREEN))

        summary = await service.get_dashboard_summary()

        assert summary.total_sites == 2
        assert summary.red_count == 1
        assert summary.green_count == 1
        assert [s.site_id for s in await service.list_site_statuses()] == ["a", "b"]


class TestNotifications:
    @pytest.mark.asyncio
    async def test_cooldown_round_trip(self, service):
        assert await service.should_notify("hq", "down") is True

        record = await service.record_notification("hq", "down")

        assert record.last_sent == NOW
        assert await service.should_notify("hq", "down") is False
        assert (await service.get_notification_record("hq", "down")).last_sent == NOW
