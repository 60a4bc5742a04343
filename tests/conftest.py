"""Shared test fixtures and fakes for the prober test suite."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone

import pytest

from prober.catalog.base import EndpointCatalog
from prober.config.settings import ProberSettings
from prober.models.domain import Endpoint, EndpointStatus, Verdict
from prober.probe.base import BaseProbe
from prober.store.memory import InMemoryStatusStore


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> ProberSettings:
    """Test settings with safe defaults (memory store, fast ticks)."""
    return ProberSettings(
        store_backend="memory",
        catalog_backend="file",
        max_concurrent_probes=4,
        tick_interval_seconds=0.05,
        history_prune_interval_seconds=3600,
        graceful_shutdown_seconds=5,
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeCatalog(EndpointCatalog):
    """In-memory catalog; swap ``endpoints`` or set ``error`` between calls."""

    def __init__(self, endpoints: list[Endpoint] | None = None) -> None:
        self.endpoints = list(endpoints or [])
        self.error: Exception | None = None
        self.calls = 0

    async def list_active_endpoints(self) -> list[Endpoint]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [endpoint for endpoint in self.endpoints if endpoint.active]

    async def list_site_endpoints(self, site_id: str) -> list[Endpoint]:
        if self.error is not None:
            raise self.error
        return [
            endpoint
            for endpoint in self.endpoints
            if endpoint.site_id == site_id and endpoint.active
        ]


class FakeProbe(BaseProbe):
    """Probe with scripted verdicts and an optional per-probe delay.

    Hostnames listed in ``down`` are unreachable, ``raises`` make the probe
    raise. Tracks concurrency so tests can assert on the scheduler bound.
    """

    def __init__(
        self,
        *,
        down: set[str] | None = None,
        raises: set[str] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.down = set(down or ())
        self.raises = set(raises or ())
        self.delay = delay
        self.in_flight = 0
        self.peak_in_flight = 0
        self.probed: list[str] = []

    async def probe(self, endpoint: Endpoint) -> EndpointStatus:
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            else:
                await asyncio.sleep(0)
            self.probed.append(endpoint.hostname)
            if endpoint.hostname in self.raises:
                raise RuntimeError(f"boom on {endpoint.hostname}")
            checked_at = datetime.now(timezone.utc)
            if endpoint.hostname in self.down:
                return self.unreachable(endpoint, checked_at, "No packets received (3 sent)")
            return self.reachable(endpoint, checked_at, [12.5])
        finally:
            self.in_flight -= 1


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def memory_store() -> InMemoryStatusStore:
    return InMemoryStatusStore(status_ttl_seconds=600)


@pytest.fixture
def make_endpoint() -> Callable[..., Endpoint]:
    """Factory for endpoints with sensible defaults; hostname defaults to the id."""

    def _make(
        endpoint_id: str,
        site_id: str = "site-1",
        *,
        is_critical: bool = False,
        **kwargs: object,
    ) -> Endpoint:
        return Endpoint(
            id=endpoint_id,
            site_id=site_id,
            hostname=kwargs.pop("hostname", endpoint_id),
            is_critical=is_critical,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_status() -> Callable[..., EndpointStatus]:
    """Factory for current endpoint statuses."""

    def _make(
        endpoint_id: str,
        reachable: bool = True,
        *,
        last_check: datetime | None = None,
    ) -> EndpointStatus:
        return EndpointStatus(
            endpoint_id=endpoint_id,
            status=Verdict.REACHABLE if reachable else Verdict.UNREACHABLE,
            response_time_ms=10.0 if reachable else None,
            last_check=last_check or datetime.now(timezone.utc),
            message="OK" if reachable else "No packets received (3 sent)",
        )

    return _make


@pytest.fixture
def fake_catalog() -> type[FakeCatalog]:
    return FakeCatalog


@pytest.fixture
def fake_probe() -> type[FakeProbe]:
    return FakeProbe
