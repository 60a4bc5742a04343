"""Component wiring shared by the HTTP service and the headless worker.

Startup: validate settings, build the store, catalog, probe, aggregator,
scheduler, retention sweeper, cooldown gate and status service.
Shutdown: graceful drain — request a scheduler stop, wait for the in-flight
cycle up to ``graceful_shutdown_seconds``, abort it if it overruns, cancel the
sweeper, close the catalog and the store.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field

from prober.catalog.base import EndpointCatalog
from prober.catalog.file import FileEndpointCatalog
from prober.catalog.http import HttpEndpointCatalog
from prober.config.settings import ProberSettings
from prober.middleware.error_handler import ConfigurationError
from prober.probe.icmp import IcmpProbe
from prober.services.aggregator import StatusAggregator
from prober.services.cooldown import NotificationCooldownGate
from prober.services.retention import HistoryRetentionSweeper
from prober.services.scheduler import ProbeScheduler
from prober.services.status_service import StatusService
from prober.store.base import StatusStore
from prober.store.memory import InMemoryStatusStore
from prober.store.redis_store import RedisStatusStore

logger = logging.getLogger(__name__)


def build_store(settings: ProberSettings) -> StatusStore:
    if settings.store_backend == "memory":
        return InMemoryStatusStore(status_ttl_seconds=settings.status_ttl_seconds)
    return RedisStatusStore.from_url(
        settings.redis_url, status_ttl_seconds=settings.status_ttl_seconds
    )


def build_catalog(settings: ProberSettings) -> EndpointCatalog:
    """Build the configured catalog accessor.

    Endpoints that omit ``retries`` or ``timeout_ms`` inherit the
    ``default_retries`` / ``default_timeout_ms`` settings.
    """
    defaults = {
        "retries": settings.default_retries,
        "timeout_ms": settings.default_timeout_ms,
    }
    if settings.catalog_backend == "http":
        if not settings.catalog_api_url:
            raise ConfigurationError(
                "PROBER_CATALOG_API_URL is required when catalog_backend is 'http'"
            )
        return HttpEndpointCatalog(
            settings.catalog_api_url,
            settings.catalog_service_key,
            defaults=defaults,
            max_retries=settings.catalog_max_retries,
        )
    return FileEndpointCatalog(settings.catalog_path, defaults=defaults)


@dataclass
class ProberComponents:
    """Every long-lived component of one prober process."""

    settings: ProberSettings
    store: StatusStore
    catalog: EndpointCatalog
    scheduler: ProbeScheduler
    sweeper: HistoryRetentionSweeper
    status_service: StatusService
    _tasks: list[asyncio.Task] = field(default_factory=list)

    def start(self) -> None:
        """Start the scheduler and retention loops as background tasks."""
        self._tasks = [
            asyncio.create_task(self.scheduler.run(), name="probe-scheduler"),
            asyncio.create_task(self.sweeper.run(), name="history-retention"),
        ]

    async def wait(self) -> None:
        """Block until the scheduler loop exits (after ``stop()``)."""
        if self._tasks:
            await asyncio.wait({self._tasks[0]})

    async def shutdown(self) -> None:
        """Stop the scheduler, drain the in-flight cycle, release resources."""
        timeout = self.settings.graceful_shutdown_seconds
        self.scheduler.stop()

        if self._tasks:
            scheduler_task, sweeper_task = self._tasks
            _, pending = await asyncio.wait({scheduler_task}, timeout=timeout)
            if pending:
                logger.warning(
                    "In-flight probe cycle did not drain within %ss — aborting", timeout
                )
                self.scheduler.abort()
                scheduler_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await scheduler_task

            sweeper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper_task
            self._tasks = []

        await self.catalog.close()
        await self.store.close()


def build_components(settings: ProberSettings) -> ProberComponents:
    """Construct and connect all components; raises ``ConfigurationError`` early."""
    store = build_store(settings)
    catalog = build_catalog(settings)
    aggregator = StatusAggregator(store)
    scheduler = ProbeScheduler(
        catalog=catalog,
        probe=IcmpProbe(privileged=settings.privileged_ping),
        store=store,
        aggregator=aggregator,
        max_concurrent_probes=settings.max_concurrent_probes,
        tick_interval_seconds=settings.tick_interval_seconds,
    )
    sweeper = HistoryRetentionSweeper(
        store,
        retention_days=settings.history_retention_days,
        interval_seconds=settings.history_prune_interval_seconds,
    )
    cooldown_gate = NotificationCooldownGate(
        store, default_cooldown_seconds=settings.notification_cooldown_seconds
    )
    status_service = StatusService(
        store=store,
        catalog=catalog,
        aggregator=aggregator,
        cooldown_gate=cooldown_gate,
    )
    return ProberComponents(
        settings=settings,
        store=store,
        catalog=catalog,
        scheduler=scheduler,
        sweeper=sweeper,
        status_service=status_service,
    )
