"""Read-side facade over the store, catalog, aggregator and cooldown gate.

Handles the queries consumed by the HTTP surface (and by any external
dashboard or notifier): current endpoint status, on-demand site rollups,
response-time history and notification cooldown checks.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from enum import Enum

from prober.catalog.base import EndpointCatalog
from prober.middleware.error_handler import (
    CatalogUnavailableError,
    EndpointStatusNotFoundError,
    InvalidRequestError,
)
from prober.models.domain import (
    CooldownRecord,
    DashboardSummary,
    EndpointStatus,
    HistoryPoint,
    SiteStatus,
    ensure_utc,
    utcnow,
)
from prober.services.aggregator import StatusAggregator
from prober.services.cooldown import NotificationCooldownGate
from prober.store.base import StatusStore

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_WINDOW = timedelta(hours=24)


class StatusService:
    """Answers status, history and cooldown queries."""

    def __init__(
        self,
        *,
        store: StatusStore,
        catalog: EndpointCatalog,
        aggregator: StatusAggregator,
        cooldown_gate: NotificationCooldownGate,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._aggregator = aggregator
        self._cooldown_gate = cooldown_gate
        self._clock = clock

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def get_endpoint_status(self, endpoint_id: str) -> EndpointStatus:
        """Return the current status or raise ``EndpointStatusNotFoundError``."""
        status = await self._store.get_endpoint_status(endpoint_id)
        if status is None:
            raise EndpointStatusNotFoundError(endpoint_id=endpoint_id)
        return status

    async def list_endpoint_statuses(self) -> list[EndpointStatus]:
        statuses = await self._store.get_all_endpoint_statuses()
        return [statuses[key] for key in sorted(statuses)]

    async def get_endpoint_history(
        self,
        endpoint_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[HistoryPoint]:
        """Return history samples in ``[start, end]``, oldest first.

        Missing bounds default to the last 24 hours ending now. Naive
        datetimes are taken as UTC.
        """
        end = ensure_utc(end) if end is not None else self._clock()
        start = ensure_utc(start) if start is not None else end - DEFAULT_HISTORY_WINDOW
        if start > end:
            raise InvalidRequestError(
                "start must not be after end",
                start=start.isoformat(),
                end=end.isoformat(),
            )
        return await self._store.get_history(endpoint_id, start, end)

    # ------------------------------------------------------------------
    # Sites
    # ------------------------------------------------------------------

    async def get_site_status(self, site_id: str) -> SiteStatus:
        """Compute the site rollup now from the catalog and current statuses.

        Uses the same aggregation path as the scheduler, so both agree on the
        same inputs. A site unknown to the catalog has no endpoints and is
        green. When the catalog is unavailable the last stored rollup is
        returned instead; the error propagates only if none exists.
        """
        try:
            endpoints = await self._catalog.list_site_endpoints(site_id)
        except CatalogUnavailableError as exc:
            stored = await self._store.get_site_status(site_id)
            if stored is None:
                raise
            logger.warning(
                "Catalog unavailable, serving stored rollup for site %s: %s",
                site_id,
                exc,
                extra={"site_id": site_id, "error_reason": str(exc)},
            )
            return stored
        return await self._aggregator.aggregate(site_id, endpoints)

    async def list_site_statuses(self) -> list[SiteStatus]:
        """Stored rollups from the latest completed cycle, by site id."""
        statuses = await self._store.get_all_site_statuses()
        return [statuses[key] for key in sorted(statuses)]

    async def get_dashboard_summary(self) -> DashboardSummary:
        return DashboardSummary.from_statuses(await self.list_site_statuses())

    # ------------------------------------------------------------------
    # Notification cooldowns
    # ------------------------------------------------------------------

    async def should_notify(
        self,
        site_id: str,
        event_type: str | Enum,
        cooldown_seconds: float | None = None,
    ) -> bool:
        return await self._cooldown_gate.should_notify(site_id, event_type, cooldown_seconds)

    async def record_notification(
        self,
        site_id: str,
        event_type: str | Enum,
        at: datetime | None = None,
    ) -> CooldownRecord:
        return await self._cooldown_gate.record_notification(site_id, event_type, at)

    async def get_notification_record(
        self, site_id: str, event_type: str | Enum
    ) -> CooldownRecord | None:
        return await self._cooldown_gate.get_record(site_id, event_type)
