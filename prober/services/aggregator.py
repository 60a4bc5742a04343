"""Site rollup computation.

Derives a site's tri-state health from the current statuses of its
endpoints. Policy, in priority order:

- red    — every endpoint is unreachable, or a critical endpoint is unreachable
- yellow — some (not all) endpoints are unreachable, none of them critical
- green  — every endpoint is reachable, or the site has no endpoints

An endpoint with no current status (never probed, or its status expired)
counts as unreachable.

The scheduled path and the on-demand API path both go through
``StatusAggregator.aggregate`` so they always agree on the same inputs.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime

from prober.models.domain import Endpoint, EndpointStatus, Rollup, SiteStatus, utcnow
from prober.store.base import StatusStore

logger = logging.getLogger(__name__)


def compute_rollup(
    site_id: str,
    endpoints: Sequence[Endpoint],
    statuses: Mapping[str, EndpointStatus],
    now: datetime | None = None,
) -> SiteStatus:
    """Apply the rollup policy to *endpoints* given their current *statuses*.

    Pure apart from ``last_check``, which is *now* (default: current UTC time).
    """
    online = 0
    offline = 0
    critical_offline = False

    for endpoint in endpoints:
        status = statuses.get(endpoint.id)
        if status is not None and status.is_reachable:
            online += 1
        else:
            offline += 1
            if endpoint.is_critical:
                critical_offline = True

    total = len(endpoints)
    if total > 0 and (offline == total or critical_offline):
        rollup = Rollup.RED
    elif offline > 0:
        rollup = Rollup.YELLOW
    else:
        rollup = Rollup.GREEN

    return SiteStatus(
        site_id=site_id,
        status=rollup,
        online_count=online,
        offline_count=offline,
        total_count=total,
        critical_offline=critical_offline,
        last_check=now or utcnow(),
    )


class StatusAggregator:
    """Computes and persists site rollups from stored endpoint statuses.

    Parameters
    ----------
    store:
        Source of current endpoint statuses and sink for rollups.
    clock:
        Returns the timestamp stamped on each rollup; injectable for tests.
    """

    def __init__(
        self,
        store: StatusStore,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._clock = clock

    async def aggregate(self, site_id: str, endpoints: Sequence[Endpoint]) -> SiteStatus:
        """Compute the rollup for a site from the store's current statuses.

        A site with no endpoints is green without touching the store.
        Otherwise the endpoint statuses are fetched in one bulk lookup.
        """
        if not endpoints:
            return compute_rollup(site_id, (), {}, now=self._clock())

        statuses = await self._store.get_endpoint_statuses(
            [endpoint.id for endpoint in endpoints]
        )
        return compute_rollup(site_id, endpoints, statuses, now=self._clock())

    async def aggregate_and_store(
        self, site_id: str, endpoints: Sequence[Endpoint]
    ) -> SiteStatus:
        """Compute the rollup for a site and overwrite the stored one."""
        site_status = await self.aggregate(site_id, endpoints)
        await self._store.set_site_status(site_status)
        logger.debug(
            "Site %s rolled up to %s (online=%d, offline=%d, critical_offline=%s)",
            site_id,
            site_status.status.value,
            site_status.online_count,
            site_status.offline_count,
            site_status.critical_offline,
            extra={"site_id": site_id},
        )
        return site_status
