"""Process-local status store.

All state is held in-memory and lost on restart. Suitable for tests and a
single-process deployment where the dashboard only needs live data.
"""

from __future__ import annotations

import asyncio
import bisect
import time
from collections.abc import Callable, Sequence
from datetime import datetime

from prober.models.domain import EndpointStatus, HistoryPoint, SiteStatus
from prober.store.base import StatusStore


def _point_ts(point: HistoryPoint) -> datetime:
    return point.timestamp


class InMemoryStatusStore(StatusStore):
    """Dict-backed ``StatusStore``.

    Parameters
    ----------
    status_ttl_seconds:
        Lifetime of current endpoint and site statuses (default 600).
    monotonic:
        Clock used for expiry; injectable for tests.
    """

    def __init__(
        self,
        status_ttl_seconds: float = 600,
        *,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = status_ttl_seconds
        self._monotonic = monotonic
        self._lock = asyncio.Lock()

        # id -> (value, expiry on the monotonic clock)
        self._endpoint_status: dict[str, tuple[EndpointStatus, float]] = {}
        self._site_status: dict[str, tuple[SiteStatus, float]] = {}

        # endpoint id -> samples ordered by timestamp
        self._history: dict[str, list[HistoryPoint]] = {}

        self._notifications: dict[tuple[str, str], datetime] = {}

    # ------------------------------------------------------------------
    # Endpoint status
    # ------------------------------------------------------------------

    async def set_endpoint_status(self, status: EndpointStatus) -> None:
        async with self._lock:
            self._endpoint_status[status.endpoint_id] = (
                status,
                self._monotonic() + self._ttl,
            )

    async def get_endpoint_status(self, endpoint_id: str) -> EndpointStatus | None:
        return self._live(self._endpoint_status, endpoint_id)

    async def get_endpoint_statuses(
        self, endpoint_ids: Sequence[str]
    ) -> dict[str, EndpointStatus]:
        found: dict[str, EndpointStatus] = {}
        for endpoint_id in endpoint_ids:
            status = self._live(self._endpoint_status, endpoint_id)
            if status is not None:
                found[endpoint_id] = status
        return found

    async def get_all_endpoint_statuses(self) -> dict[str, EndpointStatus]:
        return await self.get_endpoint_statuses(list(self._endpoint_status))

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def add_history_point(self, point: HistoryPoint) -> None:
        async with self._lock:
            points = self._history.setdefault(point.endpoint_id, [])
            bisect.insort_right(points, point, key=_point_ts)

    async def get_history(
        self, endpoint_id: str, start: datetime, end: datetime
    ) -> list[HistoryPoint]:
        points = self._history.get(endpoint_id, [])
        lo = bisect.bisect_left(points, start, key=_point_ts)
        hi = bisect.bisect_right(points, end, key=_point_ts)
        return list(points[lo:hi])

    async def prune_history(self, older_than: datetime) -> int:
        removed = 0
        async with self._lock:
            for endpoint_id in list(self._history):
                points = self._history[endpoint_id]
                cut = bisect.bisect_left(points, older_than, key=_point_ts)
                if cut:
                    del points[:cut]
                    removed += cut
                if not points:
                    del self._history[endpoint_id]
        return removed

    # ------------------------------------------------------------------
    # Site rollups
    # ------------------------------------------------------------------

    async def set_site_status(self, status: SiteStatus) -> None:
        async with self._lock:
            self._site_status[status.site_id] = (
                status,
                self._monotonic() + self._ttl,
            )

    async def get_site_status(self, site_id: str) -> SiteStatus | None:
        return self._live(self._site_status, site_id)

    async def get_all_site_statuses(self) -> dict[str, SiteStatus]:
        found: dict[str, SiteStatus] = {}
        for site_id in list(self._site_status):
            status = self._live(self._site_status, site_id)
            if status is not None:
                found[site_id] = status
        return found

    # ------------------------------------------------------------------
    # Notification cooldowns
    # ------------------------------------------------------------------

    async def set_last_notification(
        self, site_id: str, event_type: str, at: datetime
    ) -> None:
        async with self._lock:
            self._notifications[(site_id, event_type)] = at

    async def get_last_notification(
        self, site_id: str, event_type: str
    ) -> datetime | None:
        return self._notifications.get((site_id, event_type))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ping(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _live(self, table: dict, key: str):  # noqa: ANN202
        """Return the unexpired value for *key*, evicting it if expired."""
        entry = table.get(key)
        if entry is None:
            return None
        value, expiry = entry
        if self._monotonic() >= expiry:
            table.pop(key, None)
            return None
        return value
