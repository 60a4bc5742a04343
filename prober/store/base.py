"""Status store interface.

The store holds everything the prober produces: the current status of each
endpoint (with a bounded time-to-live so stale entries read as absent), the
append-only history of probe samples, the latest rollup per site and the
last-notification timestamps the cooldown gate reads.

Implementations must tolerate many concurrent writers and readers. Each
probe task owns a disjoint endpoint key, so last-write-wins per key is
sufficient.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime

from prober.models.domain import EndpointStatus, HistoryPoint, SiteStatus


class StatusStore(ABC):
    """Durable key-value and time-series store for probe results.

    All operations raise ``StatusStoreError`` when the backend fails.
    """

    # ------------------------------------------------------------------
    # Endpoint status
    # ------------------------------------------------------------------

    @abstractmethod
    async def set_endpoint_status(self, status: EndpointStatus) -> None:
        """Overwrite the current status of ``status.endpoint_id``."""

    @abstractmethod
    async def get_endpoint_status(self, endpoint_id: str) -> EndpointStatus | None:
        """Return the current status, or ``None`` if never written or expired."""

    @abstractmethod
    async def get_endpoint_statuses(
        self, endpoint_ids: Sequence[str]
    ) -> dict[str, EndpointStatus]:
        """Bulk lookup in a single round trip.

        Endpoints without a current status are omitted from the result.
        """

    @abstractmethod
    async def get_all_endpoint_statuses(self) -> dict[str, EndpointStatus]:
        """Return every unexpired endpoint status keyed by endpoint id."""

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @abstractmethod
    async def add_history_point(self, point: HistoryPoint) -> None:
        """Append a history sample for ``point.endpoint_id``."""

    @abstractmethod
    async def get_history(
        self, endpoint_id: str, start: datetime, end: datetime
    ) -> list[HistoryPoint]:
        """Return samples with ``start <= timestamp <= end``, oldest first."""

    @abstractmethod
    async def prune_history(self, older_than: datetime) -> int:
        """Delete samples strictly older than *older_than* for all endpoints.

        Idempotent and safe to run while samples are being appended.
        Returns the number of samples removed.
        """

    # ------------------------------------------------------------------
    # Site rollups
    # ------------------------------------------------------------------

    @abstractmethod
    async def set_site_status(self, status: SiteStatus) -> None:
        """Overwrite the stored rollup for ``status.site_id``."""

    @abstractmethod
    async def get_site_status(self, site_id: str) -> SiteStatus | None:
        """Return the stored rollup, or ``None`` if absent or expired."""

    @abstractmethod
    async def get_all_site_statuses(self) -> dict[str, SiteStatus]:
        """Return every unexpired stored rollup keyed by site id."""

    # ------------------------------------------------------------------
    # Notification cooldowns
    # ------------------------------------------------------------------

    @abstractmethod
    async def set_last_notification(
        self, site_id: str, event_type: str, at: datetime
    ) -> None:
        """Record that a notification of *event_type* was sent at *at*."""

    @abstractmethod
    async def get_last_notification(
        self, site_id: str, event_type: str
    ) -> datetime | None:
        """Return when *event_type* was last notified for the site, if ever."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def ping(self) -> bool:
        """Return ``True`` if the backend is reachable."""

    async def close(self) -> None:
        """Release backend connections."""
        return None
