"""Read-only view of the endpoint catalog.

The catalog (sites, endpoints and their probe parameters) is owned by the
surrounding application. The prober only ever reads it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable

from pydantic import ValidationError

from prober.models.domain import Endpoint

logger = logging.getLogger(__name__)


class EndpointCatalog(ABC):
    """Source of endpoint snapshots for the scheduler and the status service."""

    @abstractmethod
    async def list_active_endpoints(self) -> list[Endpoint]:
        """Return every active endpoint across all sites.

        Raises
        ------
        CatalogUnavailableError
            If the catalog cannot be read.
        """
        ...

    @abstractmethod
    async def list_site_endpoints(self, site_id: str) -> list[Endpoint]:
        """Return the active endpoints belonging to *site_id* (may be empty)."""
        ...

    async def close(self) -> None:
        """Release any held resources."""
        return None


def parse_endpoints(
    raw_items: Iterable[object],
    *,
    defaults: dict | None = None,
    site_id: str | None = None,
) -> list[Endpoint]:
    """Validate raw catalog records into active ``Endpoint`` snapshots.

    Missing probe parameters are filled from *defaults*; *site_id* (when
    given) overrides the record's own site. Invalid and inactive records are
    skipped, invalid ones with an error log.
    """
    endpoints: list[Endpoint] = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            logger.error("Skipping non-mapping catalog entry: %r", raw)
            continue
        record = {**(defaults or {}), **{k: v for k, v in raw.items() if v is not None}}
        if site_id is not None:
            record["site_id"] = site_id
        try:
            endpoint = Endpoint.model_validate(record)
        except ValidationError as exc:
            logger.error(
                "Invalid catalog entry %r — skipping: %s",
                raw.get("id"),
                exc,
            )
            continue
        if endpoint.active:
            endpoints.append(endpoint)
    return endpoints
