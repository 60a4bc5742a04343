"""HTTP client for the catalog service's internal endpoint listing API.

Fetches endpoints via ``GET {base}/endpoints?active=true`` and
``GET {base}/sites/{site_id}/endpoints`` with X-Service-Key authentication.
Transient failures (connection errors, timeouts, 5xx) are retried with
exponential backoff; anything else fails the call immediately.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from prober.catalog.base import EndpointCatalog, parse_endpoints
from prober.middleware.error_handler import CatalogUnavailableError
from prober.models.domain import Endpoint

logger = logging.getLogger(__name__)


class HttpEndpointCatalog(EndpointCatalog):
    """Catalog accessor backed by the catalog service's HTTP API.

    Parameters
    ----------
    base_url:
        Base URL of the internal catalog API.
    service_key:
        X-Service-Key value, or ``None`` when the catalog is unauthenticated.
    defaults:
        Probe parameters applied to records that omit them
        (``retries``, ``timeout_ms``).
    max_retries:
        Maximum attempts on transient failures (default 3).
    request_timeout:
        Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        service_key: str | None = None,
        *,
        defaults: dict | None = None,
        max_retries: int = 3,
        request_timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._service_key = service_key
        self._defaults = defaults or {}
        self._max_retries = max_retries
        self._request_timeout = request_timeout

    async def list_active_endpoints(self) -> list[Endpoint]:
        items = await self._fetch_with_retries(
            f"{self._base_url}/endpoints", params={"active": "true"}
        )
        return parse_endpoints(items, defaults=self._defaults)

    async def list_site_endpoints(self, site_id: str) -> list[Endpoint]:
        items = await self._fetch_with_retries(
            f"{self._base_url}/sites/{site_id}/endpoints"
        )
        return parse_endpoints(items, defaults=self._defaults, site_id=site_id)

    async def _fetch_with_retries(
        self, url: str, params: dict | None = None
    ) -> list:
        """GET *url* and return the list payload.

        Retry schedule: 1s, 2s, 4s (base 1s, factor 2).
        """
        headers = {"X-Service-Key": self._service_key} if self._service_key else {}
        last_exception: Exception | None = None

        for attempt in range(self._max_retries):
            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get(
                        url,
                        params=params,
                        headers=headers,
                        timeout=self._request_timeout,
                    )

                if response.status_code < 500:
                    response.raise_for_status()
                    try:
                        payload = response.json()
                    except ValueError as exc:
                        raise CatalogUnavailableError(
                            f"Catalog returned invalid JSON for {url}"
                        ) from exc
                    return self._unwrap(payload, url)

                response.raise_for_status()

            except (httpx.ConnectError, httpx.TimeoutException) as exc:
                last_exception = exc
                reason = f"unreachable ({exc.__class__.__name__})"
            except httpx.HTTPStatusError as exc:
                if exc.response.status_code < 500:
                    raise CatalogUnavailableError(
                        f"Catalog returned status {exc.response.status_code} for {url}"
                    ) from exc
                last_exception = exc
                reason = f"status {exc.response.status_code}"

            backoff = 2**attempt
            logger.warning(
                "Catalog %s (attempt %d/%d) for %s, retrying in %ds",
                reason,
                attempt + 1,
                self._max_retries,
                url,
                backoff,
            )
            if attempt < self._max_retries - 1:
                await asyncio.sleep(backoff)

        logger.error(
            "Failed to fetch catalog after %d attempts: %s", self._max_retries, url
        )
        raise CatalogUnavailableError(
            f"Catalog unavailable after {self._max_retries} attempts: {url}"
        ) from last_exception

    @staticmethod
    def _unwrap(payload: object, url: str) -> list:
        """Extract the endpoint list from an envelope or bare list payload."""
        if isinstance(payload, dict) and "data" in payload:
            payload = payload["data"]
        if isinstance(payload, dict) and "endpoints" in payload:
            payload = payload["endpoints"]
        if not isinstance(payload, list):
            raise CatalogUnavailableError(f"Unexpected catalog payload from {url}")
        return payload
