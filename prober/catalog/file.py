"""YAML file-backed endpoint catalog.

Useful for small single-box deployments and local development. The file is
re-read on every call, so edits are picked up on the next tick.

Format::

    defaults:            # optional, applied to endpoints that omit them
      retries: 3
      timeout_ms: 2000
    sites:
      hq:
        endpoints:
          - id: hq-gw
            name: Gateway
            hostname: 10.0.0.1
            is_critical: true
          - id: hq-ap-1
            hostname: 10.0.0.21
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from prober.catalog.base import EndpointCatalog, parse_endpoints
from prober.middleware.error_handler import CatalogUnavailableError
from prober.models.domain import Endpoint

logger = logging.getLogger(__name__)


def load_catalog(yaml_path: str, defaults: dict | None = None) -> dict[str, list[Endpoint]]:
    """Parse a catalog YAML file into active endpoints grouped by site id.

    Args:
        yaml_path: Path to the YAML catalog file.
        defaults: Probe parameters for endpoints that omit them. Values in
            the file's own ``defaults`` section take precedence.

    Returns:
        A dict mapping site ids to their active endpoints. Sites with no
        active endpoints map to an empty list.

    Raises:
        CatalogUnavailableError: If the file is missing or is not valid YAML.
    """
    path = Path(yaml_path)

    if not path.exists():
        raise CatalogUnavailableError(f"Catalog file not found at {yaml_path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise CatalogUnavailableError(f"Failed to parse catalog YAML at {yaml_path}") from exc

    if raw is None:
        return {}
    if not isinstance(raw, dict) or not isinstance(raw.get("sites", {}), dict):
        raise CatalogUnavailableError(f"Catalog YAML at {yaml_path} has no 'sites' mapping")

    merged_defaults = {**(defaults or {}), **(raw.get("defaults") or {})}

    catalog: dict[str, list[Endpoint]] = {}
    for site_id, site in (raw.get("sites") or {}).items():
        entries = (site or {}).get("endpoints") or []
        if not isinstance(entries, list):
            logger.error("Endpoints for site '%s' must be a list — skipping site", site_id)
            continue
        catalog[str(site_id)] = parse_endpoints(
            entries, defaults=merged_defaults, site_id=str(site_id)
        )

    return catalog


class FileEndpointCatalog(EndpointCatalog):
    """Catalog accessor reading a YAML file on every call."""

    def __init__(self, yaml_path: str, *, defaults: dict | None = None) -> None:
        self._yaml_path = yaml_path
        self._defaults = defaults or {}

    async def list_active_endpoints(self) -> list[Endpoint]:
        catalog = load_catalog(self._yaml_path, self._defaults)
        return [endpoint for endpoints in catalog.values() for endpoint in endpoints]

    async def list_site_endpoints(self, site_id: str) -> list[Endpoint]:
        return load_catalog(self._yaml_path, self._defaults).get(site_id, [])
