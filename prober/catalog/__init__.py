"""Read-only endpoint catalog accessors."""

from prober.catalog.base import EndpointCatalog, parse_endpoints
from prober.catalog.file import FileEndpointCatalog, load_catalog
from prober.catalog.http import HttpEndpointCatalog

__all__ = [
    "EndpointCatalog",
    "FileEndpointCatalog",
    "HttpEndpointCatalog",
    "load_catalog",
    "parse_endpoints",
]
