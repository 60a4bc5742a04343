"""HTTP middleware and error handling for the prober service."""

from prober.middleware.error_handler import (
    CatalogUnavailableError,
    ConfigurationError,
    EndpointStatusNotFoundError,
    InvalidRequestError,
    ProberError,
    StatusStoreError,
    register_error_handlers,
)
from prober.middleware.request_id import RequestIdMiddleware, current_request_id

__all__ = [
    "CatalogUnavailableError",
    "ConfigurationError",
    "EndpointStatusNotFoundError",
    "InvalidRequestError",
    "ProberError",
    "RequestIdMiddleware",
    "StatusStoreError",
    "current_request_id",
    "register_error_handlers",
]
