"""HTTP routers."""

from prober.routers.health import create_health_router
from prober.routers.status import create_status_router

__all__ = ["create_health_router", "create_status_router"]
