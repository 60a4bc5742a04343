"""Health, readiness, and metrics endpoints.

- GET /health — service status + scheduler state
- GET /readiness — 200 only when the status store answers and the scheduler
  has not stopped
- GET /metrics — scheduler and retention statistics
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Response

from prober.models.responses import ApiResponse

if TYPE_CHECKING:
    from prober.services.retention import HistoryRetentionSweeper
    from prober.services.scheduler import ProbeScheduler
    from prober.store.base import StatusStore


def create_health_router(
    *,
    store: StatusStore | Any = None,
    scheduler: ProbeScheduler | Any = None,
    sweeper: HistoryRetentionSweeper | Any = None,
) -> APIRouter:
    """Factory that creates the health router with injected dependencies."""

    health_router = APIRouter(tags=["health"])

    @health_router.get("/health")
    async def health() -> dict:
        """Service health check with scheduler state."""
        return ApiResponse.ok(
            {
                "status": "healthy",
                "scheduler_state": scheduler.state.value if scheduler else None,
            }
        )

    @health_router.get("/readiness")
    async def readiness(response: Response) -> dict:
        """Readiness probe — 200 iff the store pings AND the scheduler is not stopped."""
        store_ok = await store.ping() if store else False
        scheduler_state = scheduler.state.value if scheduler else "stopped"
        scheduler_ok = scheduler_state != "stopped"

        is_ready = store_ok and scheduler_ok
        if not is_ready:
            response.status_code = 503

        return ApiResponse(
            success=is_ready,
            data={
                "ready": is_ready,
                "store_reachable": store_ok,
                "scheduler_state": scheduler_state,
            },
            error=None if is_ready else "Service not ready",
        ).model_dump()

    @health_router.get("/metrics")
    async def metrics() -> dict:
        """Operational metrics endpoint."""
        return ApiResponse.ok(
            {
                "scheduler": scheduler.get_stats() if scheduler else {},
                "retention": sweeper.get_stats() if sweeper else {},
            }
        )

    return health_router
