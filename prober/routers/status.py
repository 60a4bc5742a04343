"""Status, history and notification cooldown endpoints.

- GET  /api/v1/endpoints/status — all current endpoint statuses
- GET  /api/v1/endpoints/{endpoint_id}/status — one endpoint's current status
- GET  /api/v1/endpoints/{endpoint_id}/history — samples in [start, end]
- GET  /api/v1/sites/status — stored rollups from the latest cycle
- GET  /api/v1/sites/{site_id}/status — rollup computed on demand
- GET  /api/v1/dashboard/summary — rollup counts by verdict
- GET  /api/v1/sites/{site_id}/notifications/{event_type} — cooldown check
- POST /api/v1/sites/{site_id}/notifications/{event_type} — record a sent notification
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Query

from prober.models.responses import ApiResponse

if TYPE_CHECKING:
    from prober.services.status_service import StatusService


def create_status_router(*, status_service: StatusService | Any = None) -> APIRouter:
    """Factory that creates the status router with injected dependencies."""

    status_router = APIRouter(prefix="/api/v1", tags=["status"])

    @status_router.get("/endpoints/status")
    async def list_endpoint_statuses() -> dict:
        statuses = await status_service.list_endpoint_statuses()
        return ApiResponse.ok(
            [status.model_dump(mode="json") for status in statuses],
            meta={"count": len(statuses)},
        )

    @status_router.get("/endpoints/{endpoint_id}/status")
    async def get_endpoint_status(endpoint_id: str) -> dict:
        """Current status of one endpoint; 404 if never probed or expired."""
        status = await status_service.get_endpoint_status(endpoint_id)
        return ApiResponse.ok(status.model_dump(mode="json"))

    @status_router.get("/endpoints/{endpoint_id}/history")
    async def get_endpoint_history(
        endpoint_id: str,
        start: datetime | None = Query(default=None),
        end: datetime | None = Query(default=None),
    ) -> dict:
        """History samples, oldest first. Defaults to the last 24 hours."""
        points = await status_service.get_endpoint_history(endpoint_id, start, end)
        return ApiResponse.ok(
            [point.model_dump(mode="json") for point in points],
            meta={"count": len(points)},
        )

    @status_router.get("/sites/status")
    async def list_site_statuses() -> dict:
        statuses = await status_service.list_site_statuses()
        return ApiResponse.ok(
            [status.model_dump(mode="json") for status in statuses],
            meta={"count": len(statuses)},
        )

    @status_router.get("/sites/{site_id}/status")
    async def get_site_status(site_id: str) -> dict:
        site_status = await status_service.get_site_status(site_id)
        return ApiResponse.ok(site_status.model_dump(mode="json"))

    @status_router.get("/dashboard/summary")
    async def dashboard_summary() -> dict:
        summary = await status_service.get_dashboard_summary()
        return ApiResponse.ok(summary.model_dump(mode="json"))

    @status_router.get("/sites/{site_id}/notifications/{event_type}")
    async def should_notify(
        site_id: str,
        event_type: str,
        cooldown_seconds: float | None = Query(default=None),
    ) -> dict:
        """Whether a notification of *event_type* may be sent for the site now."""
        allowed = await status_service.should_notify(site_id, event_type, cooldown_seconds)
        record = await status_service.get_notification_record(site_id, event_type)
        return ApiResponse.ok(
            {
                "site_id": site_id,
                "event_type": event_type,
                "should_notify": allowed,
                "last_sent": record.last_sent.isoformat() if record else None,
            }
        )

    @status_router.post("/sites/{site_id}/notifications/{event_type}")
    async def record_notification(site_id: str, event_type: str) -> dict:
        """Record that a notification was just sent; starts its cooldown."""
        record = await status_service.record_notification(site_id, event_type)
        return ApiResponse.ok(record.model_dump(mode="json"))

    return status_router
