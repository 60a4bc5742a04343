"""Public models for the prober service."""

from prober.models.domain import (
    CooldownRecord,
    DashboardSummary,
    Endpoint,
    EndpointStatus,
    EventType,
    HistoryPoint,
    Rollup,
    SiteStatus,
    Verdict,
    ensure_utc,
    utcnow,
)
from prober.models.responses import ApiResponse

__all__ = [
    "ApiResponse",
    "CooldownRecord",
    "DashboardSummary",
    "Endpoint",
    "EndpointStatus",
    "EventType",
    "HistoryPoint",
    "Rollup",
    "SiteStatus",
    "Verdict",
    "ensure_utc",
    "utcnow",
]
