"""Pydantic models for endpoints, probe results and site rollups.

These are the values that flow between the catalog, the probe executor,
the status store and the HTTP surface. They round-trip through JSON, which
is how the Redis store persists them.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field, field_validator, model_validator


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


def _coerce_id(value: object) -> object:
    # Catalog ids are opaque; numeric ids from SQL-backed catalogs become strings.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class Verdict(str, Enum):
    """Outcome of a single probe."""

    REACHABLE = "reachable"
    UNREACHABLE = "unreachable"


class Rollup(str, Enum):
    """Tri-state health verdict for a site."""

    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


class EventType(str, Enum):
    """Notification event types known to the notifier."""

    DOWN = "down"
    RECOVERED = "recovered"


class Endpoint(BaseModel):
    """A monitored network address, as supplied by the catalog.

    Treated as an immutable snapshot for the duration of one tick.
    ``check_interval`` is carried for display only: every active endpoint is
    probed on every tick.
    """

    model_config = {"frozen": True}

    id: str = Field(..., min_length=1)
    site_id: str = Field(..., min_length=1)
    name: str = ""
    hostname: str = Field(..., min_length=1)
    is_critical: bool = False
    check_interval: int = Field(default=60, ge=1)  # seconds
    retries: int = Field(default=3, ge=1)
    timeout_ms: int = Field(default=10000, ge=1)
    active: bool = True

    @field_validator("id", "site_id", mode="before")
    @classmethod
    def coerce_ids(cls, value: object) -> object:
        return _coerce_id(value)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


class EndpointStatus(BaseModel):
    """Current status of one endpoint, superseded by every new probe."""

    endpoint_id: str
    status: Verdict
    response_time_ms: float | None = None
    last_check: UtcDatetime = Field(default_factory=utcnow)
    message: str = ""

    @property
    def is_reachable(self) -> bool:
        return self.status == Verdict.REACHABLE


class HistoryPoint(BaseModel):
    """One appended history sample for an endpoint."""

    endpoint_id: str
    timestamp: UtcDatetime
    status: Verdict
    response_time_ms: float | None = None
    message: str | None = None

    @classmethod
    def from_status(cls, status: EndpointStatus) -> HistoryPoint:
        """Build the history sample recorded alongside a fresh status."""
        return cls(
            endpoint_id=status.endpoint_id,
            timestamp=status.last_check,
            status=status.status,
            response_time_ms=status.response_time_ms,
            message=status.message or None,
        )


class SiteStatus(BaseModel):
    """Rolled-up status of a site, recomputed every tick."""

    site_id: str
    status: Rollup
    online_count: int = Field(default=0, ge=0)
    offline_count: int = Field(default=0, ge=0)
    total_count: int = Field(default=0, ge=0)
    critical_offline: bool = False
    last_check: UtcDatetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def counts_sum_to_total(self) -> SiteStatus:
        if self.online_count + self.offline_count != self.total_count:
            raise ValueError(
                f"online_count ({self.online_count}) + offline_count "
                f"({self.offline_count}) != total_count ({self.total_count})"
            )
        return self


class CooldownRecord(BaseModel):
    """Last time a notification of ``event_type`` was sent for a site."""

    site_id: str
    event_type: str
    last_sent: UtcDatetime


class DashboardSummary(BaseModel):
    """Counts of stored site rollups by verdict."""

    total_sites: int = 0
    red_count: int = 0
    yellow_count: int = 0
    green_count: int = 0

    @classmethod
    def from_statuses(cls, statuses: list[SiteStatus]) -> DashboardSummary:
        summary = cls(total_sites=len(statuses))
        for site in statuses:
            if site.status == Rollup.RED:
                summary.red_count += 1
            elif site.status == Rollup.YELLOW:
                summary.yellow_count += 1
            else:
                summary.green_count += 1
        return summary
