"""Redis-backed status store.

Key layout:

- ``endpoint:status:{id}``  — JSON EndpointStatus, expires after the status TTL
- ``all_endpoint_status``   — hash mirror of the above for listing
- ``endpoint:history:{id}`` — sorted set of ``{uuid}|{json}`` HistoryPoints scored by epoch seconds
- ``site:status:{id}``      — JSON SiteStatus, expires after the status TTL
- ``all_site_status``       — hash mirror of the above for listing
- ``site:last_notification:{id}`` — hash of event type -> epoch seconds

The hash mirrors never expire on their own, so listings drop entries whose
``last_check`` is older than the TTL.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from prober.middleware.error_handler import StatusStoreError
from prober.models.domain import EndpointStatus, HistoryPoint, SiteStatus, utcnow
from prober.store.base import StatusStore

logger = logging.getLogger(__name__)

ALL_ENDPOINT_STATUS_KEY = "all_endpoint_status"
ALL_SITE_STATUS_KEY = "all_site_status"
HISTORY_KEY_PATTERN = "endpoint:history:*"
HISTORY_MEMBER_SEP = "|"


def endpoint_status_key(endpoint_id: str) -> str:
    return f"endpoint:status:{endpoint_id}"


def endpoint_history_key(endpoint_id: str) -> str:
    return f"endpoint:history:{endpoint_id}"


def history_member(point: HistoryPoint) -> str:
    """Sorted-set member for *point*; the random prefix keeps identical samples distinct."""
    return f"{uuid4().hex}{HISTORY_MEMBER_SEP}{point.model_dump_json()}"


def site_status_key(site_id: str) -> str:
    return f"site:status:{site_id}"


def site_last_notification_key(site_id: str) -> str:
    return f"site:last_notification:{site_id}"


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    """Re-raise driver errors as ``StatusStoreError``."""
    try:
        yield
    except RedisError as exc:
        raise StatusStoreError(f"Redis {operation} failed: {exc}") from exc


class RedisStatusStore(StatusStore):
    """``StatusStore`` on a Redis server.

    Parameters
    ----------
    client:
        A ``redis.asyncio.Redis`` client created with ``decode_responses=True``.
    status_ttl_seconds:
        Expiry of current endpoint and site statuses (default 600).
    """

    def __init__(self, client: Redis, status_ttl_seconds: int = 600) -> None:
        self._client = client
        self._ttl = status_ttl_seconds

    @classmethod
    def from_url(cls, url: str, status_ttl_seconds: int = 600) -> RedisStatusStore:
        client = Redis.from_url(url, decode_responses=True)
        return cls(client, status_ttl_seconds=status_ttl_seconds)

    # ------------------------------------------------------------------
    # Endpoint status
    # ------------------------------------------------------------------

    async def set_endpoint_status(self, status: EndpointStatus) -> None:
        data = status.model_dump_json()
        with _translate_errors("set endpoint status"):
            async with self._client.pipeline(transaction=False) as pipe:
                pipe.set(endpoint_status_key(status.endpoint_id), data, ex=self._ttl)
                pipe.hset(ALL_ENDPOINT_STATUS_KEY, status.endpoint_id, data)
                await pipe.execute()

    async def get_endpoint_status(self, endpoint_id: str) -> EndpointStatus | None:
        with _translate_errors("get endpoint status"):
            data = await self._client.get(endpoint_status_key(endpoint_id))
        if data is None:
            return None
        return self._decode(EndpointStatus, data)

    async def get_endpoint_statuses(
        self, endpoint_ids: Sequence[str]
    ) -> dict[str, EndpointStatus]:
        if not endpoint_ids:
            return {}
        with _translate_errors("bulk get endpoint statuses"):
            values = await self._client.mget(
                [endpoint_status_key(endpoint_id) for endpoint_id in endpoint_ids]
            )
        found: dict[str, EndpointStatus] = {}
        for endpoint_id, data in zip(endpoint_ids, values):
            if data is None:
                continue
            status = self._decode(EndpointStatus, data)
            if status is not None:
                found[endpoint_id] = status
        return found

    async def get_all_endpoint_statuses(self) -> dict[str, EndpointStatus]:
        with _translate_errors("list endpoint statuses"):
            data = await self._client.hgetall(ALL_ENDPOINT_STATUS_KEY)
        return self._decode_fresh(EndpointStatus, data)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def add_history_point(self, point: HistoryPoint) -> None:
        with _translate_errors("add history point"):
            await self._client.zadd(
                endpoint_history_key(point.endpoint_id),
                {history_member(point): point.timestamp.timestamp()},
            )

    async def get_history(
        self, endpoint_id: str, start: datetime, end: datetime
    ) -> list[HistoryPoint]:
        with _translate_errors("get history"):
            members = await self._client.zrangebyscore(
                endpoint_history_key(endpoint_id),
                start.timestamp(),
                end.timestamp(),
            )
        points: list[HistoryPoint] = []
        for member in members:
            point = self._decode(HistoryPoint, member.partition(HISTORY_MEMBER_SEP)[2])
            if point is not None:
                points.append(point)
        return points

    async def prune_history(self, older_than: datetime) -> int:
        # "(" makes the upper bound exclusive: a sample exactly at the cutoff stays
        max_score = f"({older_than.timestamp()}"
        removed = 0
        with _translate_errors("prune history"):
            async for key in self._client.scan_iter(match=HISTORY_KEY_PATTERN, count=500):
                removed += await self._client.zremrangebyscore(key, "-inf", max_score)
        return removed

    # ------------------------------------------------------------------
    # Site rollups
    # ------------------------------------------------------------------

    async def set_site_status(self, status: SiteStatus) -> None:
        data = status.model_dump_json()
        with _translate_errors("set site status"):
            async with self._client.pipeline(transaction=False) as pipe:
                pipe.set(site_status_key(status.site_id), data, ex=self._ttl)
                pipe.hset(ALL_SITE_STATUS_KEY, status.site_id, data)
                await pipe.execute()

    async def get_site_status(self, site_id: str) -> SiteStatus | None:
        with _translate_errors("get site status"):
            data = await self._client.get(site_status_key(site_id))
        if data is None:
            return None
        return self._decode(SiteStatus, data)

    async def get_all_site_statuses(self) -> dict[str, SiteStatus]:
        with _translate_errors("list site statuses"):
            data = await self._client.hgetall(ALL_SITE_STATUS_KEY)
        return self._decode_fresh(SiteStatus, data)

    # ------------------------------------------------------------------
    # Notification cooldowns
    # ------------------------------------------------------------------

    async def set_last_notification(
        self, site_id: str, event_type: str, at: datetime
    ) -> None:
        with _translate_errors("set last notification"):
            await self._client.hset(
                site_last_notification_key(site_id), event_type, at.timestamp()
            )

    async def get_last_notification(
        self, site_id: str, event_type: str
    ) -> datetime | None:
        with _translate_errors("get last notification"):
            raw = await self._client.hget(site_last_notification_key(site_id), event_type)
        if raw is None:
            return None
        try:
            return datetime.fromtimestamp(float(raw), tz=timezone.utc)
        except ValueError as exc:
            raise StatusStoreError(
                f"Corrupt notification timestamp for site {site_id}/{event_type}: {raw!r}"
            ) from exc

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as exc:
            logger.warning("Redis ping failed: %s", exc)
            return False

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _decode(model, data: str):  # noqa: ANN001, ANN205
        """Parse a stored JSON document, skipping (and logging) corrupt entries."""
        try:
            return model.model_validate_json(data)
        except ValidationError as exc:
            logger.warning("Skipping corrupt %s entry: %s", model.__name__, exc)
            return None

    def _decode_fresh(self, model, data: dict[str, str]) -> dict:  # noqa: ANN001
        """Decode a hash mirror, dropping entries older than the status TTL."""
        cutoff = utcnow() - timedelta(seconds=self._ttl)
        fresh: dict = {}
        for key, raw in data.items():
            value = self._decode(model, raw)
            if value is not None and value.last_check >= cutoff:
                fresh[key] = value
        return fresh
