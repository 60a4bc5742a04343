"""Notification cooldown gate.

Answers "may a notification of this type be sent for this site now?" from
the last-notification timestamps in the status store. The gate never sends
anything and never records on its own: the notifier calls
``record_notification`` only after a send succeeded, so a failed send does
not start the cooldown window.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from enum import Enum

from prober.middleware.error_handler import InvalidRequestError
from prober.models.domain import CooldownRecord, ensure_utc, utcnow
from prober.store.base import StatusStore

logger = logging.getLogger(__name__)


def _event_key(event_type: str | Enum) -> str:
    key = event_type.value if isinstance(event_type, Enum) else str(event_type)
    if not key:
        raise InvalidRequestError("event_type must not be empty")
    return key


class NotificationCooldownGate:
    """Per (site, event type) notification rate gate.

    Args:
        store: Holds the last-notification timestamps.
        default_cooldown_seconds: Cooldown used when a call does not pass one.
        clock: Current time source; injectable for tests.
    """

    def __init__(
        self,
        store: StatusStore,
        default_cooldown_seconds: int = 300,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._default_cooldown_seconds = default_cooldown_seconds
        self._clock = clock

    async def should_notify(
        self,
        site_id: str,
        event_type: str | Enum,
        cooldown_seconds: float | None = None,
    ) -> bool:
        """Return whether a notification may be sent now.

        - No prior record for the pair: allowed.
        - Otherwise allowed iff at least *cooldown_seconds* have elapsed since
          the last recorded notification of that type.
        """
        cooldown = (
            self._default_cooldown_seconds if cooldown_seconds is None else cooldown_seconds
        )
        if cooldown < 0:
            raise InvalidRequestError("cooldown_seconds must be >= 0")

        last_sent = await self._store.get_last_notification(site_id, _event_key(event_type))
        if last_sent is None:
            return True

        elapsed = (self._clock() - last_sent).total_seconds()
        return elapsed >= cooldown

    async def record_notification(
        self,
        site_id: str,
        event_type: str | Enum,
        at: datetime | None = None,
    ) -> CooldownRecord:
        """Record a successfully sent notification, starting its cooldown."""
        record = CooldownRecord(
            site_id=site_id,
            event_type=_event_key(event_type),
            last_sent=ensure_utc(at) if at is not None else self._clock(),
        )
        await self._store.set_last_notification(
            record.site_id, record.event_type, record.last_sent
        )
        logger.info(
            "Recorded %s notification for site %s",
            record.event_type,
            site_id,
            extra={"site_id": site_id},
        )
        return record

    async def get_record(
        self, site_id: str, event_type: str | Enum
    ) -> CooldownRecord | None:
        """Return the last-notification record for the pair, if any."""
        key = _event_key(event_type)
        last_sent = await self._store.get_last_notification(site_id, key)
        if last_sent is None:
            return None
        return CooldownRecord(site_id=site_id, event_type=key, last_sent=last_sent)
