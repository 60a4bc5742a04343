"""Background pruning of endpoint history beyond the retention window."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from prober.models.domain import utcnow
from prober.store.base import StatusStore

logger = logging.getLogger(__name__)


class HistoryRetentionSweeper:
    """Periodically deletes history samples older than ``retention_days``.

    Eviction is by age only. Pruning is idempotent, so overlapping or
    repeated sweeps are harmless.
    """

    def __init__(
        self,
        store: StatusStore,
        *,
        retention_days: int = 90,
        interval_seconds: float = 3600,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._retention = timedelta(days=retention_days)
        self._interval_seconds = interval_seconds
        self._clock = clock
        self._last_removed = 0
        self._last_run: datetime | None = None

    def cutoff(self) -> datetime:
        """Samples strictly older than this instant are due for removal."""
        return self._clock() - self._retention

    async def prune_once(self) -> int:
        """Run one sweep and return how many samples were removed."""
        cutoff = self.cutoff()
        removed = await self._store.prune_history(cutoff)
        self._last_removed = removed
        self._last_run = self._clock()
        logger.info("Pruned %d history points older than %s", removed, cutoff.isoformat())
        return removed

    async def run(self) -> None:
        """Sweep every ``interval_seconds`` until cancelled."""
        while True:
            try:
                await self.prune_once()
            except Exception as exc:
                logger.error(
                    "History pruning failed: %s",
                    exc,
                    extra={"error_reason": str(exc)},
                )
            await asyncio.sleep(self._interval_seconds)

    def get_stats(self) -> dict:
        return {
            "retention_days": self._retention.days,
            "last_run": self._last_run.isoformat() if self._last_run else None,
            "last_removed": self._last_removed,
        }
