"""Tick-driven probe scheduler with bounded concurrency.

Every tick the scheduler:

1. fetches the active endpoints from the catalog once (empty → skip);
2. starts one asyncio task per endpoint, with a semaphore admitting at most
   ``max_concurrent_probes`` probes at a time;
3. has each task write its endpoint status and append a history point;
4. waits for every task of the cycle (full barrier);
5. groups endpoints by site and recomputes every site rollup concurrently.

Every active endpoint is probed on every tick; the per-endpoint
``check_interval`` is not used for scheduling.

Failures are contained: a failing probe, store write or site aggregation is
logged and the rest of the cycle proceeds; a catalog failure skips only the
current cycle.

Stopping is cooperative. ``stop()`` and cancellation of the ``run()`` task
are both checked between cycles, and a cycle already under way is always
allowed to drain (every started probe completes and writes) first.

State machine: idle → ticking → idle ..., terminal stopped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from uuid import uuid4

from prober.catalog.base import EndpointCatalog
from prober.middleware.error_handler import ConfigurationError
from prober.models.domain import Endpoint, EndpointStatus, HistoryPoint, utcnow
from prober.probe.base import BaseProbe
from prober.services.aggregator import StatusAggregator
from prober.store.base import StatusStore

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    """Lifecycle states of the scheduler."""

    IDLE = "idle"
    TICKING = "ticking"
    STOPPED = "stopped"


@dataclass
class CycleReport:
    """Outcome of one completed probe-and-aggregate cycle."""

    cycle_id: str
    endpoint_count: int
    reachable_count: int
    unreachable_count: int
    probe_errors: int
    site_count: int
    site_errors: int
    duration_ms: float


class ProbeScheduler:
    """Runs probe cycles on a fixed tick with a bounded number of in-flight probes.

    Parameters
    ----------
    catalog:
        Source of active endpoints.
    probe:
        Executes a single reachability probe.
    store:
        Receives endpoint statuses and history points.
    aggregator:
        Computes and stores site rollups after the probe barrier.
    max_concurrent_probes:
        Upper bound on simultaneously executing probes (default 150).
    tick_interval_seconds:
        Period between cycle starts (default 10). A cycle that overruns the
        tick is followed immediately by the next one.
    """

    def __init__(
        self,
        *,
        catalog: EndpointCatalog,
        probe: BaseProbe,
        store: StatusStore,
        aggregator: StatusAggregator,
        max_concurrent_probes: int = 150,
        tick_interval_seconds: float = 10.0,
    ) -> None:
        if max_concurrent_probes < 1:
            raise ConfigurationError(
                f"max_concurrent_probes must be >= 1 (got {max_concurrent_probes})"
            )
        if tick_interval_seconds <= 0:
            raise ConfigurationError(
                f"tick_interval_seconds must be > 0 (got {tick_interval_seconds})"
            )

        self._catalog = catalog
        self._probe = probe
        self._store = store
        self._aggregator = aggregator
        self._max_concurrent = max_concurrent_probes
        self._tick = tick_interval_seconds

        # Only shared coordination primitive between probe tasks
        self._semaphore = asyncio.Semaphore(max_concurrent_probes)
        self._stop_event = asyncio.Event()
        self._cycle_task: asyncio.Task[CycleReport | None] | None = None
        self._state = SchedulerState.IDLE
        self._running = False

        # Stats tracking
        self._in_flight = 0
        self._peak_in_flight = 0
        self._cycles_completed = 0
        self._cycles_skipped = 0
        self._cycles_failed = 0
        self._last_cycle: CycleReport | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def max_concurrent_probes(self) -> int:
        return self._max_concurrent

    async def run(self) -> None:
        """Fire a cycle every tick until ``stop()`` or cancellation.

        The first cycle starts immediately. On cancellation the in-flight
        cycle is drained before ``CancelledError`` propagates.
        """
        if self._running:
            logger.warning("Probe scheduler already running — skipping")
            return
        if self._state == SchedulerState.STOPPED:
            logger.warning("Probe scheduler already stopped — not restarting")
            return

        self._running = True
        loop = asyncio.get_running_loop()
        logger.info(
            "Probe scheduler started (max_concurrent_probes=%d, tick=%.1fs)",
            self._max_concurrent,
            self._tick,
        )

        try:
            while not self._stop_event.is_set():
                started = loop.time()
                self._cycle_task = asyncio.create_task(
                    self.run_cycle(), name="probe-cycle"
                )
                # Shielded so that cancelling run() never aborts probes mid-flight
                await asyncio.shield(self._cycle_task)
                self._cycle_task = None

                delay = max(0.0, self._tick - (loop.time() - started))
                if await self._wait_for_stop(delay):
                    break
        except asyncio.CancelledError:
            logger.info("Probe scheduler cancelled — draining in-flight cycle")
            await self._drain()
            raise
        finally:
            self._running = False
            self._state = SchedulerState.STOPPED
            logger.info("Probe scheduler stopped")

    def stop(self) -> None:
        """Request a stop; takes effect once the current cycle has drained."""
        if not self._stop_event.is_set():
            logger.info("Probe scheduler stop requested")
        self._stop_event.set()
        if not self._running:
            self._state = SchedulerState.STOPPED

    def abort(self) -> None:
        """Cancel the in-flight cycle and its probes (forced shutdown only)."""
        if self._cycle_task is not None and not self._cycle_task.done():
            logger.warning("Aborting in-flight probe cycle")
            self._cycle_task.cancel()

    async def run_cycle(self) -> CycleReport | None:
        """Execute one probe-and-aggregate cycle.

        Returns a ``CycleReport``, or ``None`` when the cycle was skipped
        (no active endpoints) or aborted (catalog unavailable).
        """
        cycle_id = uuid4().hex[:12]
        started = time.monotonic()
        self._state = SchedulerState.TICKING

        try:
            try:
                endpoints = await self._catalog.list_active_endpoints()
            except Exception as exc:
                self._cycles_failed += 1
                logger.error(
                    "Failed to list endpoints — skipping cycle: %s",
                    exc,
                    extra={"cycle_id": cycle_id, "error_reason": str(exc)},
                )
                return None

            if not endpoints:
                self._cycles_skipped += 1
                logger.debug("No active endpoints — skipping cycle")
                return None

            logger.info(
                "Checking %d endpoints",
                len(endpoints),
                extra={"cycle_id": cycle_id, "endpoint_count": len(endpoints)},
            )

            # Fan out; admission is gated inside each task by the semaphore
            probe_tasks = [
                asyncio.create_task(
                    self._probe_and_record(endpoint, cycle_id),
                    name=f"probe-{endpoint.id}",
                )
                for endpoint in endpoints
            ]
            # Barrier: no aggregation until every probe of the cycle is done
            probe_results = await asyncio.gather(*probe_tasks, return_exceptions=True)

            reachable = 0
            unreachable = 0
            probe_errors = 0
            for endpoint, result in zip(endpoints, probe_results):
                if isinstance(result, BaseException):
                    probe_errors += 1
                    logger.error(
                        "Probe task for endpoint %s failed: %s",
                        endpoint.id,
                        result,
                        extra={"cycle_id": cycle_id, "endpoint_id": endpoint.id},
                    )
                elif result.is_reachable:
                    reachable += 1
                else:
                    unreachable += 1

            by_site: dict[str, list[Endpoint]] = defaultdict(list)
            for endpoint in endpoints:
                by_site[endpoint.site_id].append(endpoint)

            site_results = await asyncio.gather(
                *(
                    self._aggregate_site(site_id, site_endpoints, cycle_id)
                    for site_id, site_endpoints in by_site.items()
                )
            )
            site_errors = sum(1 for ok in site_results if not ok)

            report = CycleReport(
                cycle_id=cycle_id,
                endpoint_count=len(endpoints),
                reachable_count=reachable,
                unreachable_count=unreachable,
                probe_errors=probe_errors,
                site_count=len(by_site),
                site_errors=site_errors,
                duration_ms=round((time.monotonic() - started) * 1000, 2),
            )
            self._last_cycle = report
            self._cycles_completed += 1
            logger.info(
                "Cycle complete: %d/%d endpoints reachable across %d sites",
                reachable,
                len(endpoints),
                len(by_site),
                extra={
                    "cycle_id": cycle_id,
                    "endpoint_count": len(endpoints),
                    "site_count": len(by_site),
                    "duration_ms": report.duration_ms,
                },
            )
            return report
        finally:
            if self._state == SchedulerState.TICKING:
                self._state = SchedulerState.IDLE

    def get_stats(self) -> dict:
        """Return current scheduler statistics.

        Returns
        -------
        dict with keys:
            state, max_concurrent_probes, in_flight, peak_in_flight,
            cycles_completed, cycles_skipped, cycles_failed, last_cycle
        """
        last = self._last_cycle
        return {
            "state": self._state.value,
            "max_concurrent_probes": self._max_concurrent,
            "tick_interval_seconds": self._tick,
            "in_flight": self._in_flight,
            "peak_in_flight": self._peak_in_flight,
            "cycles_completed": self._cycles_completed,
            "cycles_skipped": self._cycles_skipped,
            "cycles_failed": self._cycles_failed,
            "last_cycle": None
            if last is None
            else {
                "cycle_id": last.cycle_id,
                "endpoint_count": last.endpoint_count,
                "reachable_count": last.reachable_count,
                "unreachable_count": last.unreachable_count,
                "probe_errors": last.probe_errors,
                "site_count": last.site_count,
                "site_errors": last.site_errors,
                "duration_ms": last.duration_ms,
            },
        }

    # ------------------------------------------------------------------
    # Probe tasks
    # ------------------------------------------------------------------

    async def _probe_and_record(self, endpoint: Endpoint, cycle_id: str) -> EndpointStatus:
        """Probe one endpoint under the semaphore, then persist the result."""
        async with self._semaphore:
            self._in_flight += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
            try:
                status = await self._probe.probe(endpoint)
            except Exception as exc:
                # Probes should never raise; record the endpoint as unreachable
                logger.error(
                    "Probe raised for %s: %s",
                    endpoint.hostname,
                    exc,
                    extra={
                        "cycle_id": cycle_id,
                        "endpoint_id": endpoint.id,
                        "hostname": endpoint.hostname,
                        "error_reason": str(exc),
                    },
                )
                status = BaseProbe.unreachable(endpoint, utcnow(), f"Probe error: {exc}")
            finally:
                self._in_flight -= 1

        await self._record(endpoint, status, cycle_id)
        return status

    async def _record(
        self, endpoint: Endpoint, status: EndpointStatus, cycle_id: str
    ) -> None:
        """Write the status and append history; each write fails independently."""
        extra = {"cycle_id": cycle_id, "endpoint_id": endpoint.id, "site_id": endpoint.site_id}

        try:
            await self._store.set_endpoint_status(status)
        except Exception as exc:
            logger.error(
                "Failed to set endpoint status for %s: %s",
                endpoint.hostname,
                exc,
                extra={**extra, "error_reason": str(exc)},
            )

        try:
            await self._store.add_history_point(HistoryPoint.from_status(status))
        except Exception as exc:
            logger.error(
                "Failed to add history for %s: %s",
                endpoint.hostname,
                exc,
                extra={**extra, "error_reason": str(exc)},
            )

        logger.debug(
            "Endpoint %s is %s",
            endpoint.hostname,
            status.status.value,
            extra={**extra, "hostname": endpoint.hostname, "latency_ms": status.response_time_ms},
        )

    async def _aggregate_site(
        self, site_id: str, endpoints: list[Endpoint], cycle_id: str
    ) -> bool:
        """Recompute and store one site's rollup; returns ``False`` on failure."""
        try:
            await self._aggregator.aggregate_and_store(site_id, endpoints)
        except Exception as exc:
            logger.error(
                "Failed to compute site status for %s: %s",
                site_id,
                exc,
                extra={"cycle_id": cycle_id, "site_id": site_id, "error_reason": str(exc)},
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _wait_for_stop(self, delay: float) -> bool:
        """Sleep up to *delay* seconds; return ``True`` if a stop was requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    async def _drain(self) -> None:
        """Wait for the in-flight cycle (if any) to finish naturally."""
        task = self._cycle_task
        if task is None or task.done():
            return
        try:
            await task
        except asyncio.CancelledError:
            logger.warning("In-flight probe cycle was aborted during drain")
        except Exception:
            logger.exception("In-flight probe cycle failed during drain")
        finally:
            self._cycle_task = None
