"""Abstract base class for reachability probes.

A probe issues one reachability check against a single endpoint and returns
an ``EndpointStatus``. Probes never raise for an unreachable host — an
unreachable verdict is a normal outcome carrying a diagnostic message.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from prober.models.domain import Endpoint, EndpointStatus, Verdict


class BaseProbe(ABC):
    """Abstract probe that all concrete probe implementations extend."""

    @abstractmethod
    async def probe(self, endpoint: Endpoint) -> EndpointStatus:
        """Check reachability of *endpoint*.

        Parameters
        ----------
        endpoint:
            The endpoint snapshot; ``hostname``, ``retries`` and
            ``timeout_ms`` drive the attempt schedule.

        Returns
        -------
        EndpointStatus
            ``reachable`` with the mean round-trip time of successful
            attempts, or ``unreachable`` with ``response_time_ms`` unset and
            a message stating why.
        """
        ...

    @staticmethod
    def reachable(
        endpoint: Endpoint, checked_at: datetime, rtts_ms: list[float]
    ) -> EndpointStatus:
        return EndpointStatus(
            endpoint_id=endpoint.id,
            status=Verdict.REACHABLE,
            response_time_ms=round(sum(rtts_ms) / len(rtts_ms), 3),
            last_check=checked_at,
            message="OK",
        )

    @staticmethod
    def unreachable(
        endpoint: Endpoint, checked_at: datetime, message: str
    ) -> EndpointStatus:
        return EndpointStatus(
            endpoint_id=endpoint.id,
            status=Verdict.UNREACHABLE,
            response_time_ms=None,
            last_check=checked_at,
            message=message,
        )
