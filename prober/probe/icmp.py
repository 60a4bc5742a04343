"""ICMP echo probe built on icmplib.

The hostname is resolved once, then up to ``retries`` single-packet echo
requests are sent. Each attempt waits at most ``timeout_ms`` for a reply, and
the whole probe (resolution included) is held to a deadline of
``retries × timeout_ms`` so a probe can never block a scheduler slot
indefinitely.
"""

from __future__ import annotations

import asyncio
import logging

from icmplib import ICMPLibError, NameLookupError, SocketPermissionError
from icmplib import async_ping, async_resolve, is_ipv4_address, is_ipv6_address

from prober.models.domain import Endpoint, EndpointStatus, utcnow
from prober.probe.base import BaseProbe

logger = logging.getLogger(__name__)


class IcmpProbe(BaseProbe):
    """Reachability probe using ICMP echo requests.

    Parameters
    ----------
    privileged:
        Use raw sockets (requires root / CAP_NET_RAW). When ``False`` icmplib
        uses unprivileged datagram sockets, which on Linux requires the
        process group to be inside ``net.ipv4.ping_group_range``.
    """

    def __init__(self, *, privileged: bool = False) -> None:
        self._privileged = privileged

    async def probe(self, endpoint: Endpoint) -> EndpointStatus:
        checked_at = utcnow()
        loop = asyncio.get_running_loop()
        per_attempt = endpoint.timeout_seconds
        deadline = loop.time() + endpoint.retries * per_attempt

        try:
            address = await asyncio.wait_for(
                self._resolve(endpoint.hostname),
                timeout=min(per_attempt, deadline - loop.time()),
            )
        except (NameLookupError, asyncio.TimeoutError) as exc:
            return self.unreachable(
                endpoint,
                checked_at,
                f"Failed to resolve host {endpoint.hostname}: {str(exc) or 'timed out'}",
            )
        except Exception as exc:
            logger.warning(
                "Resolution error for %s: %s",
                endpoint.hostname,
                exc,
                extra={"endpoint_id": endpoint.id, "hostname": endpoint.hostname},
            )
            return self.unreachable(
                endpoint, checked_at, f"Failed to resolve host {endpoint.hostname}: {exc}"
            )

        rtts: list[float] = []
        sent = 0
        last_error: str | None = None

        for _ in range(endpoint.retries):
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            attempt_timeout = min(per_attempt, remaining)
            sent += 1
            try:
                host = await asyncio.wait_for(
                    async_ping(
                        address,
                        count=1,
                        timeout=attempt_timeout,
                        privileged=self._privileged,
                    ),
                    timeout=attempt_timeout,
                )
            except asyncio.TimeoutError:
                continue
            except SocketPermissionError as exc:
                # Not recoverable by retrying
                return self.unreachable(
                    endpoint, checked_at, f"Failed to create pinger: {exc}"
                )
            except (ICMPLibError, OSError) as exc:
                last_error = str(exc)
                continue

            if host.is_alive and host.rtts:
                rtts.extend(host.rtts)

        if rtts:
            return self.reachable(endpoint, checked_at, rtts)

        message = f"No packets received ({sent} sent)"
        if last_error:
            message = f"{message}: {last_error}"
        return self.unreachable(endpoint, checked_at, message)

    @staticmethod
    async def _resolve(hostname: str) -> str:
        """Return an address for *hostname*, skipping DNS for literal IPs."""
        if is_ipv4_address(hostname) or is_ipv6_address(hostname):
            return hostname
        addresses = await async_resolve(hostname)
        return addresses[0]
