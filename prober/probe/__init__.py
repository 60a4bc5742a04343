"""Reachability probes."""

from prober.probe.base import BaseProbe
from prober.probe.icmp import IcmpProbe

__all__ = [
    "BaseProbe",
    "IcmpProbe",
]
