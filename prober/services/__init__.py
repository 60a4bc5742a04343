"""Probing, aggregation and query services."""

from prober.services.aggregator import StatusAggregator, compute_rollup
from prober.services.cooldown import NotificationCooldownGate
from prober.services.retention import HistoryRetentionSweeper
from prober.services.scheduler import CycleReport, ProbeScheduler, SchedulerState
from prober.services.status_service import StatusService

__all__ = [
    "CycleReport",
    "HistoryRetentionSweeper",
    "NotificationCooldownGate",
    "ProbeScheduler",
    "SchedulerState",
    "StatusAggregator",
    "StatusService",
    "compute_rollup",
]
