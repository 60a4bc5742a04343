"""Headless prober process: runs the scheduler and retention sweeper without HTTP.

SIGINT / SIGTERM request a stop; the process exits once the in-flight cycle
has drained (or ``graceful_shutdown_seconds`` elapsed).
"""

from __future__ import annotations

import asyncio
import logging
import signal

from prober.config.settings import ProberSettings
from prober.container import build_components
from prober.logging_config import configure_logging

logger = logging.getLogger(__name__)


async def run_worker(settings: ProberSettings) -> None:
    components = build_components(settings)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, components.scheduler.stop)

    logger.info(
        "Prober worker started (max_concurrent_probes=%d)",
        settings.max_concurrent_probes,
    )
    components.start()
    try:
        await components.wait()
    finally:
        await components.shutdown()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
    logger.info("Prober worker stopped")


def main() -> None:
    settings = ProberSettings()
    configure_logging(settings.log_level)
    asyncio.run(run_worker(settings))


if __name__ == "__main__":
    main()
