"""FastAPI application entry point with lifespan management.

Startup: validate settings, configure logging, build the status store,
catalog, probe, scheduler and retention sweeper, start the background loops.
Shutdown: graceful drain — stop the scheduler, let the in-flight cycle
finish, cancel background tasks, close connections.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from prober.config.settings import ProberSettings
from prober.container import build_components
from prober.logging_config import configure_logging
from prober.middleware.error_handler import register_error_handlers
from prober.middleware.request_id import RequestIdMiddleware
from prober.routers.health import create_health_router
from prober.routers.status import create_status_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown logic."""
    settings: ProberSettings = app.state.settings

    configure_logging(settings.log_level)
    logger.info("Starting prober service on port %d", settings.port)

    components = build_components(settings)
    components.start()

    # Mount routers
    app.include_router(
        create_health_router(
            store=components.store,
            scheduler=components.scheduler,
            sweeper=components.sweeper,
        )
    )
    app.include_router(create_status_router(status_service=components.status_service))

    app.state.components = components
    logger.info("Prober service started successfully")

    yield

    # --- Shutdown ---
    logger.info("Shutting down prober service…")
    await components.shutdown()
    logger.info("Prober service shut down")


def create_app(settings: ProberSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Loads ``ProberSettings`` eagerly so that invalid environment
    configuration fails at import time rather than on the first request.
    """
    app = FastAPI(
        title="Site Prober Service",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings or ProberSettings()

    register_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)

    return app


app = create_app()
