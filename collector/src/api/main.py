"""
FastAPI application for the energy socket statistics collector.

The lifespan builds the long-lived components from CollectorSettings
(statistics store, device client, collection service, health aggregator),
stores them on app.state, starts the collection service and shuts it down
again on exit.  Components passed to create_app() are used as-is, which is
how tests inject simulators and mocks.

CHANGELOG:
- 2026-10-19: Register the legacy GET /api route
- 2026-10-18: Register device, stats and system routers
- 2026-10-18: Initial creation
"""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from collector.src import __version__
from collector.src.api.device import legacy_router
from collector.src.api.device import router as device_router
from collector.src.api.health import router as health_router
from collector.src.api.stats import router as stats_router
from collector.src.api.system import router as system_router
from collector.src.config import CollectorSettings
from collector.src.db.store import StatsStore
from collector.src.device_client import DeviceAPI, HomeWizardClient
from collector.src.health import HealthAggregator
from collector.src.main import log_config_summary
from collector.src.poller import CollectionService

logger = logging.getLogger(__name__)


def create_app(
    *,
    settings: CollectorSettings | None = None,
    store: StatsStore | None = None,
    device: DeviceAPI | None = None,
    service: CollectionService | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration; loaded from the environment at startup
            when omitted (a missing DATABASE_URL aborts startup).
        store: Statistics store; built from ``settings.database_url`` when
            omitted and disposed on shutdown.
        device: Device client; a HomeWizardClient when omitted.
        service: Collection service; built from the other components when
            omitted.

    Returns:
        FastAPI: The configured application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        cfg = settings if settings is not None else CollectorSettings()
        log_config_summary(cfg)

        owns_store = store is None
        stats_store = store if store is not None else StatsStore.from_url(cfg.database_url)
        device_client = (
            device
            if device is not None
            else HomeWizardClient(cfg.device_url, cfg.device_timeout_ms)
        )
        collection = (
            service
            if service is not None
            else CollectionService.from_settings(cfg, device_client, stats_store)
        )

        app.state.settings = cfg
        app.state.store = stats_store
        app.state.device = device_client
        app.state.service = collection
        app.state.health = HealthAggregator(stats_store, device_client, collection)
        app.state.started_at = time.monotonic()

        collection.start()
        logger.info("Collector API ready (environment=%s)", cfg.environment)
        yield
        logger.info("Collector API shutting down")
        collection.close()
        if owns_store:
            await stats_store.close()

    app = FastAPI(
        title="Energy Socket Statistics Collector",
        description="Polls a local energy socket and serves its statistics.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["Content-Type"],
    )

    app.include_router(health_router)
    app.include_router(device_router)
    app.include_router(legacy_router)
    app.include_router(stats_router)
    app.include_router(system_router)
    return app


app = create_app()
