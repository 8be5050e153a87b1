"""error-surface -- log ingestion, threat classification and event store service.

FastAPI entry point with lifespan management of the store and the workers.
"""

from contextlib import asynccontextmanager
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI

from .api.router import api_router
from .config import ErrorSurfaceConfig, get_config
from .ingest.collector import LogCollector
from .maintenance.retention import RetentionManager
from .modules.live_monitor import LiveMonitor
from .modules.scan_worker import ScanWorker
from .storage.event_store import EventStore
from .utils.event_bus import EventBus
from .utils.logging import get_logger, setup_logging

logger = get_logger("main")

CollectorFactory = Callable[[ErrorSurfaceConfig], LogCollector]


def _default_collector(config: ErrorSurfaceConfig) -> LogCollector:
    return LogCollector(config=config)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: open the store, start the workers, tear down in reverse."""
    config: ErrorSurfaceConfig = app.state.config
    collector_factory: CollectorFactory = app.state.collector_factory

    logger.info("error_surface_starting", host=config.host, port=config.port)

    bus = EventBus()
    await bus.start()

    store = EventStore.from_config(config, event_bus=bus)
    if not await store.open(config.database_file):
        # Workers still run; the reconciler passes fresh batches through
        logger.error("event_store_unavailable", location=str(config.database_file), error=store.last_error)

    retention = RetentionManager(store, config)
    # Each worker gets its own collector
    scan_worker = ScanWorker(store, collector=collector_factory(config), config=config, event_bus=bus)
    live_monitor = LiveMonitor(store, collector=collector_factory(config), config=config, event_bus=bus)

    app.state.event_bus = bus
    app.state.store = store
    app.state.retention_manager = retention
    app.state.scan_worker = scan_worker
    app.state.live_monitor = live_monitor

    await retention.start()
    await scan_worker.start()
    if config.live_enabled:
        await live_monitor.start()

    logger.info("error_surface_started", store=store.current_location(), live=config.live_enabled)
    try:
        yield
    finally:
        logger.info("error_surface_stopping")
        await live_monitor.stop()
        await scan_worker.stop()
        await retention.stop()
        await store.close()
        await bus.stop()
        logger.info("error_surface_stopped")


def create_app(
    config: Optional[ErrorSurfaceConfig] = None,
    collector_factory: Optional[CollectorFactory] = None,
) -> FastAPI:
    config = config or get_config()
    app = FastAPI(
        title="error-surface",
        description="Journal and kernel log threat surface",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.collector_factory = collector_factory or _default_collector
    app.include_router(api_router)
    return app


def main():
    """Run the error-surface server."""
    config = get_config()
    setup_logging(
        debug=config.debug,
        log_dir=config.log_dir,
        log_max_bytes=config.log_max_bytes,
        log_backup_count=config.log_backup_count,
    )
    uvicorn.run(
        "errorsurface.main:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )


if __name__ == "__main__":
    main()
