"""FastAPI application setup and configuration."""

import asyncio
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from smartseller_api.config.settings import Settings, settings
from smartseller_api.core.logger import setup_logger
from smartseller_api.core.monitoring import init_monitoring
from smartseller_api.handlers.dispatcher import WebhookDispatcher
from smartseller_api.integrations.forwarder import TrackingForwarder
from smartseller_tenancy.connections import ConnectionManager, HealthChecker
from smartseller_tenancy.connections.pool import EngineFactory, create_pg_engine
from smartseller_tenancy.db import get_session_factory
from smartseller_tenancy.tenant import TenantResolver

logger = setup_logger(__name__)

# Global variables for resource management
_pending_tasks = set()


def track_task(task: asyncio.Task) -> None:
    """
    Track a background task for graceful shutdown.

    Args:
        task: The asyncio Task to track
    """
    _pending_tasks.add(task)
    task.add_done_callback(_pending_tasks.discard)


def create_app(
    config: Optional[Settings] = None,
    engine_factory: EngineFactory = create_pg_engine,
) -> FastAPI:
    """Create and configure FastAPI application."""
    config = config or settings

    app = FastAPI(
        title="SmartSeller Tracking Service",
        version="1.0.0",
        description="Ingests carrier tracking webhooks and manages tenant database pools",
    )

    init_monitoring(config.glitchtip_dsn, config.app_env)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = config
    app.state.dispatcher = WebhookDispatcher.from_settings(config)
    app.state.forwarder = TrackingForwarder(config.forward_tracking_url)
    app.state.connection_manager = None
    app.state.health_checker = None
    app.state.tenant_resolver = None

    # Import and include routers
    from smartseller_api.server import health_routes, routes

    app.include_router(routes.router)
    app.include_router(health_routes.router)

    @app.on_event("startup")
    async def startup_handler():
        """Open the shared pool, start health checks, wire the tenant resolver."""
        if not config.db_enabled:
            logger.info("Database disabled (DB_ENABLED=false), skipping pool setup")
            return

        try:
            manager = ConnectionManager.from_settings(config, engine_factory)
            await manager.start()
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}", exc_info=True)
            raise

        checker = HealthChecker(manager)
        await checker.start()

        app.state.connection_manager = manager
        app.state.health_checker = checker
        app.state.tenant_resolver = TenantResolver.from_settings(
            config, get_session_factory(manager.shared.engine)
        )
        logger.info("Database initialized successfully")

    @app.on_event("shutdown")
    async def shutdown_handler():
        """
        Gracefully shut down all resources.

        1. Wait for pending forwarding tasks
        2. Stop the health checker
        3. Close every database pool
        """
        logger.info("Starting graceful shutdown...")

        if _pending_tasks:
            logger.info(f"Waiting for {len(_pending_tasks)} pending tasks to complete...")
            results = await asyncio.gather(*_pending_tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"Background task failed during shutdown: {result}")

        if app.state.health_checker is not None:
            await app.state.health_checker.stop()

        if app.state.connection_manager is not None:
            try:
                await app.state.connection_manager.close()
            except Exception as e:
                logger.error(f"Error closing database connections: {e}")

        logger.info("Graceful shutdown completed")

    return app
