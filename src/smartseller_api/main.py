"""SmartSeller Tracking Service - Main Entry Point."""

import os

from smartseller_api.config.settings import settings
from smartseller_api.server.app import create_app

# Create FastAPI application
app = create_app()

if __name__ == "__main__":
    import uvicorn

    reload = os.getenv("RELOAD", "false").lower() == "true"

    uvicorn.run(
        "smartseller_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=120,
        timeout_keep_alive=5,
        access_log=False,  # structured logging instead
    )
