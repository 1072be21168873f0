"""Health, pool statistics and tenant routing endpoints."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from smartseller_api.core.errors import DatabaseError
from smartseller_api.core.logger import setup_logger
from smartseller_api.server.dependencies import get_connection_manager, get_tenant_context
from smartseller_tenancy.connections import ConnectionManager
from smartseller_tenancy.connections.health_checker import OverallStatus
from smartseller_tenancy.tenant import TenantContext

logger = setup_logger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint for monitoring."""
    state = request.app.state
    health_status = {
        "status": "healthy",
        "service": "smartseller-tracking",
        "checks": {
            "forwarding": "enabled" if state.forwarder.enabled else "disabled",
        },
    }

    checker = state.health_checker
    if checker is None:
        health_status["checks"]["database"] = "disabled"
        return JSONResponse(health_status)

    db_status = checker.get_status()
    health_status["checks"]["database"] = db_status.to_dict()
    if db_status.overall == OverallStatus.UNHEALTHY:
        health_status["status"] = "unhealthy"
        return JSONResponse(health_status, status_code=503)

    return JSONResponse(health_status)


@router.get("/health/db/stats")
async def pool_stats(manager: ConnectionManager = Depends(get_connection_manager)) -> dict:
    """Per-pool connection counters."""
    return {name: stats.to_dict() for name, stats in manager.stats().items()}


@router.get("/tenant/connection")
async def tenant_connection(
    tenant: TenantContext = Depends(get_tenant_context),
    manager: ConnectionManager = Depends(get_connection_manager),
) -> JSONResponse:
    """Show which pool a storefront's requests are routed to."""
    try:
        handle = await manager.get_connection(tenant)
    except DatabaseError as e:
        logger.warning(f"No connection for tenant {tenant.storefront_id}: {e}")
        return JSONResponse({"tenant": tenant.to_dict(), "error": e.code}, status_code=503)

    return JSONResponse({"tenant": tenant.to_dict(), "connection": handle.identifier})
