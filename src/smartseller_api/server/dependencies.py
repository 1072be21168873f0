"""FastAPI dependencies for database-backed routes."""

from fastapi import HTTPException, Request

from smartseller_api.core.errors import DatabaseError, TenantResolutionError
from smartseller_tenancy.connections import ConnectionManager
from smartseller_tenancy.tenant import TenantContext


def get_connection_manager(request: Request) -> ConnectionManager:
    manager = request.app.state.connection_manager
    if manager is None:
        raise HTTPException(status_code=503, detail="database not configured")
    return manager


async def get_tenant_context(request: Request) -> TenantContext:
    """Resolve the tenant from storefront headers; failures are 400, lookup errors 503."""
    resolver = request.app.state.tenant_resolver
    if resolver is None:
        raise HTTPException(status_code=503, detail="database not configured")
    try:
        return await resolver.resolve_request(request)
    except TenantResolutionError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from e
    except DatabaseError as e:
        raise HTTPException(status_code=503, detail=e.code) from e
