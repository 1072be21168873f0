"""Scoped transactions on a tenant's pool."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncConnection

from smartseller_api.core.errors import DatabaseError
from smartseller_api.core.logger import setup_logger
from smartseller_tenancy.connections.connection_manager import ConnectionManager
from smartseller_tenancy.tenant.context import TenantContext

logger = setup_logger(__name__)

T = TypeVar("T")


@asynccontextmanager
async def transaction(
    manager: ConnectionManager, tenant: Optional[TenantContext] = None
) -> AsyncIterator[AsyncConnection]:
    """
    Begin a transaction on the tenant's pool.

    Commits when the block exits normally. Any exception, including task
    cancellation, rolls back and is re-raised. The connection is returned to
    the pool on every path.
    """
    handle = await manager.get_connection(tenant)
    async with handle.connect() as conn:
        tx = await conn.begin()
        try:
            yield conn
        except BaseException as e:
            try:
                await tx.rollback()
            except Exception as rollback_error:
                logger.error(
                    f"Rollback failed on {handle.identifier} after {type(e).__name__}: {rollback_error}"
                )
            else:
                logger.info(f"Transaction rolled back on {handle.identifier}: {type(e).__name__}")
            raise

        try:
            await tx.commit()
        except Exception as e:
            raise DatabaseError(f"commit failed on {handle.identifier}: {e}") from e


async def run_in_tx(
    manager: ConnectionManager,
    tenant: Optional[TenantContext],
    fn: Callable[[AsyncConnection], Awaitable[T]],
) -> T:
    """
    Run ``fn`` inside a transaction and return its result.

    Args:
        manager: Connection manager owning the pools
        tenant: Tenant context (None for the shared database)
        fn: Coroutine function receiving the transactional connection

    Returns:
        Whatever ``fn`` returned, after commit
    """
    async with transaction(manager, tenant) as conn:
        return await fn(conn)
