"""Multi-tenant connection manager.

Owns the shared pool and one pool per database-isolated tenant. Requests
borrow a ``ConnectionHandle`` through ``get_connection``; the manager is the
only place pools are created, swapped or disposed.

The tenant map is only mutated under ``_lock`` and the lock is never held
across I/O: new pools are opened and stale ones disposed outside it. Map
reads contain no ``await`` and therefore see either the old or the new map
entry, never a partial update.
"""

import asyncio
from typing import Dict, List, Optional

from smartseller_api.config.constants import SHARED_IDENTIFIER
from smartseller_api.config.settings import Settings
from smartseller_api.core.errors import (
    DatabaseError,
    DatabaseNotConfiguredError,
    DatabaseUnhealthyError,
    TenantNotConfiguredError,
    UnsupportedTenantTypeError,
)
from smartseller_api.core.logger import setup_logger
from smartseller_tenancy.connections.config import ConnectionManagerConfig, DatabaseConfig
from smartseller_tenancy.connections.pool import (
    ConnectionHandle,
    EngineFactory,
    PoolStats,
    create_pg_engine,
)
from smartseller_tenancy.tenant.context import TenantContext, TenantType

logger = setup_logger(__name__)


class PoolCloseError(DatabaseError):
    """One or more pools failed to close; ``errors`` maps identifier to cause."""

    code = "db_close_failed"

    def __init__(self, errors: Dict[str, BaseException]):
        details = "; ".join(f"{name}: {error}" for name, error in errors.items())
        super().__init__(f"failed to close {len(errors)} pool(s): {details}")
        self.errors = errors


class ConnectionManager:
    """Shared pool plus a storefront-id to tenant-pool map."""

    def __init__(
        self,
        config: ConnectionManagerConfig,
        engine_factory: EngineFactory = create_pg_engine,
    ):
        self.config = config
        self._engine_factory = engine_factory
        self._shared: Optional[ConnectionHandle] = None
        self._tenants: Dict[str, ConnectionHandle] = {}
        self._tenant_configs: Dict[str, DatabaseConfig] = {}
        self._lock = asyncio.Lock()
        self._started = False

    @classmethod
    def from_settings(
        cls, config: Settings, engine_factory: EngineFactory = create_pg_engine
    ) -> "ConnectionManager":
        return cls(ConnectionManagerConfig.from_settings(config), engine_factory)

    @classmethod
    async def create(
        cls,
        config: ConnectionManagerConfig,
        engine_factory: EngineFactory = create_pg_engine,
    ) -> "ConnectionManager":
        """Build and start a manager in one step."""
        manager = cls(config, engine_factory)
        await manager.start()
        return manager

    async def start(self) -> None:
        """
        Open the shared pool and every configured tenant pool.

        A shared pool failure is fatal. A tenant pool failure is logged and the
        tenant is left out; it can be added later with ``add_tenant``.
        """
        if self._started:
            logger.warning("Connection manager already started")
            return

        if self.config.shared is not None:
            self._shared = await self._open(SHARED_IDENTIFIER, self.config.shared)
            logger.info(f"Shared database pool ready: {self.config.shared.dsn(mask_password=True)}")

        for storefront_id, tenant_config in self.config.tenants.items():
            try:
                await self.add_tenant(storefront_id, tenant_config)
            except (DatabaseError, ValueError) as e:
                logger.error(f"Failed to open tenant pool {storefront_id}: {e}")

        self._started = True

    # ------------------------------------------------------------------
    # Pool construction
    # ------------------------------------------------------------------

    def _build(self, identifier: str, db_config: DatabaseConfig) -> ConnectionHandle:
        pool_settings = db_config.pool_settings()
        engine = self._engine_factory(db_config, pool_settings)
        return ConnectionHandle(identifier, engine, pool_settings, db_config)

    async def _open(self, identifier: str, db_config: DatabaseConfig) -> ConnectionHandle:
        """Build a pool and prove it works; nothing leaks if the ping fails."""
        db_config.validate()
        handle = self._build(identifier, db_config)
        try:
            await handle.ping()
        except DatabaseError:
            await handle.dispose()
            raise
        return handle

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def shared(self) -> Optional[ConnectionHandle]:
        return self._shared

    def tenant_ids(self) -> List[str]:
        return list(self._tenants)

    async def get_connection(self, tenant: Optional[TenantContext] = None) -> ConnectionHandle:
        """
        Route a request to its pool.

        Args:
            tenant: Resolved tenant context, or None for shared-only work

        Returns:
            The shared pool for shared and schema tenants, else the tenant's own pool

        Raises:
            DatabaseNotConfiguredError: Shared pool requested but none configured
            TenantNotConfiguredError: Database tenant has no pool
            DatabaseUnhealthyError: Tenant pool could not be recreated
        """
        if tenant is None:
            return self._require_shared()

        tenant_type = tenant.tenant_type
        if tenant_type in (TenantType.SHARED, TenantType.SCHEMA):
            # Schema tenants select their schema at statement time
            return self._require_shared()
        if tenant_type == TenantType.DATABASE:
            return await self.get_tenant_connection(tenant.storefront_id)
        raise UnsupportedTenantTypeError(f"unsupported tenant type: {tenant_type}")

    def _require_shared(self) -> ConnectionHandle:
        if self._shared is None:
            raise DatabaseNotConfiguredError("shared database not configured")
        return self._shared

    async def get_tenant_connection(self, storefront_id: str) -> ConnectionHandle:
        handle = self._tenants.get(storefront_id)
        if handle is None:
            raise TenantNotConfiguredError(storefront_id)

        try:
            await handle.ping()
            return handle
        except DatabaseError as e:
            logger.warning(f"Tenant pool {storefront_id} unhealthy, recreating: {e}")

        return await self._recreate(storefront_id, handle)

    async def _recreate(self, storefront_id: str, stale: ConnectionHandle) -> ConnectionHandle:
        db_config = self._tenant_configs.get(storefront_id)
        if db_config is None:
            raise TenantNotConfiguredError(storefront_id)

        try:
            fresh = await self._open(storefront_id, db_config)
        except DatabaseError as e:
            raise DatabaseUnhealthyError(f"tenant {storefront_id} unhealthy after recreate: {e}") from e

        async with self._lock:
            current = self._tenants.get(storefront_id)
            if current is stale:
                self._tenants[storefront_id] = fresh
                winner, loser = fresh, stale
            else:
                # Another request already swapped or removed it
                winner, loser = current, fresh

        await loser.dispose()
        if winner is None:
            raise TenantNotConfiguredError(storefront_id)

        if winner is fresh:
            logger.info(f"Recreated tenant pool: {storefront_id}")
        return winner

    # ------------------------------------------------------------------
    # Tenant lifecycle
    # ------------------------------------------------------------------

    async def add_tenant(self, storefront_id: str, db_config: DatabaseConfig) -> ConnectionHandle:
        """Open a pool for a database-isolated tenant, replacing any existing one."""
        handle = await self._open(storefront_id, db_config)

        async with self._lock:
            previous = self._tenants.get(storefront_id)
            self._tenants[storefront_id] = handle
            self._tenant_configs[storefront_id] = db_config

        if previous is not None:
            await previous.dispose()
        logger.info(f"Added tenant pool {storefront_id}: {db_config.dsn(mask_password=True)}")
        return handle

    async def remove_tenant(self, storefront_id: str) -> None:
        """
        Close and forget a tenant pool.

        Raises:
            TenantNotConfiguredError: No pool for this tenant
        """
        async with self._lock:
            handle = self._tenants.pop(storefront_id, None)
            self._tenant_configs.pop(storefront_id, None)

        if handle is None:
            raise TenantNotConfiguredError(storefront_id)

        await handle.dispose()
        logger.info(f"Removed tenant pool: {storefront_id}")

    # ------------------------------------------------------------------
    # Introspection and shutdown
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, ConnectionHandle]:
        """Copy of every live pool keyed by identifier (shared first)."""
        pools: Dict[str, ConnectionHandle] = {}
        if self._shared is not None:
            pools[SHARED_IDENTIFIER] = self._shared
        pools.update(self._tenants)
        return pools

    def stats(self) -> Dict[str, PoolStats]:
        return {name: handle.stats() for name, handle in self.snapshot().items()}

    async def close(self) -> None:
        """
        Dispose every pool, continuing past failures.

        Raises:
            PoolCloseError: Aggregates every pool that failed to close
        """
        async with self._lock:
            pools = self.snapshot()
            self._shared = None
            self._tenants = {}
            self._tenant_configs = {}
            self._started = False

        errors: Dict[str, BaseException] = {}
        for name, handle in pools.items():
            try:
                await handle.dispose()
            except Exception as e:
                logger.error(f"Error closing database pool {name}: {e}")
                errors[name] = e

        if errors:
            raise PoolCloseError(errors)
        logger.info(f"Closed {len(pools)} database pool(s)")
