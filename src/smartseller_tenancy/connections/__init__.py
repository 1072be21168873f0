"""Connections module - Tenant pools, health checks, and transactions."""

from smartseller_tenancy.connections.config import ConnectionManagerConfig, DatabaseConfig, PoolSettings
from smartseller_tenancy.connections.connection_manager import ConnectionManager, PoolCloseError
from smartseller_tenancy.connections.health_checker import HealthChecker, HealthStatus
from smartseller_tenancy.connections.pool import ConnectionHandle, PoolStats
from smartseller_tenancy.connections.transaction import run_in_tx, transaction

__all__ = [
    "ConnectionManagerConfig",
    "DatabaseConfig",
    "PoolSettings",
    "ConnectionManager",
    "PoolCloseError",
    "HealthChecker",
    "HealthStatus",
    "ConnectionHandle",
    "PoolStats",
    "run_in_tx",
    "transaction",
]
