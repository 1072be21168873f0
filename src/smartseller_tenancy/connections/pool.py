"""Pooled connection handle around a SQLAlchemy AsyncEngine."""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import AsyncIterator, Callable, Optional

from sqlalchemy import event, exc, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from smartseller_api.config.constants import PING_TIMEOUT_SECONDS, SHARED_IDENTIFIER
from smartseller_api.core.errors import DatabaseTimeoutError, DatabaseUnhealthyError
from smartseller_api.core.logger import setup_logger
from smartseller_tenancy.connections.config import DatabaseConfig, PoolSettings

logger = setup_logger(__name__)

EngineFactory = Callable[[DatabaseConfig, PoolSettings], AsyncEngine]


def create_pg_engine(config: DatabaseConfig, pool: PoolSettings) -> AsyncEngine:
    """
    Create an asyncpg engine sized from the pool settings.

    Lifetime and idle limits are enforced by ``ConnectionHandle`` at checkout,
    so ``pool_recycle`` is left off here.
    """
    return create_async_engine(
        config.url(),
        echo=False,
        pool_size=pool.max_idle_conns,
        max_overflow=max(pool.max_open_conns - pool.max_idle_conns, 0),
        pool_timeout=pool.connect_timeout,
        pool_pre_ping=True,
        connect_args=config.connect_args(),
    )


@dataclass
class PoolStats:
    """Point-in-time pool counters."""

    identifier: str
    is_shared: bool
    open: int
    in_use: int
    idle: int
    wait_count: int
    wait_duration: float  # seconds
    max_idle_closed: int
    max_lifetime_closed: int
    max_open_connections: int

    def to_dict(self) -> dict:
        return asdict(self)


class ConnectionHandle:
    """
    One database pool, owned by the ConnectionManager.

    Callers borrow connections with ``connect()`` for the length of a request
    or transaction and never dispose the handle themselves.
    """

    def __init__(
        self,
        identifier: str,
        engine: AsyncEngine,
        pool_settings: PoolSettings,
        config: Optional[DatabaseConfig] = None,
    ):
        self.identifier = identifier
        self.engine = engine
        self.pool_settings = pool_settings
        self.config = config
        self.created_at = time.time()
        self.closed = False

        self._wait_count = 0
        self._wait_duration = 0.0
        self._max_idle_closed = 0
        self._max_lifetime_closed = 0

        event.listen(engine.sync_engine, "connect", self._on_connect)
        event.listen(engine.sync_engine, "checkin", self._on_checkin)
        event.listen(engine.sync_engine, "checkout", self._on_checkout)

    @property
    def is_shared(self) -> bool:
        return self.identifier == SHARED_IDENTIFIER

    @property
    def max_lifetime(self) -> float:
        return self.pool_settings.conn_max_lifetime

    # ------------------------------------------------------------------
    # Pool events (run inside the pool, synchronously)
    # ------------------------------------------------------------------

    def _on_connect(self, dbapi_connection, connection_record) -> None:
        connection_record.info["opened_at"] = time.monotonic()
        connection_record.info.pop("checked_in_at", None)

    def _on_checkin(self, dbapi_connection, connection_record) -> None:
        if connection_record is not None:
            connection_record.info["checked_in_at"] = time.monotonic()

    def _on_checkout(self, dbapi_connection, connection_record, connection_proxy) -> None:
        # Raising DisconnectionError makes the pool discard this connection
        # and transparently open a fresh one.
        now = time.monotonic()
        opened_at = connection_record.info.setdefault("opened_at", now)
        if now - opened_at > self.pool_settings.conn_max_lifetime:
            self._max_lifetime_closed += 1
            raise exc.DisconnectionError("connection exceeded max lifetime")

        checked_in_at = connection_record.info.pop("checked_in_at", None)
        if checked_in_at is not None and now - checked_in_at > self.pool_settings.conn_max_idle_time:
            self._max_idle_closed += 1
            raise exc.DisconnectionError("connection exceeded max idle time")

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def _checked_out(self) -> int:
        pool = self.engine.sync_engine.pool
        return pool.checkedout() if hasattr(pool, "checkedout") else 0

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[AsyncConnection]:
        """Borrow a connection; acquisitions on a saturated pool count as waits."""
        saturated = self._checked_out() >= self.pool_settings.max_open_conns
        started = time.monotonic()
        async with self.engine.connect() as conn:
            if saturated:
                self._wait_count += 1
                self._wait_duration += time.monotonic() - started
            yield conn

    async def _ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def ping(self, timeout: float = PING_TIMEOUT_SECONDS) -> float:
        """
        Check the database answers within the deadline.

        Returns:
            Response time in seconds

        Raises:
            DatabaseTimeoutError: No answer within ``timeout``
            DatabaseUnhealthyError: The database refused or errored
        """
        started = time.monotonic()
        try:
            await asyncio.wait_for(self._ping(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise DatabaseTimeoutError(f"ping to {self.identifier} timed out after {timeout}s") from e
        except Exception as e:
            raise DatabaseUnhealthyError(f"ping to {self.identifier} failed: {e}") from e
        return time.monotonic() - started

    def stats(self) -> PoolStats:
        pool = self.engine.sync_engine.pool
        in_use = pool.checkedout() if hasattr(pool, "checkedout") else 0
        idle = pool.checkedin() if hasattr(pool, "checkedin") else 0
        return PoolStats(
            identifier=self.identifier,
            is_shared=self.is_shared,
            open=in_use + idle,
            in_use=in_use,
            idle=idle,
            wait_count=self._wait_count,
            wait_duration=round(self._wait_duration, 6),
            max_idle_closed=self._max_idle_closed,
            max_lifetime_closed=self._max_lifetime_closed,
            max_open_connections=self.pool_settings.max_open_conns,
        )

    async def dispose(self) -> None:
        """Close every pooled connection. Safe to call twice."""
        if self.closed:
            return
        self.closed = True
        await self.engine.dispose()
        logger.info(f"Closed database pool: {self.identifier}")

    def __repr__(self) -> str:
        return f"<ConnectionHandle {self.identifier}>"
