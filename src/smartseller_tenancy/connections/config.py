"""Database connection and pool configuration."""

from dataclasses import dataclass, field, replace
from typing import Dict, Optional

from sqlalchemy.engine import URL

from smartseller_api.config.constants import (
    DEFAULT_CONN_MAX_IDLE_TIME_SECONDS,
    DEFAULT_CONN_MAX_LIFETIME_SECONDS,
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_HEALTH_CHECK_INTERVAL_SECONDS,
    DEFAULT_MAX_IDLE_CONNS,
    DEFAULT_MAX_OPEN_CONNS,
    DEFAULT_SSL_MODE,
)
from smartseller_api.config.settings import Settings


@dataclass(frozen=True)
class PoolSettings:
    """Pool limits. Zero means "use the default"."""

    max_open_conns: int = 0
    max_idle_conns: int = 0
    conn_max_lifetime: float = 0  # seconds
    conn_max_idle_time: float = 0  # seconds
    connect_timeout: float = 0  # seconds
    statement_timeout_ms: int = 0

    def resolved(self) -> "PoolSettings":
        """Copy with defaults filled in; idle never exceeds open."""
        max_open = self.max_open_conns or DEFAULT_MAX_OPEN_CONNS
        max_idle = min(self.max_idle_conns or DEFAULT_MAX_IDLE_CONNS, max_open)
        return replace(
            self,
            max_open_conns=max_open,
            max_idle_conns=max_idle,
            conn_max_lifetime=self.conn_max_lifetime or DEFAULT_CONN_MAX_LIFETIME_SECONDS,
            conn_max_idle_time=self.conn_max_idle_time or DEFAULT_CONN_MAX_IDLE_TIME_SECONDS,
            connect_timeout=self.connect_timeout or DEFAULT_CONNECT_TIMEOUT_SECONDS,
        )


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection parameters for one PostgreSQL database."""

    host: str
    database: str
    user: str
    password: str = ""
    port: int = 5432
    ssl_mode: str = ""
    max_connections: int = 0  # overrides pool.max_open_conns when set
    pool: PoolSettings = field(default_factory=PoolSettings)

    def validate(self) -> None:
        missing = [name for name in ("host", "user", "database") if not getattr(self, name)]
        if missing:
            raise ValueError(f"database config missing: {', '.join(missing)}")

    def pool_settings(self) -> PoolSettings:
        pool = self.pool
        if self.max_connections > 0:
            pool = replace(pool, max_open_conns=self.max_connections)
        return pool.resolved()

    def dsn(self, mask_password: bool = False) -> str:
        """
        libpq key/value connection string.

        ``connect_timeout`` (seconds) and ``statement_timeout`` (milliseconds)
        are only included when set.
        """
        password = "****" if mask_password and self.password else self.password
        dsn = (
            f"host={self.host} port={self.port} user={self.user} password={password} "
            f"dbname={self.database} sslmode={self.ssl_mode or DEFAULT_SSL_MODE}"
        )
        if self.pool.connect_timeout > 0:
            dsn += f" connect_timeout={int(self.pool.connect_timeout)}"
        if self.pool.statement_timeout_ms > 0:
            dsn += f" statement_timeout={self.pool.statement_timeout_ms}"
        return dsn

    def url(self, drivername: str = "postgresql+asyncpg") -> URL:
        return URL.create(
            drivername,
            username=self.user,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=self.database,
        )

    def connect_args(self) -> dict:
        """asyncpg connect() keyword arguments."""
        pool = self.pool_settings()
        args = {
            "timeout": pool.connect_timeout,
            "ssl": self.ssl_mode or DEFAULT_SSL_MODE,
        }
        if pool.statement_timeout_ms > 0:
            args["server_settings"] = {"statement_timeout": str(pool.statement_timeout_ms)}
        return args


@dataclass
class ConnectionManagerConfig:
    """Shared database plus per-tenant databases keyed by storefront id."""

    shared: Optional[DatabaseConfig] = None
    tenants: Dict[str, DatabaseConfig] = field(default_factory=dict)
    health_check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL_SECONDS

    @classmethod
    def from_settings(cls, config: Settings) -> "ConnectionManagerConfig":
        """Build the shared database config from the ``DB_*`` environment."""
        shared = DatabaseConfig(
            host=config.db_host,
            port=config.db_port,
            user=config.db_user,
            password=config.db_password,
            database=config.db_name,
            ssl_mode=config.db_ssl_mode,
            pool=PoolSettings(
                max_open_conns=config.db_max_open_conns,
                max_idle_conns=config.db_max_idle_conns,
                conn_max_lifetime=config.db_conn_max_lifetime,
                conn_max_idle_time=config.db_conn_max_idle_time,
                connect_timeout=config.db_connect_timeout,
                statement_timeout_ms=config.db_statement_timeout,
            ),
        )
        shared.validate()
        return cls(shared=shared, health_check_interval=config.db_health_check_period)
