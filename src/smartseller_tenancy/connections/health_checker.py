"""
Database Health Checker using APScheduler.

Pings every pool the ConnectionManager owns on a fixed interval and keeps the
latest result as an immutable snapshot.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from smartseller_api.config.constants import PING_TIMEOUT_SECONDS
from smartseller_api.core.errors import DatabaseError, DatabaseTimeoutError
from smartseller_api.core.logger import setup_logger
from smartseller_tenancy.connections.connection_manager import ConnectionManager

logger = setup_logger(__name__)


class ConnectionStatus(str, Enum):
    ACTIVE = "active"
    IDLE = "idle"
    UNHEALTHY = "unhealthy"
    DISCONNECTED = "disconnected"


class OverallStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class ConnectionHealth:
    status: ConnectionStatus
    last_checked: datetime
    response_time: float  # seconds
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "last_checked": self.last_checked.isoformat(),
            "response_time": round(self.response_time, 6),
            "error": self.error,
        }


@dataclass
class HealthStatus:
    overall: OverallStatus = OverallStatus.UNKNOWN
    last_checked: Optional[datetime] = None
    connections: Dict[str, ConnectionHealth] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "overall": self.overall.value,
            "last_checked": self.last_checked.isoformat() if self.last_checked else None,
            "connections": {name: health.to_dict() for name, health in self.connections.items()},
        }


class HealthChecker:
    """Runs periodic health sweeps over all pools."""

    def __init__(
        self,
        manager: ConnectionManager,
        interval: Optional[float] = None,
        ping_timeout: float = PING_TIMEOUT_SECONDS,
    ):
        self.manager = manager
        self.interval = interval or manager.config.health_check_interval
        self.ping_timeout = ping_timeout
        self.scheduler = AsyncIOScheduler()
        self._status = HealthStatus()
        self._started = False

    async def start(self) -> None:
        """Run one sweep immediately, then schedule the periodic job."""
        if self._started:
            logger.warning("Health checker already started")
            return

        await self.run_sweep()

        self.scheduler.add_job(
            self.run_sweep,
            IntervalTrigger(seconds=self.interval),
            id="db_health_sweep",
            name="Database Health Sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        self._started = True
        logger.info(f"Database health checker started (every {self.interval}s)")

    async def stop(self) -> None:
        """Stop the periodic job. Safe to call more than once."""
        if not self._started:
            return

        self.scheduler.shutdown(wait=True)
        self._started = False
        logger.info("Database health checker stopped")

    async def run_sweep(self) -> HealthStatus:
        """
        Ping every pool once and publish a new status.

        Failures are recorded in the status and logged; they never raise.
        """
        pools = self.manager.snapshot()
        connections: Dict[str, ConnectionHealth] = {}

        for name, handle in pools.items():
            checked_at = datetime.now(timezone.utc)
            try:
                response_time = await handle.ping(self.ping_timeout)
                connections[name] = ConnectionHealth(ConnectionStatus.ACTIVE, checked_at, response_time)
            except DatabaseTimeoutError as e:
                connections[name] = ConnectionHealth(
                    ConnectionStatus.DISCONNECTED, checked_at, self.ping_timeout, str(e)
                )
            except DatabaseError as e:
                elapsed = (datetime.now(timezone.utc) - checked_at).total_seconds()
                connections[name] = ConnectionHealth(ConnectionStatus.UNHEALTHY, checked_at, elapsed, str(e))

        if not connections:
            overall = OverallStatus.UNKNOWN
        elif all(h.status == ConnectionStatus.ACTIVE for h in connections.values()):
            overall = OverallStatus.HEALTHY
        else:
            overall = OverallStatus.UNHEALTHY

        status = HealthStatus(
            overall=overall,
            last_checked=datetime.now(timezone.utc),
            connections=connections,
        )
        # Single reference swap; readers see the old or the new snapshot
        self._status = status

        failing = [name for name, h in connections.items() if h.status != ConnectionStatus.ACTIVE]
        if failing:
            logger.warning(f"Database health sweep: {len(failing)} unhealthy pool(s): {failing}")
        else:
            logger.debug(f"Database health sweep: {len(connections)} pool(s) healthy")
        return status

    def get_status(self) -> HealthStatus:
        """Deep copy of the latest snapshot."""
        return copy.deepcopy(self._status)

    @property
    def is_running(self) -> bool:
        """Check if the periodic sweep is scheduled."""
        return self._started and self.scheduler.running
