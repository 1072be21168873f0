"""Shared fixtures for tracking service tests."""

import hashlib
import hmac
import json
import uuid
from pathlib import Path
from typing import Callable

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from smartseller_api.config.settings import Settings
from smartseller_tenancy.connections import ConnectionManager, ConnectionManagerConfig, DatabaseConfig, PoolSettings
from smartseller_tenancy.db import Storefront, get_session_factory, init_db

JNE_SECRET = "jne-secret"
SICEPAT_SECRET = "sicepat-secret"
NINJAVAN_SECRET = "ninjavan-secret"


def sign(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def as_body(payload: dict) -> bytes:
    return json.dumps(payload).encode()


def make_db_config(name: str, **pool_overrides) -> DatabaseConfig:
    return DatabaseConfig(
        host="localhost",
        user="tester",
        database=name,
        pool=PoolSettings(max_open_conns=5, max_idle_conns=2, **pool_overrides),
    )


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the developer's .env."""
    return Settings(
        _env_file=None,
        db_enabled=False,
        jne_webhook_secret=JNE_SECRET,
        sicepat_webhook_secret=SICEPAT_SECRET,
        ninjavan_webhook_secret=NINJAVAN_SECRET,
        forward_tracking_url=None,
        glitchtip_dsn=None,
    )


@pytest.fixture
def sqlite_engine_factory(tmp_path: Path) -> Callable[[DatabaseConfig, PoolSettings], AsyncEngine]:
    """Engine factory mapping each database name to its own SQLite file."""

    def factory(config: DatabaseConfig, pool: PoolSettings) -> AsyncEngine:
        return create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / (config.database + '.db')}",
            poolclass=AsyncAdaptedQueuePool,
            pool_size=pool.max_idle_conns,
            max_overflow=max(pool.max_open_conns - pool.max_idle_conns, 0),
            pool_timeout=pool.connect_timeout,
        )

    return factory


@pytest_asyncio.fixture
async def manager(sqlite_engine_factory):
    """Started manager with a shared SQLite database."""
    config = ConnectionManagerConfig(shared=make_db_config("shared"), health_check_interval=60)
    mgr = await ConnectionManager.create(config, sqlite_engine_factory)
    yield mgr
    await mgr.close()


@pytest_asyncio.fixture
async def storefront(manager) -> Storefront:
    """An active storefront row in the shared database."""
    await init_db(manager.shared.engine)
    session_factory = get_session_factory(manager.shared.engine)
    record = Storefront(
        id=uuid.uuid4(),
        seller_id=uuid.uuid4(),
        name="Toko Batik",
        slug="toko-batik",
        domain="tokobatik.id",
        status="active",
    )
    async with session_factory() as session:
        session.add(record)
        await session.commit()
    return record
