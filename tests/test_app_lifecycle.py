"""Application startup and shutdown with the database enabled."""

import asyncio
import uuid

import pytest
from fastapi.testclient import TestClient

from smartseller_api.config.settings import Settings
from smartseller_api.server.app import create_app
from smartseller_tenancy.connections import DatabaseConfig
from smartseller_tenancy.db import Storefront, get_session_factory, init_db


@pytest.fixture
def storefront_id(sqlite_engine_factory) -> uuid.UUID:
    """Seed the shared database the app will open with one storefront."""
    storefront_id = uuid.uuid4()

    async def seed():
        config = DatabaseConfig(host="localhost", user="postgres", database="kirimku")
        engine = sqlite_engine_factory(config, config.pool_settings())
        await init_db(engine)
        async with get_session_factory(engine)() as session:
            session.add(
                Storefront(
                    id=storefront_id,
                    seller_id=uuid.uuid4(),
                    name="Toko Kopi",
                    slug="toko-kopi",
                    domain="tokokopi.id",
                    status="active",
                )
            )
            await session.commit()
        await engine.dispose()

    asyncio.run(seed())
    return storefront_id


def db_settings(**overrides) -> Settings:
    return Settings(
        _env_file=None,
        db_enabled=True,
        db_host="localhost",
        db_user="postgres",
        db_name="kirimku",
        db_health_check_period=60,
        forward_tracking_url=None,
        glitchtip_dsn=None,
        **overrides,
    )


class TestDatabaseLifecycle:
    def test_startup_opens_pools_and_shutdown_closes_them(self, sqlite_engine_factory, storefront_id):
        app = create_app(db_settings(), engine_factory=sqlite_engine_factory)

        with TestClient(app) as client:
            manager = app.state.connection_manager
            checker = app.state.health_checker
            assert checker.is_running is True

            response = client.get("/health")
            assert response.status_code == 200
            database = response.json()["checks"]["database"]
            assert database["overall"] == "healthy"
            assert database["connections"]["shared"]["status"] == "active"

            stats = client.get("/health/db/stats").json()
            assert stats["shared"]["is_shared"] is True
            assert stats["shared"]["max_open_connections"] == 25

        assert manager.shared is None
        assert checker.is_running is False

    def test_tenant_connection_routing(self, sqlite_engine_factory, storefront_id):
        app = create_app(db_settings(), engine_factory=sqlite_engine_factory)

        with TestClient(app) as client:
            response = client.get("/tenant/connection", headers={"X-Storefront-Domain": "tokokopi.id"})

        assert response.status_code == 200
        body = response.json()
        assert body["connection"] == "shared"
        assert body["tenant"]["storefront_id"] == str(storefront_id)
        assert body["tenant"]["tenant_type"] == "shared"

    def test_unconfigured_database_tenant_is_503(self, sqlite_engine_factory, storefront_id):
        settings = db_settings(tenant_overrides={str(storefront_id): "database"})
        app = create_app(settings, engine_factory=sqlite_engine_factory)

        with TestClient(app) as client:
            response = client.get("/tenant/connection", headers={"X-Storefront-Slug": "toko-kopi"})

        assert response.status_code == 503
        assert response.json()["error"] == "tenant_not_configured"

    def test_unknown_storefront_is_400(self, sqlite_engine_factory, storefront_id):
        app = create_app(db_settings(), engine_factory=sqlite_engine_factory)

        with TestClient(app) as client:
            assert client.get("/tenant/connection", headers={"X-Storefront-Slug": "nope"}).status_code == 400
            assert client.get("/tenant/connection").status_code == 400
