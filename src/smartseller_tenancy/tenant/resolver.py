"""Tenant resolution: from request identifiers to a TenantContext.

A storefront is identified by slug, custom domain or id (in that order of
preference). Its isolation strategy comes from an explicit override, else
the configured default. Growth statistics can be checked against migration
thresholds to recommend a stronger isolation strategy.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from smartseller_api.config.constants import (
    DEFAULT_STOREFRONT_CACHE_TTL_SECONDS,
    STOREFRONT_DOMAIN_HEADER,
    STOREFRONT_SLUG_HEADER,
    TENANT_ID_HEADER,
    TENANT_RESOLUTION_TIMEOUT_SECONDS,
)
from smartseller_api.config.settings import Settings
from smartseller_api.core.errors import DatabaseTimeoutError, TenantResolutionError
from smartseller_api.core.logger import setup_logger
from smartseller_tenancy.db import Storefront, StorefrontRepository
from smartseller_tenancy.tenant.cache import StorefrontCache
from smartseller_tenancy.tenant.context import TenantContext, TenantType

logger = setup_logger(__name__)


@dataclass(frozen=True)
class MigrationThreshold:
    """Exceeding any one limit triggers a migration recommendation."""

    customer_count: int
    order_count: int
    data_size_mb: float
    avg_query_time_ms: float
    queries_per_second: Optional[float] = None


SCHEMA_THRESHOLD = MigrationThreshold(
    customer_count=1000, order_count=5000, data_size_mb=100, avg_query_time_ms=100
)
DATABASE_THRESHOLD = MigrationThreshold(
    customer_count=10000,
    order_count=50000,
    data_size_mb=1000,
    avg_query_time_ms=200,
    queries_per_second=100,
)


@dataclass
class TenantStats:
    """Growth metrics for one storefront."""

    customer_count: int = 0
    order_count: int = 0
    storage_usage_mb: float = 0.0
    avg_query_time_ms: float = 0.0
    queries_per_second: float = 0.0

    def exceeds(self, threshold: MigrationThreshold) -> bool:
        return (
            self.customer_count > threshold.customer_count
            or self.order_count > threshold.order_count
            or self.storage_usage_mb > threshold.data_size_mb
            or self.avg_query_time_ms > threshold.avg_query_time_ms
            or (
                threshold.queries_per_second is not None
                and self.queries_per_second > threshold.queries_per_second
            )
        )


class TenantResolver:
    """Resolves storefronts and builds tenant contexts."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        default_tenant_type: TenantType = TenantType.SHARED,
        overrides: Optional[Mapping[str, str]] = None,
        cache_ttl: float = DEFAULT_STOREFRONT_CACHE_TTL_SECONDS,
        timeout: float = TENANT_RESOLUTION_TIMEOUT_SECONDS,
        cache: Optional[StorefrontCache] = None,
    ):
        self.session_factory = session_factory
        self.default_tenant_type = TenantType(default_tenant_type)
        self.overrides: Dict[str, TenantType] = {
            key: TenantType(value) for key, value in (overrides or {}).items()
        }
        self.cache_ttl = cache_ttl
        self.timeout = timeout
        self.cache = cache or StorefrontCache()

    @classmethod
    def from_settings(cls, config: Settings, session_factory: async_sessionmaker) -> "TenantResolver":
        return cls(
            session_factory,
            default_tenant_type=TenantType(config.tenant_default_type),
            overrides=config.tenant_overrides,
            cache_ttl=config.tenant_cache_ttl,
        )

    # ------------------------------------------------------------------
    # Tenant type
    # ------------------------------------------------------------------

    def tenant_type_for(self, storefront_id: str) -> TenantType:
        """Explicit override for the storefront, else the default."""
        return self.overrides.get(str(storefront_id), self.default_tenant_type)

    def recommend_migration(self, storefront_id: str, stats: TenantStats) -> Optional[TenantType]:
        """
        Suggest a stronger isolation strategy when growth thresholds are exceeded.

        Returns:
            Target tenant type, or None if the current one is still adequate
        """
        current = self.tenant_type_for(storefront_id)
        if current is not TenantType.DATABASE and stats.exceeds(DATABASE_THRESHOLD):
            return TenantType.DATABASE
        if current is TenantType.SHARED and stats.exceeds(SCHEMA_THRESHOLD):
            return TenantType.SCHEMA
        return None

    def migrate_tenant(self, storefront_id: str, target: TenantType) -> None:
        """Record a new isolation strategy for the storefront (data movement is external)."""
        self.overrides[str(storefront_id)] = TenantType(target)
        removed = self.invalidate_storefront_by_id(storefront_id)
        logger.info(
            f"Tenant {storefront_id} switched to {TenantType(target).value} isolation "
            f"({removed} cache entries dropped)"
        )

    # ------------------------------------------------------------------
    # Storefront lookups
    # ------------------------------------------------------------------

    async def get_storefront_by_slug(self, slug: str) -> Optional[Storefront]:
        cached = self.cache.get(slug)
        if cached is not None:
            return cached

        async with self.session_factory() as session:
            storefront = await StorefrontRepository(session).get_by_slug(slug)

        if storefront is not None:
            self.cache.set(slug, storefront, self.cache_ttl)
        return storefront

    async def get_storefront_by_domain(self, domain: str) -> Optional[Storefront]:
        key = f"domain:{domain}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        async with self.session_factory() as session:
            storefront = await StorefrontRepository(session).get_by_domain(domain)

        if storefront is not None:
            self.cache.set(key, storefront, self.cache_ttl)
            self.cache.set(storefront.slug, storefront, self.cache_ttl)
        return storefront

    async def get_storefront_by_id(self, storefront_id: str) -> Optional[Storefront]:
        async with self.session_factory() as session:
            return await StorefrontRepository(session).get_by_id(storefront_id)

    def invalidate_storefront(self, slug: str) -> None:
        self.cache.invalidate(slug)

    def invalidate_storefront_by_id(self, storefront_id: str) -> int:
        return self.cache.invalidate_value(lambda s: str(s.id) == str(storefront_id))

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def create_context(self, storefront: Storefront) -> TenantContext:
        return TenantContext(
            storefront_id=str(storefront.id),
            storefront_slug=storefront.slug,
            seller_id=str(storefront.seller_id) if storefront.seller_id else None,
            tenant_type=self.tenant_type_for(str(storefront.id)),
        )

    async def resolve(
        self,
        slug: Optional[str] = None,
        domain: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> TenantContext:
        """
        Resolve a storefront from whichever identifier is present.

        Raises:
            TenantResolutionError: No identifier given, or no live storefront matches
            DatabaseTimeoutError: Lookup exceeded the resolution timeout
        """
        slug = (slug or "").strip()
        domain = (domain or "").strip().lower()
        tenant_id = (tenant_id or "").strip()

        if slug:
            lookup, identifier = self.get_storefront_by_slug(slug), f"slug {slug}"
        elif domain:
            lookup, identifier = self.get_storefront_by_domain(domain), f"domain {domain}"
        elif tenant_id:
            lookup, identifier = self.get_storefront_by_id(tenant_id), f"id {tenant_id}"
        else:
            raise TenantResolutionError("storefront identifier is required")

        try:
            storefront = await asyncio.wait_for(lookup, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise DatabaseTimeoutError(f"tenant resolution timed out for {identifier}") from e

        if storefront is None:
            logger.warning(f"Storefront not found for {identifier}")
            raise TenantResolutionError(f"storefront not found: {identifier}")

        return self.create_context(storefront)

    async def resolve_request(self, request: Request) -> TenantContext:
        """Resolve from the storefront identification headers."""
        headers = request.headers
        return await self.resolve(
            slug=headers.get(STOREFRONT_SLUG_HEADER),
            domain=headers.get(STOREFRONT_DOMAIN_HEADER),
            tenant_id=headers.get(TENANT_ID_HEADER),
        )
