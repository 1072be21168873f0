"""Tenant module - Request-scoped tenant context and its resolver."""

from smartseller_tenancy.tenant.context import TenantContext, TenantType
from smartseller_tenancy.tenant.resolver import TenantResolver, TenantStats

__all__ = ["TenantContext", "TenantType", "TenantResolver", "TenantStats"]
