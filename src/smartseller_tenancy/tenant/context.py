"""Tenant context and isolation strategies."""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional


class TenantType(str, Enum):
    """Where a storefront's data lives."""

    SHARED = "shared"  # Row-level isolation in the shared database
    SCHEMA = "schema"  # Dedicated schema in the shared database
    DATABASE = "database"  # Dedicated database


@dataclass(frozen=True)
class TenantContext:
    """
    Tenant information for the current request.

    Built per request by the resolver and never persisted. For ``SCHEMA``
    tenants the caller must select the schema at statement time; nothing in
    the connection layer enforces it.
    """

    storefront_id: str
    storefront_slug: str
    tenant_type: TenantType = TenantType.SHARED
    seller_id: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["tenant_type"] = self.tenant_type.value
        return data
