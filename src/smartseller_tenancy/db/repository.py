"""Repository for storefront data access."""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Storefront

ACTIVE_STATUS = "active"


class StorefrontRepository:
    """Data access layer for Storefront model. Soft-deleted and inactive rows are invisible."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with async session."""
        self.session = session

    def _live(self):
        return select(Storefront).where(
            Storefront.deleted_at.is_(None),
            Storefront.status == ACTIVE_STATUS,
        )

    async def get_by_slug(self, slug: str) -> Optional[Storefront]:
        result = await self.session.execute(self._live().where(Storefront.slug == slug))
        return result.scalars().first()

    async def get_by_domain(self, domain: str) -> Optional[Storefront]:
        result = await self.session.execute(self._live().where(Storefront.domain == domain))
        return result.scalars().first()

    async def get_by_id(self, storefront_id: str) -> Optional[Storefront]:
        """Look up by id; malformed ids simply do not match."""
        try:
            key = uuid.UUID(str(storefront_id))
        except ValueError:
            return None
        result = await self.session.execute(self._live().where(Storefront.id == key))
        return result.scalars().first()
