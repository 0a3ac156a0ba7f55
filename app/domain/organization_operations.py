"""Domain operations for Organization model."""

import uuid as uuid_pkg

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.base_operations import BaseOperations
from app.models.organization import Organization
from app.roles.tiers import get_tier_policy


class OrganizationOperations(BaseOperations[Organization]):
    """CRUD operations for Organization model."""

    def __init__(self) -> None:
        super().__init__(Organization)

    async def get_by_slug(
        self,
        db: AsyncSession,
        slug: str,
    ) -> Organization | None:
        """Get an organization by its slug."""
        statement = select(Organization).where(Organization.slug == slug)
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_for_update(
        self,
        db: AsyncSession,
        id: uuid_pkg.UUID,
    ) -> Organization | None:
        """Get an organization with a row lock (serializes tier changes)."""
        statement = select(Organization).where(Organization.id == id).with_for_update()
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def set_tier(
        self,
        db: AsyncSession,
        organization: Organization,
        tier: str,
    ) -> Organization:
        """
        Set the organization's subscription tier.

        The tier is normalized through the tier table, so legacy names like
        "professional" are stored as "PRO".

        Raises:
            ConfigurationError: tier is unknown.
        """
        organization.tier = get_tier_policy(tier).tier
        db.add(organization)
        await db.flush()
        await db.refresh(organization)
        return organization


organization_ops = OrganizationOperations()
