"""Domain operations for OrganizationMember model."""

import uuid as uuid_pkg
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.organization import OrganizationMember
from app.roles.catalog import OrganizationRole, parse_organization_role


class OrgMemberOperations:
    """CRUD operations for OrganizationMember model."""

    async def get_by_org_and_user(
        self,
        db: AsyncSession,
        organization_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
        for_update: bool = False,
    ) -> OrganizationMember | None:
        """Get a specific membership by org and user."""
        statement = select(OrganizationMember).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.user_id == user_id,
        )
        if for_update:
            statement = statement.with_for_update()
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def update_role(
        self,
        db: AsyncSession,
        membership: OrganizationMember,
        new_role: "str | OrganizationRole",
    ) -> OrganizationMember:
        """Update a member's organization role."""
        membership.role = parse_organization_role(new_role).value
        db.add(membership)
        await db.flush()
        await db.refresh(membership)
        return membership

    async def set_project_role(
        self,
        db: AsyncSession,
        membership: OrganizationMember,
        project_id: uuid_pkg.UUID,
        entry: dict[str, Any],
    ) -> OrganizationMember:
        """Record the dashboard role for one project on the membership."""
        # Reassign so SQLAlchemy sees the JSONB change
        project_roles = dict(membership.project_roles or {})
        project_roles[str(project_id)] = entry
        membership.project_roles = project_roles
        db.add(membership)
        await db.flush()
        return membership

    async def clear_project_role(
        self,
        db: AsyncSession,
        membership: OrganizationMember,
        project_id: uuid_pkg.UUID,
    ) -> bool:
        """Forget the dashboard role for one project. Returns True if one was present."""
        project_roles = dict(membership.project_roles or {})
        removed = project_roles.pop(str(project_id), None) is not None
        if removed:
            membership.project_roles = project_roles
            db.add(membership)
            await db.flush()
        return removed


org_member_ops = OrgMemberOperations()
