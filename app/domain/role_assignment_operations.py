"""Domain operations for RoleAssignment model."""

import uuid as uuid_pkg
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.role_assignment import RoleAssignment
from app.roles.types import RoleMapping


class RoleAssignmentOperations:
    """Persistence for the authoritative per-(user, project) RoleMapping."""

    async def get(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID,
        project_id: uuid_pkg.UUID,
        for_update: bool = False,
    ) -> RoleAssignment | None:
        """Get the assignment for a user on a project."""
        statement = select(RoleAssignment).where(
            RoleAssignment.user_id == user_id,
            RoleAssignment.project_id == project_id,
        )
        if for_update:
            statement = statement.with_for_update()
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_org(
        self,
        db: AsyncSession,
        organization_id: uuid_pkg.UUID,
        for_update: bool = False,
    ) -> list[RoleAssignment]:
        """Get every assignment in an organization."""
        statement = (
            select(RoleAssignment)
            .where(RoleAssignment.organization_id == organization_id)
            .order_by(RoleAssignment.created_at)
        )
        if for_update:
            statement = statement.with_for_update()
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def upsert(
        self,
        db: AsyncSession,
        organization_id: uuid_pkg.UUID,
        project_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
        mapping: RoleMapping,
        template: dict[str, Any] | None,
        source_context: str,
    ) -> tuple[RoleAssignment, bool]:
        """
        Store a mapping for (user, project).

        Returns:
            Tuple of (assignment, created) where created is True for a new row.
        """
        assignment = await self.get(db, user_id, project_id, for_update=True)
        created = assignment is None
        if assignment is None:
            assignment = RoleAssignment(
                organization_id=organization_id,
                project_id=project_id,
                user_id=user_id,
                organization_role=mapping.organization_role.value,
                project_role=mapping.project_role.name,
                effective_hierarchy=mapping.effective_hierarchy,
                mapping_reason=mapping.mapping_reason.value,
                tier=mapping.tier,
                clamped_from=mapping.clamped_from,
                template=template,
                source_context=source_context,
            )
        else:
            assignment.apply_mapping(mapping)
            assignment.template = template
            assignment.source_context = source_context
        db.add(assignment)
        await db.flush()
        return assignment, created

    async def delete(self, db: AsyncSession, assignment: RoleAssignment) -> None:
        await db.delete(assignment)
        await db.flush()


role_assignment_ops = RoleAssignmentOperations()
