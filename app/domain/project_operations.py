"""Domain operations for Project and ProjectMember models."""

import uuid as uuid_pkg
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.base_operations import BaseOperations
from app.models.project import Project, ProjectMember
from app.roles.types import RoleMapping


class ProjectOperations(BaseOperations[Project]):
    """CRUD operations for Project model."""

    def __init__(self) -> None:
        super().__init__(Project)

    async def get_in_org(
        self,
        db: AsyncSession,
        organization_id: uuid_pkg.UUID,
        project_id: uuid_pkg.UUID,
    ) -> Project | None:
        """Get a project only if it belongs to the organization."""
        statement = select(Project).where(
            Project.id == project_id,
            Project.organization_id == organization_id,
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()


class ProjectMemberOperations:
    """Operations on the dashboard context's project membership rows."""

    async def get(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
    ) -> ProjectMember | None:
        """Get a user's membership on a project."""
        statement = select(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def upsert_from_mapping(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
        mapping: RoleMapping,
        sync_event_id: uuid_pkg.UUID | None = None,
    ) -> ProjectMember:
        """Create or overwrite the membership row from a role mapping."""
        member = await self.get(db, project_id, user_id)
        if member is None:
            member = ProjectMember(project_id=project_id, user_id=user_id)
        member.organization_role = mapping.organization_role.value
        member.project_role = mapping.project_role.name
        member.hierarchy = mapping.project_role.hierarchy
        member.effective_hierarchy = mapping.effective_hierarchy
        member.tier = mapping.tier
        member.last_sync_event_id = sync_event_id
        member.updated_at = datetime.now(UTC)
        db.add(member)
        await db.flush()
        return member

    async def remove(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
    ) -> bool:
        """Remove a user's membership on a project. Returns True if a row was deleted."""
        member = await self.get(db, project_id, user_id)
        if member is None:
            return False
        await db.delete(member)
        await db.flush()
        return True


project_ops = ProjectOperations()
project_member_ops = ProjectMemberOperations()
