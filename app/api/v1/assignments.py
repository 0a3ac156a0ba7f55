"""Project role assignment endpoints.

Writes go through the role assignment service, which persists the mapping,
enqueues a sync event for the opposite context and publishes claims. The
caller's authority comes from their verified token claims only.
"""

import uuid as uuid_pkg

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import PolicyGate, get_db_with_rls, get_organization
from app.core.access_policy import ORG_ADMIN_HIERARCHY, Action
from app.core.database import get_db
from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.domain.org_member_operations import org_member_ops
from app.domain.project_operations import project_ops
from app.models.organization import Organization
from app.models.role_assignment import (
    RoleAssignmentRead,
    RoleAssignmentUpdate,
    RoleMappingRead,
    TierUpdate,
)
from app.models.sync_event import SourceContext
from app.roles.catalog import OrganizationRole, parse_organization_role
from app.roles.claims import RoleClaims
from app.roles.exceptions import ConfigurationError
from app.roles.tiers import get_tier_policy
from app.services.assignments.service import (
    AssignmentNotFoundError,
    MembershipNotFoundError,
    build_template,
    compute_role_mapping,
    role_assignment_service,
)

router = APIRouter(prefix="/organizations/{org_id}", tags=["assignments"])

ROLE_PATH = "/projects/{project_id}/members/{user_id}/role"


async def _require_project(
    db: AsyncSession,
    org_id: uuid_pkg.UUID,
    project_id: uuid_pkg.UUID,
) -> None:
    if await project_ops.get_in_org(db, org_id, project_id) is None:
        raise NotFoundError("Project")


def _require_organization_authority(
    claims: RoleClaims,
    current_role: OrganizationRole,
    new_role: OrganizationRole,
) -> None:
    """Organization role changes need an organization-level admin who outranks both roles."""
    team_hierarchy = claims.team_member_hierarchy or 0
    if team_hierarchy < max(ORG_ADMIN_HIERARCHY, current_role.hierarchy, new_role.hierarchy):
        raise ForbiddenError("Changing the organization role needs organization-level authority")


@router.get(ROLE_PATH, response_model=RoleAssignmentRead)
async def get_member_role(
    org_id: uuid_pkg.UUID,
    project_id: uuid_pkg.UUID,
    user_id: uuid_pkg.UUID,
    _claims: RoleClaims = Depends(PolicyGate("role_assignments", Action.READ)),
    db: AsyncSession = Depends(get_db_with_rls),
    organization: Organization = Depends(get_organization),
) -> RoleAssignmentRead:
    """Read a member's resolved role on a project."""
    await _require_project(db, org_id, project_id)
    mapping = await role_assignment_service.get_mapping(db, project_id, user_id)
    if mapping is None:
        raise NotFoundError("Role assignment")
    return RoleAssignmentRead(
        user_id=user_id,
        project_id=project_id,
        organization_id=organization.id,
        mapping=RoleMappingRead.from_mapping(mapping),
    )


@router.put(ROLE_PATH, response_model=RoleAssignmentRead)
async def assign_member_role(
    org_id: uuid_pkg.UUID,
    project_id: uuid_pkg.UUID,
    user_id: uuid_pkg.UUID,
    data: RoleAssignmentUpdate,
    claims: RoleClaims = Depends(PolicyGate("role_assignments", Action.WRITE)),
    organization: Organization = Depends(get_organization),
    db: AsyncSession = Depends(get_db),
) -> RoleAssignmentRead:
    """
    Assign or update a member's role on a project.

    The caller must outrank neither the member's current project mapping nor
    their current organization role, and the resulting effective hierarchy may
    not exceed the caller's own. Changing the organization role additionally
    needs organization-level authority from the token, not a project elevation.
    """
    await _require_project(db, org_id, project_id)
    template = build_template(
        project_role=data.project_role,
        template=data.template.model_dump() if data.template else None,
    )

    current = await role_assignment_service.get_mapping(db, project_id, user_id)
    if current is not None and current.effective_hierarchy > claims.effective_hierarchy:
        raise ForbiddenError("Cannot change a role above your own hierarchy")
    membership = await org_member_ops.get_by_org_and_user(db, organization.id, user_id)
    if membership is None:
        raise NotFoundError("Organization member")
    current_org_role = parse_organization_role(membership.role)
    if current_org_role.hierarchy > claims.effective_hierarchy:
        raise ForbiddenError("Cannot change a role above your own hierarchy")
    if data.organization_role is not None:
        _require_organization_authority(
            claims, current_org_role, parse_organization_role(data.organization_role)
        )

    try:
        preview = await compute_role_mapping(
            db, organization, user_id, template=template, organization_role=data.organization_role
        )
    except MembershipNotFoundError:
        raise NotFoundError("Organization member") from None
    if preview.effective_hierarchy > claims.effective_hierarchy:
        raise ForbiddenError("Cannot grant a role above your own hierarchy")

    result = await role_assignment_service.assign(
        db,
        organization,
        project_id,
        user_id,
        template=template,
        organization_role=data.organization_role,
        source_context=data.source_context,
    )
    return RoleAssignmentRead(
        user_id=user_id,
        project_id=project_id,
        organization_id=organization.id,
        mapping=RoleMappingRead.from_mapping(result.mapping),
        sync_event_id=result.sync_event.id if result.sync_event else None,
        claims_published=result.claims_published,
    )


@router.delete(ROLE_PATH, status_code=status.HTTP_202_ACCEPTED)
async def remove_member_role(
    org_id: uuid_pkg.UUID,
    project_id: uuid_pkg.UUID,
    user_id: uuid_pkg.UUID,
    source_context: SourceContext = SourceContext.LICENSING,
    claims: RoleClaims = Depends(PolicyGate("role_assignments", Action.WRITE)),
    organization: Organization = Depends(get_organization),
    db: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    """Remove a member's role on a project; the other context is updated asynchronously."""
    await _require_project(db, org_id, project_id)
    current = await role_assignment_service.get_mapping(db, project_id, user_id)
    if current is not None and current.effective_hierarchy > claims.effective_hierarchy:
        raise ForbiddenError("Cannot remove a role above your own hierarchy")

    try:
        event = await role_assignment_service.remove(
            db, organization, project_id, user_id, source_context=source_context
        )
    except AssignmentNotFoundError:
        raise NotFoundError("Role assignment") from None
    return {"sync_event_id": str(event.id), "status": event.status}


@router.put("/tier")
async def update_tier(
    org_id: uuid_pkg.UUID,
    data: TierUpdate,
    _claims: RoleClaims = Depends(PolicyGate("organizations", Action.WRITE)),
    organization: Organization = Depends(get_organization),
    db: AsyncSession = Depends(get_db),
) -> dict[str, str | int]:
    """Change the organization's tier and recompute every assignment under it."""
    try:
        get_tier_policy(data.tier)
    except ConfigurationError:
        raise ValidationError(f"Unknown tier '{data.tier}'") from None

    events = await role_assignment_service.change_tier(db, organization, data.tier)
    return {"tier": organization.tier, "updated_assignments": len(events)}
