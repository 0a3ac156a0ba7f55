"""Role catalog and preview endpoints (read-only, no persistence)."""

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.api.deps import get_current_user
from app.core.exceptions import ValidationError
from app.models.role_assignment import RoleMappingRead, RoleResolveRequest
from app.models.user import User
from app.roles.bridge import map_organization_role_to_project
from app.roles.catalog import PROJECT_ROLE_CATALOG, OrganizationRole
from app.roles.exceptions import ConfigurationError
from app.roles.permissions import compute_permissions
from app.roles.tiers import TIERS, get_tier_policy
from app.services.assignments.service import build_template

router = APIRouter(prefix="/roles", tags=["roles"])


class OrganizationRoleResponse(BaseModel):
    role: str
    hierarchy: int


class ProjectRoleResponse(BaseModel):
    name: str
    display_name: str
    hierarchy: int
    responsibilities: list[str]


class TierResponse(BaseModel):
    tier: str
    display_name: str
    max_hierarchy: int


class CatalogResponse(BaseModel):
    organization_roles: list[OrganizationRoleResponse]
    project_roles: list[ProjectRoleResponse]
    tiers: list[TierResponse]


@router.get("/catalog", response_model=CatalogResponse)
async def get_catalog(
    _current_user: User = Depends(get_current_user),
) -> CatalogResponse:
    """List organization roles, project roles (declaration order) and tier ceilings."""
    return CatalogResponse(
        organization_roles=[
            OrganizationRoleResponse(role=role.value, hierarchy=role.hierarchy)
            for role in OrganizationRole
        ],
        project_roles=[
            ProjectRoleResponse(
                name=role.name,
                display_name=role.display_name,
                hierarchy=role.hierarchy,
                responsibilities=list(role.responsibilities),
            )
            for role in PROJECT_ROLE_CATALOG
        ],
        tiers=[
            TierResponse(
                tier=policy.tier,
                display_name=policy.display_name,
                max_hierarchy=policy.max_hierarchy,
            )
            for policy in sorted(TIERS.values(), key=lambda p: p.rank)
        ],
    )


@router.post("/resolve", response_model=RoleMappingRead)
async def resolve_role(
    data: RoleResolveRequest,
    _current_user: User = Depends(get_current_user),
) -> RoleMappingRead:
    """
    Preview the mapping for an organization role, template and tier.

    Unknown roles return 400; an unknown tier is a client error here too,
    since the tier comes from the request rather than configuration.
    """
    _require_known_tier(data.tier)
    template = build_template(template=data.template.model_dump() if data.template else None)
    mapping = map_organization_role_to_project(data.organization_role, template, data.tier)
    return RoleMappingRead.from_mapping(mapping)


@router.get("/permissions")
async def preview_permissions(
    effective_hierarchy: int = Query(..., ge=0, le=100),
    tier: str = Query(...),
    _current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    """Preview the permission set for an effective hierarchy under a tier."""
    _require_known_tier(tier)
    permissions = compute_permissions(effective_hierarchy, tier)
    return {"tier": get_tier_policy(tier).tier, "permissions": permissions.as_dict()}


def _require_known_tier(tier: str) -> None:
    try:
        get_tier_policy(tier)
    except ConfigurationError:
        raise ValidationError(f"Unknown tier '{tier}'. Valid tiers: {sorted(TIERS)}") from None
