"""Claims refresh - recompute and republish the caller's own role claims."""

import uuid as uuid_pkg
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.core.database import get_db
from app.core.exceptions import NotFoundError
from app.domain.organization_operations import organization_ops
from app.models.role_assignment import RoleMappingRead
from app.models.user import User
from app.services.assignments.service import (
    AssignmentNotFoundError,
    MembershipNotFoundError,
    role_assignment_service,
)

router = APIRouter(prefix="/claims", tags=["claims"])


class ClaimsRefreshRequest(BaseModel):
    organization_id: uuid_pkg.UUID
    project_id: uuid_pkg.UUID


class ClaimsRefreshResponse(BaseModel):
    mapping: RoleMappingRead
    claims: dict[str, Any]
    claims_published: bool


@router.post("/refresh", response_model=ClaimsRefreshResponse)
async def refresh_claims(
    data: ClaimsRefreshRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ClaimsRefreshResponse:
    """
    Recompute the caller's mapping for a project and republish their claims.

    Only ever acts on the authenticated user's own membership. The client
    should refresh its session afterwards to receive the new token.
    """
    organization = await organization_ops.get(db, data.organization_id)
    if organization is None:
        raise NotFoundError("Organization")

    try:
        result = await role_assignment_service.refresh_claims(
            db, organization, data.project_id, current_user.id
        )
    except (AssignmentNotFoundError, MembershipNotFoundError):
        raise NotFoundError("Role assignment") from None

    return ClaimsRefreshResponse(
        mapping=RoleMappingRead.from_mapping(result.mapping),
        claims=result.claims or {},
        claims_published=result.claims_published,
    )
