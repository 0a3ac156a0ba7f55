"""Organization context and access policy dependencies."""

import uuid as uuid_pkg

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.access_policy import ACCESS_POLICY, Action, is_allowed
from app.core.database import get_db
from app.domain.organization_operations import organization_ops
from app.models.organization import Organization
from app.models.user import User
from app.roles.claims import RoleClaims

from .auth import get_current_user, get_role_claims


async def get_organization(
    org_id: uuid_pkg.UUID,
    db: AsyncSession = Depends(get_db),
) -> Organization:
    """Load the organization named in the path. Raises 404 if missing."""
    org = await organization_ops.get(db, org_id)
    if not org:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organization not found",
        )
    return org


class PolicyGate:
    """
    Dependency class enforcing the access policy for one collection and action.

    Reads the organization id (plus the subject user id and project id, where
    the route has them) from the path and the role claims from the verified token.

    Usage:
        @router.get("/organizations/{org_id}/sync-events")
        async def list_events(
            _: RoleClaims = Depends(PolicyGate("sync_events", Action.READ)),
            ...
        ):
            ...
    """

    def __init__(self, collection: str, action: Action):
        if collection not in ACCESS_POLICY:
            raise ValueError(
                f"Unknown collection '{collection}' for PolicyGate. "
                f"Valid collections: {sorted(ACCESS_POLICY)}"
            )
        self.collection = collection
        self.action = action

    async def __call__(
        self,
        org_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID | None = None,
        project_id: uuid_pkg.UUID | None = None,
        current_user: User = Depends(get_current_user),
        claims: RoleClaims | None = Depends(get_role_claims),
    ) -> RoleClaims:
        is_self = user_id is not None and user_id == current_user.id
        if not is_allowed(
            claims,
            self.collection,
            self.action,
            str(org_id),
            is_self=is_self,
            project_id=str(project_id) if project_id else None,
        ):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Not allowed to {self.action.value} {self.collection}",
            )
        if claims is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Role claims required",
            )
        return claims
