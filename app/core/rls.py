"""Row-Level Security (RLS) context management.

This module provides functions to set and manage the PostgreSQL session context
used by RLS policies to determine the current authenticated user and the role
claims from their verified token.

Key concepts:
- Uses set_config(..., true) for transaction-scoped settings (works with PgBouncer pooling)
- app.current_user_id is read by RLS policies via app_user_id()
- app.claims_org_id, app.claims_hierarchy, app.claims_permissions,
  app.claims_project_id and app.claims_team_hierarchy carry the verified role
  claims; policies read them via app_claims_*() helpers
- Service role bypasses RLS automatically (configured in migration)

Usage:
    # In request handler or dependency
    await set_rls_user_context(session, user.id)
    await set_rls_claims_context(session, role_claims)
    # All subsequent queries in this transaction will be filtered by RLS
"""

from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.roles.claims import RoleClaims

_SET_LOCAL = text("SELECT set_config(:name, :value, true)")


async def set_rls_user_context(session: AsyncSession, user_id: UUID) -> None:
    """
    Set the current user context for RLS policies.

    The setting is transaction-scoped and automatically reset when the
    transaction ends.
    """
    await session.execute(_SET_LOCAL, {"name": "app.current_user_id", "value": str(user_id)})


async def set_rls_claims_context(session: AsyncSession, claims: RoleClaims | None) -> None:
    """
    Set the verified role claims for RLS policies.

    With claims=None every setting is cleared, so claim-based policies deny.
    """
    team_hierarchy = claims.team_member_hierarchy if claims else None
    values = {
        "app.claims_org_id": claims.organization_id if claims else "",
        "app.claims_hierarchy": str(claims.effective_hierarchy) if claims else "",
        "app.claims_permissions": ",".join(sorted(claims.permissions)) if claims else "",
        "app.claims_project_id": (claims.project_id or "") if claims else "",
        "app.claims_team_hierarchy": str(team_hierarchy) if team_hierarchy is not None else "",
    }
    for name, value in values.items():
        await session.execute(_SET_LOCAL, {"name": name, "value": value})


async def get_current_rls_user_id(session: AsyncSession) -> UUID | None:
    """
    Get the currently set RLS user ID from the session.

    Useful for debugging and testing to verify RLS context is correctly set.
    """
    result = await session.execute(
        text("SELECT NULLIF(current_setting('app.current_user_id', true), '')::uuid")
    )
    row = result.scalar_one_or_none()
    return row

