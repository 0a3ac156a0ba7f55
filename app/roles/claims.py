"""Identity-token custom claims for a resolved role mapping.

Only resolved values go into the token, never catalog data. app_metadata is
copied into every access token, so the serialized payload is capped at
settings.claims_max_bytes.
"""

import json
from dataclasses import dataclass
from typing import Any

from app.config.settings import settings
from app.roles.catalog import OrganizationRole
from app.roles.exceptions import ClaimsTooLargeError
from app.roles.types import RoleMapping

# Bump when the claim shape changes so clients can force a token refresh
CLAIMS_VERSION = "5.0"

# Claim names every token must carry for the security rules to evaluate
REQUIRED_CLAIMS = (
    "organizationId",
    "teamMemberRole",
    "dashboardRole",
    "teamMemberHierarchy",
    "dashboardHierarchy",
    "effectiveHierarchy",
    "permissions",
    "tier",
)


def claims_size(claims: dict[str, Any]) -> int:
    """Size in bytes of the compact JSON encoding of the claims."""
    return len(json.dumps(claims, separators=(",", ":")).encode("utf-8"))


def build_custom_claims(
    mapping: RoleMapping,
    organization_id: str,
    project_id: str | None = None,
    max_bytes: int | None = None,
) -> dict[str, Any]:
    """
    Serialize a role mapping into the custom-claims payload.

    Raises:
        ClaimsTooLargeError: the compact JSON encoding exceeds max_bytes.
    """
    claims: dict[str, Any] = {
        "organizationId": str(organization_id),
        "teamMemberRole": mapping.organization_role.value,
        "dashboardRole": mapping.project_role.name,
        "teamMemberHierarchy": mapping.organization_role.hierarchy,
        "dashboardHierarchy": mapping.project_role.hierarchy,
        "effectiveHierarchy": mapping.effective_hierarchy,
        "permissions": mapping.permissions.enabled(),
        "tier": mapping.tier,
        "isOrganizationOwner": mapping.organization_role == OrganizationRole.OWNER,
        "claimsVersion": CLAIMS_VERSION,
    }
    if project_id is not None:
        claims["projectId"] = str(project_id)

    limit = max_bytes if max_bytes is not None else settings.claims_max_bytes
    size = claims_size(claims)
    if size > limit:
        raise ClaimsTooLargeError(size, limit)
    return claims


def revoked_claims() -> dict[str, Any]:
    """Claims payload that clears every role field (written when a role is removed)."""
    claims: dict[str, Any] = {name: None for name in REQUIRED_CLAIMS}
    claims.update(isOrganizationOwner=False, projectId=None, claimsVersion=CLAIMS_VERSION)
    return claims


@dataclass(frozen=True)
class RoleClaims:
    """Authorization facts read back from a verified token.

    Never built from request bodies; the API dependencies construct it only
    from the signed token payload.
    """

    organization_id: str
    effective_hierarchy: int
    permissions: frozenset[str]
    tier: str
    team_member_role: str | None = None
    team_member_hierarchy: int | None = None  # Organization-level authority, independent of any project
    dashboard_role: str | None = None
    project_id: str | None = None  # Project the effective hierarchy and permissions apply to

    @classmethod
    def from_claims(cls, claims: dict[str, Any] | None) -> "RoleClaims | None":
        """Parse claims; returns None when required fields are missing or mistyped."""
        if not claims:
            return None
        organization_id = claims.get("organizationId")
        effective = claims.get("effectiveHierarchy")
        permissions = claims.get("permissions")
        tier = claims.get("tier")
        if not isinstance(organization_id, str) or not organization_id:
            return None
        if isinstance(effective, bool) or not isinstance(effective, int):
            return None
        if not isinstance(permissions, list) or not isinstance(tier, str):
            return None
        team_hierarchy = claims.get("teamMemberHierarchy")
        if isinstance(team_hierarchy, bool) or not isinstance(team_hierarchy, int):
            team_hierarchy = None
        project_id = claims.get("projectId")
        if not isinstance(project_id, str) or not project_id:
            project_id = None
        return cls(
            organization_id=organization_id,
            effective_hierarchy=effective,
            permissions=frozenset(p for p in permissions if isinstance(p, str)),
            tier=tier,
            team_member_role=claims.get("teamMemberRole"),
            team_member_hierarchy=team_hierarchy,
            dashboard_role=claims.get("dashboardRole"),
            project_id=project_id,
        )

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions
