"""Per-collection access policy evaluated against verified role claims.

The API equivalent of the database security rules: every collection lists the
minimum effective hierarchy and/or permission required per action. Anything
not listed is denied. Decisions branch on hierarchy and permission flags,
never on role names.

The same thresholds are mirrored in the RLS policies of the
`role_engine_tables` migration.
"""

from dataclasses import dataclass
from enum import Enum

from app.roles.catalog import OrganizationRole
from app.roles.claims import RoleClaims
from app.roles.permissions import Permission

# Organization-wide changes need an admin or owner organization role
ORG_ADMIN_HIERARCHY = OrganizationRole.ADMIN.hierarchy


class Action(str, Enum):
    READ = "read"
    WRITE = "write"


@dataclass(frozen=True)
class PolicyRule:
    """Requirements for one (collection, action)."""

    min_hierarchy: int = 0
    permission: Permission | None = None
    allow_self: bool = False  # Subject may act on their own record regardless of the above
    # Claims only count for the project they were issued for
    project_scoped: bool = False
    # Organization-role hierarchy required; project roles never raise it
    min_team_hierarchy: int = 0

    def allows(
        self,
        claims: RoleClaims,
        is_self: bool = False,
        project_id: str | None = None,
    ) -> bool:
        if self.allow_self and is_self:
            return True
        if self.project_scoped and (project_id is None or claims.project_id != str(project_id)):
            return False
        if self.min_team_hierarchy and (claims.team_member_hierarchy or 0) < self.min_team_hierarchy:
            return False
        if claims.effective_hierarchy < self.min_hierarchy:
            return False
        if self.permission is not None and not claims.has_permission(self.permission.value):
            return False
        return True


ACCESS_POLICY: dict[str, dict[Action, PolicyRule]] = {
    "organizations": {
        Action.READ: PolicyRule(min_hierarchy=10),
        Action.WRITE: PolicyRule(
            permission=Permission.MANAGE_SETTINGS, min_team_hierarchy=ORG_ADMIN_HIERARCHY
        ),
    },
    "projects": {
        Action.READ: PolicyRule(min_hierarchy=10),
        Action.WRITE: PolicyRule(permission=Permission.MANAGE_PROJECTS),
    },
    "project_members": {
        Action.READ: PolicyRule(min_hierarchy=10),
        Action.WRITE: PolicyRule(permission=Permission.MANAGE_TEAM),
    },
    "organization_members": {
        Action.READ: PolicyRule(min_hierarchy=10),
        Action.WRITE: PolicyRule(permission=Permission.MANAGE_TEAM),
    },
    "role_assignments": {
        Action.READ: PolicyRule(
            permission=Permission.MANAGE_PROJECTS, allow_self=True, project_scoped=True
        ),
        Action.WRITE: PolicyRule(permission=Permission.MANAGE_TEAM, project_scoped=True),
    },
    "sync_events": {
        Action.READ: PolicyRule(permission=Permission.ACCESS_REPORTS, min_hierarchy=60),
        Action.WRITE: PolicyRule(
            permission=Permission.MANAGE_SETTINGS, min_team_hierarchy=ORG_ADMIN_HIERARCHY
        ),
    },
}


def is_allowed(
    claims: RoleClaims | None,
    collection: str,
    action: Action,
    organization_id: str,
    is_self: bool = False,
    project_id: str | None = None,
) -> bool:
    """
    Decide whether the token holder may perform `action` on `collection`.

    Default deny: no claims, an unknown collection or action, claims for a
    different organization, or project-scoped rules evaluated against claims
    issued for another project all return False.
    """
    if claims is None:
        return False
    rules = ACCESS_POLICY.get(collection)
    if rules is None:
        return False
    rule = rules.get(action)
    if rule is None:
        return False
    if claims.organization_id != str(organization_id):
        return False
    return rule.allows(claims, is_self=is_self, project_id=project_id)
