"""Permission calculator - derives the permission set from effective hierarchy and tier.

The threshold table below is a policy contract: clients, token claims and the
database security rules all rely on it. Changing a threshold is a breaking
policy change.
"""

from dataclasses import dataclass
from enum import Enum

from app.roles.tiers import TIERS, TierPolicy, get_tier_policy


class Permission(str, Enum):
    """Named permissions. Values are the names published in token claims."""

    MANAGE_TEAM = "canManageTeam"
    MANAGE_PROJECTS = "canManageProjects"
    VIEW_FINANCIALS = "canViewFinancials"
    EDIT_CONTENT = "canEditContent"
    APPROVE_CONTENT = "canApproveContent"
    ACCESS_REPORTS = "canAccessReports"
    MANAGE_SETTINGS = "canManageSettings"


@dataclass(frozen=True)
class PermissionRule:
    """Minimum hierarchy (and optionally minimum tier) for one permission."""

    min_hierarchy: int
    min_tier: TierPolicy | None = None

    def allows(self, effective_hierarchy: int, tier: TierPolicy) -> bool:
        if effective_hierarchy < self.min_hierarchy:
            return False
        if self.min_tier is not None and not tier.at_least(self.min_tier):
            return False
        return True


PERMISSION_RULES: dict[Permission, PermissionRule] = {
    Permission.MANAGE_TEAM: PermissionRule(min_hierarchy=90),
    Permission.MANAGE_PROJECTS: PermissionRule(min_hierarchy=60),
    Permission.VIEW_FINANCIALS: PermissionRule(min_hierarchy=70, min_tier=TIERS["PRO"]),
    Permission.EDIT_CONTENT: PermissionRule(min_hierarchy=25),
    Permission.APPROVE_CONTENT: PermissionRule(min_hierarchy=40),
    Permission.ACCESS_REPORTS: PermissionRule(min_hierarchy=30),
    Permission.MANAGE_SETTINGS: PermissionRule(min_hierarchy=90),
}


@dataclass(frozen=True)
class PermissionSet:
    """Concrete permission flags plus the hierarchy level they were derived from."""

    hierarchy_level: int
    can_manage_team: bool = False
    can_manage_projects: bool = False
    can_view_financials: bool = False
    can_edit_content: bool = False
    can_approve_content: bool = False
    can_access_reports: bool = False
    can_manage_settings: bool = False

    def has(self, permission: Permission) -> bool:
        return getattr(self, _FLAG_ATTRIBUTES[permission])

    def enabled(self) -> list[str]:
        """Names of enabled permissions, in table order (for token claims)."""
        return [permission.value for permission in Permission if self.has(permission)]

    def as_dict(self) -> dict[str, bool | int]:
        """Return flags keyed by claim name, for API responses."""
        flags: dict[str, bool | int] = {p.value: self.has(p) for p in Permission}
        flags["hierarchyLevel"] = self.hierarchy_level
        return flags


_FLAG_ATTRIBUTES: dict[Permission, str] = {
    Permission.MANAGE_TEAM: "can_manage_team",
    Permission.MANAGE_PROJECTS: "can_manage_projects",
    Permission.VIEW_FINANCIALS: "can_view_financials",
    Permission.EDIT_CONTENT: "can_edit_content",
    Permission.APPROVE_CONTENT: "can_approve_content",
    Permission.ACCESS_REPORTS: "can_access_reports",
    Permission.MANAGE_SETTINGS: "can_manage_settings",
}


def compute_permissions(effective_hierarchy: int, tier: "str | TierPolicy") -> PermissionSet:
    """
    Compute the permission set for an effective hierarchy under a tier.

    Pure function: always recompute from inputs, never patch a previous set.

    Raises:
        ValueError: effective_hierarchy is not an integer in 0-100.
        ConfigurationError: tier is unknown.
    """
    if isinstance(effective_hierarchy, bool) or not isinstance(effective_hierarchy, int):
        raise ValueError(f"effective_hierarchy must be an int, got {effective_hierarchy!r}")
    if not 0 <= effective_hierarchy <= 100:
        raise ValueError(f"effective_hierarchy {effective_hierarchy} outside 0-100")

    policy = get_tier_policy(tier)
    flags = {
        _FLAG_ATTRIBUTES[permission]: rule.allows(effective_hierarchy, policy)
        for permission, rule in PERMISSION_RULES.items()
    }
    return PermissionSet(hierarchy_level=effective_hierarchy, **flags)
