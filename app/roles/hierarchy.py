"""Hierarchy and tier validation.

A project role whose hierarchy exceeds the organization's tier ceiling is
silently downgraded to the highest catalog role under the ceiling. The
assignment is never rejected: clamping keeps team imports and invites
flowing, at the cost of the user getting less than was asked for. The
mapping records the original role in `clamped_from`.
"""

from app.roles.catalog import (
    PROJECT_ROLE_CATALOG,
    OrganizationRole,
    ProjectRole,
    get_project_role,
    parse_organization_role,
)
from app.roles.exceptions import ConfigurationError
from app.roles.tiers import TierPolicy, get_tier_policy


def highest_role_within(max_hierarchy: int) -> ProjectRole:
    """Highest-hierarchy catalog role at or below max_hierarchy (first declared wins ties)."""
    best: ProjectRole | None = None
    for role in PROJECT_ROLE_CATALOG:
        if role.hierarchy > max_hierarchy:
            continue
        if best is None or role.hierarchy > best.hierarchy:
            best = role
    if best is None:
        raise ConfigurationError(f"No project role at or below hierarchy {max_hierarchy}")
    return best


def clamp_to_tier(project_role: "str | ProjectRole", tier: "str | TierPolicy") -> ProjectRole:
    """
    Return the project role unchanged if the tier allows it, else the clamped role.

    Raises:
        UnknownRoleError: project_role is not in the catalog.
        ConfigurationError: tier is unknown.
    """
    role = get_project_role(project_role)
    policy = get_tier_policy(tier)

    if role.hierarchy <= policy.max_hierarchy:
        return role
    return highest_role_within(policy.max_hierarchy)


def effective_hierarchy(
    org_role: "str | OrganizationRole",
    project_role: "str | ProjectRole",
) -> int:
    """Effective hierarchy = max(organization role hierarchy, project role hierarchy)."""
    return max(parse_organization_role(org_role).hierarchy, get_project_role(project_role).hierarchy)
