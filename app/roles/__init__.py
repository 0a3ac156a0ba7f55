"""
Role resolution engine.

Pure, synchronous building blocks for the two-tier role model: organization
(licensing) roles, project (dashboard) roles, tier ceilings and permissions.
Safe to call from any number of concurrent callers.

Module structure:
- exceptions.py: Error taxonomy (ConfigurationError, UnknownRoleError, ...)
- tiers.py: Tier policies (hierarchy ceilings)
- catalog.py: Organization and project role catalogs
- permissions.py: Permission calculator
- types.py: RoleTemplate, RoleMapping, MappingReason
- hierarchy.py: Tier clamp and effective hierarchy
- bridge.py: Organization role -> project role mapping
- claims.py: Identity-token custom claims
"""

from app.roles.exceptions import (
    ClaimsTooLargeError,
    ConfigurationError,
    RoleEngineError,
    SyncError,
    SyncPermanentError,
    SyncTransientError,
    UnknownRoleError,
)
from app.roles.tiers import TIERS, TierPolicy, get_tier_policy, validate_tiers
from app.roles.catalog import (
    PROJECT_ROLE_CATALOG,
    PROJECT_ROLES,
    OrganizationRole,
    ProjectRole,
    get_project_role,
    parse_organization_role,
    validate_catalog,
)
from app.roles.permissions import Permission, PermissionSet, compute_permissions
from app.roles.types import MappingReason, RoleMapping, RoleTemplate
from app.roles.hierarchy import clamp_to_tier, effective_hierarchy
from app.roles.bridge import map_organization_role_to_project, resolve_project_role
from app.roles.claims import RoleClaims, build_custom_claims, revoked_claims

__all__ = [
    # Errors
    "RoleEngineError",
    "ConfigurationError",
    "UnknownRoleError",
    "ClaimsTooLargeError",
    "SyncError",
    "SyncTransientError",
    "SyncPermanentError",
    # Tiers
    "TIERS",
    "TierPolicy",
    "get_tier_policy",
    "validate_tiers",
    # Catalogs
    "PROJECT_ROLE_CATALOG",
    "PROJECT_ROLES",
    "OrganizationRole",
    "ProjectRole",
    "get_project_role",
    "parse_organization_role",
    "validate_catalog",
    # Permissions
    "Permission",
    "PermissionSet",
    "compute_permissions",
    # Mapping
    "MappingReason",
    "RoleMapping",
    "RoleTemplate",
    "clamp_to_tier",
    "effective_hierarchy",
    "map_organization_role_to_project",
    "resolve_project_role",
    # Claims
    "RoleClaims",
    "build_custom_claims",
    "revoked_claims",
]
