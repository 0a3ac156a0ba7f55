"""
Role bridge - maps an organization (licensing) role onto a project (dashboard) role.

Resolution order, first match wins:
1. Direct name match: the template name is a catalog role name
2. Semantic match: token overlap between the template and each role's tags
3. Hierarchy-banded fallback: closest role to the hint or the org role's band
4. Default table: used when no template is given at all

The result is clamped to the tier ceiling and the permission set is derived
from the resulting effective hierarchy. Every function here is pure.
"""

import logging
import re

from app.roles.catalog import (
    PROJECT_ROLE_CATALOG,
    PROJECT_ROLES,
    OrganizationRole,
    ProjectRole,
    normalize_role_name,
    parse_organization_role,
)
from app.roles.hierarchy import clamp_to_tier
from app.roles.permissions import compute_permissions
from app.roles.tiers import TierPolicy, get_tier_policy
from app.roles.types import MappingReason, RoleMapping, RoleTemplate

logger = logging.getLogger(__name__)

# Minimum token overlap for a semantic match
MIN_SEMANTIC_SCORE = 1

# Hierarchy band used by the fallback when the template carries no hint
ORGANIZATION_ROLE_BANDS: dict[OrganizationRole, tuple[int, int]] = {
    OrganizationRole.OWNER: (80, 100),
    OrganizationRole.ADMIN: (80, 100),
    OrganizationRole.MEMBER: (40, 79),
    OrganizationRole.VIEWER: (1, 39),
}

# Mapping applied when no template is supplied
DEFAULT_PROJECT_ROLES: dict[OrganizationRole, str] = {
    OrganizationRole.OWNER: "ADMIN",
    OrganizationRole.ADMIN: "MANAGER",
    OrganizationRole.MEMBER: "PRODUCER",
    OrganizationRole.VIEWER: "GUEST",
}

# Seniority words and filler that say nothing about the kind of work
_IGNORED_TOKENS = frozenset(
    {
        "a", "an", "and", "the", "of", "for", "to", "in", "on", "with", "&",
        "senior", "sr", "junior", "jr", "lead", "head", "chief", "principal", "staff",
        "i", "ii", "iii",
    }
)  # fmt: skip

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


def tokenize(text: str) -> set[str]:
    """Lowercase word tokens with filler removed and a naive plural strip."""
    tokens: set[str] = set()
    for raw in _TOKEN_SPLIT.split(text.lower()):
        if not raw or raw in _IGNORED_TOKENS:
            continue
        if len(raw) > 3 and raw.endswith("s") and not raw.endswith("ss"):
            raw = raw[:-1]
        tokens.add(raw)
    return tokens


def _role_tokens(role: ProjectRole) -> frozenset[str]:
    tokens = tokenize(role.name.replace("_", " "))
    for phrase in role.responsibilities:
        tokens |= tokenize(phrase)
    return frozenset(tokens)


_ROLE_TOKENS: dict[str, frozenset[str]] = {
    role.name: _role_tokens(role) for role in PROJECT_ROLE_CATALOG
}
_DECLARATION_ORDER: dict[str, int] = {
    role.name: index for index, role in enumerate(PROJECT_ROLE_CATALOG)
}


def _closest(candidates: list[ProjectRole], target: int) -> ProjectRole:
    """Closest hierarchy to target; min() keeps the first declared role on ties."""
    return min(candidates, key=lambda role: abs(role.hierarchy - target))


def _direct_match(template: RoleTemplate) -> ProjectRole | None:
    if not template.name.strip():
        return None
    return PROJECT_ROLES.get(normalize_role_name(template.name))


def _semantic_match(template: RoleTemplate, org_role: OrganizationRole) -> ProjectRole | None:
    template_tokens = tokenize(template.name)
    for phrase in template.responsibilities:
        template_tokens |= tokenize(phrase)
    if not template_tokens:
        return None

    target = template.hierarchy_hint if template.hierarchy_hint is not None else org_role.hierarchy
    best: tuple[int, int, int] | None = None
    best_role: ProjectRole | None = None

    for role in PROJECT_ROLE_CATALOG:
        score = len(template_tokens & _ROLE_TOKENS[role.name])
        if score < MIN_SEMANTIC_SCORE:
            continue
        # Higher score first, then closer hierarchy, then declaration order
        key = (-score, abs(role.hierarchy - target), _DECLARATION_ORDER[role.name])
        if best is None or key < best:
            best = key
            best_role = role

    return best_role


def _hierarchy_fallback(template: RoleTemplate, org_role: OrganizationRole) -> ProjectRole:
    if template.hierarchy_hint is not None:
        return _closest(list(PROJECT_ROLE_CATALOG), template.hierarchy_hint)

    low, high = ORGANIZATION_ROLE_BANDS[org_role]
    band = [role for role in PROJECT_ROLE_CATALOG if low <= role.hierarchy <= high]
    return _closest(band or list(PROJECT_ROLE_CATALOG), org_role.hierarchy)


def _is_blank(template: RoleTemplate | None) -> bool:
    if template is None:
        return True
    return (
        not template.name.strip()
        and template.hierarchy_hint is None
        and not any(phrase.strip() for phrase in template.responsibilities)
    )


def resolve_project_role(
    org_role: "str | OrganizationRole",
    template: RoleTemplate | None = None,
) -> tuple[ProjectRole, MappingReason]:
    """
    Pick the project role for an organization role, before tier clamping.

    Returns the role and the strategy that produced it. Total: always returns
    a catalog role for a valid organization role.
    """
    role = parse_organization_role(org_role)

    if template is None or _is_blank(template):
        return PROJECT_ROLES[DEFAULT_PROJECT_ROLES[role]], MappingReason.DEFAULT_TABLE

    direct = _direct_match(template)
    if direct is not None:
        return direct, MappingReason.DIRECT_MATCH

    semantic = _semantic_match(template, role)
    if semantic is not None:
        return semantic, MappingReason.SEMANTIC_MATCH

    return _hierarchy_fallback(template, role), MappingReason.HIERARCHY_FALLBACK


def map_organization_role_to_project(
    org_role: "str | OrganizationRole",
    template: RoleTemplate | None,
    tier: "str | TierPolicy",
) -> RoleMapping:
    """
    Map an organization role (optionally refined by a template) to a full RoleMapping.

    Raises:
        UnknownRoleError: org_role is not one of owner/admin/member/viewer.
        ConfigurationError: tier is unknown.
    """
    role = parse_organization_role(org_role)
    policy = get_tier_policy(tier)

    resolved, reason = resolve_project_role(role, template)
    project_role = clamp_to_tier(resolved, policy)
    clamped_from = resolved.name if project_role.name != resolved.name else None
    if clamped_from:
        logger.debug(
            f"Clamped {resolved.name} ({resolved.hierarchy}) to {project_role.name} "
            f"({project_role.hierarchy}) under tier {policy.tier}"
        )

    effective = max(role.hierarchy, project_role.hierarchy)
    return RoleMapping(
        organization_role=role,
        project_role=project_role,
        effective_hierarchy=effective,
        permissions=compute_permissions(effective, policy),
        mapping_reason=reason,
        tier=policy.tier,
        clamped_from=clamped_from,
    )
