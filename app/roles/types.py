"""
Role engine data types.

Immutable value objects passed between the bridge, the tier validator, the
permission calculator and the synchronizer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from app.roles.catalog import (
    OrganizationRole,
    ProjectRole,
    get_project_role,
    parse_organization_role,
)
from app.roles.permissions import PermissionSet, compute_permissions
from app.roles.tiers import get_tier_policy


class MappingReason(str, Enum):
    """Which bridge strategy produced the project role."""

    DIRECT_MATCH = "direct_match"
    SEMANTIC_MATCH = "semantic_match"
    HIERARCHY_FALLBACK = "hierarchy_fallback"
    DEFAULT_TABLE = "default_table"


@dataclass(frozen=True)
class RoleTemplate:
    """Free-text industry title used as a hint when mapping an organization role."""

    name: str
    hierarchy_hint: int | None = None
    responsibilities: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str):
            raise ValueError("Template name must be a string")
        if self.hierarchy_hint is not None:
            hint = self.hierarchy_hint
            if isinstance(hint, bool) or not isinstance(hint, int) or not 0 <= hint <= 100:
                raise ValueError(f"hierarchy_hint {hint!r} must be an int in 0-100")
        # Accept lists from callers while keeping the dataclass hashable
        object.__setattr__(self, "responsibilities", tuple(self.responsibilities))


@dataclass(frozen=True)
class RoleMapping:
    """
    Result of bridging an organization role onto a project role.

    Invariants: effective_hierarchy == max(organization_role.hierarchy,
    project_role.hierarchy), and project_role.hierarchy never exceeds the
    tier ceiling. Construction fails if either does not hold, so a mapping
    read back from storage is verified before use.
    """

    organization_role: OrganizationRole
    project_role: ProjectRole
    effective_hierarchy: int
    permissions: PermissionSet
    mapping_reason: MappingReason
    tier: str
    clamped_from: str | None = None  # Project role name before the tier ceiling applied

    def __post_init__(self) -> None:
        expected = max(self.organization_role.hierarchy, self.project_role.hierarchy)
        if self.effective_hierarchy != expected:
            raise ValueError(
                f"effective_hierarchy {self.effective_hierarchy} != {expected} "
                f"for {self.organization_role.value}/{self.project_role.name}"
            )
        if self.permissions.hierarchy_level != self.effective_hierarchy:
            raise ValueError("Permission set was derived from a different hierarchy")
        ceiling = get_tier_policy(self.tier).max_hierarchy
        if self.project_role.hierarchy > ceiling:
            raise ValueError(
                f"Project role {self.project_role.name} ({self.project_role.hierarchy}) "
                f"exceeds the {self.tier} ceiling of {ceiling}"
            )

    @property
    def was_clamped(self) -> bool:
        return self.clamped_from is not None

    def to_payload(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dict (SyncEvent payload, API responses)."""
        return {
            "organization_role": self.organization_role.value,
            "organization_hierarchy": self.organization_role.hierarchy,
            "project_role": self.project_role.name,
            "project_hierarchy": self.project_role.hierarchy,
            "effective_hierarchy": self.effective_hierarchy,
            "permissions": self.permissions.enabled(),
            "mapping_reason": self.mapping_reason.value,
            "tier": self.tier,
            "clamped_from": self.clamped_from,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RoleMapping":
        """
        Rebuild a mapping from a stored payload.

        Permissions are recomputed from (effective_hierarchy, tier) rather than
        trusted from the payload.

        Raises:
            KeyError / ValueError / TypeError: payload is malformed.
            UnknownRoleError / ConfigurationError: payload references unknown roles or tier.
        """
        tier = get_tier_policy(payload["tier"]).tier
        organization_role = parse_organization_role(payload["organization_role"])
        project_role = get_project_role(payload["project_role"])
        effective = payload["effective_hierarchy"]
        return cls(
            organization_role=organization_role,
            project_role=project_role,
            effective_hierarchy=effective,
            permissions=compute_permissions(effective, tier),
            mapping_reason=MappingReason(payload["mapping_reason"]),
            tier=tier,
            clamped_from=payload.get("clamped_from"),
        )
