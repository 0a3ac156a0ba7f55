"""Role catalogs - organization roles and project roles with their hierarchy levels.

Both catalogs are configuration data. Hierarchy is an integer 1-100 where a
higher number means more privilege. Project roles are declared in order
(highest band first); declaration order is the tie-breaker wherever two roles
share a hierarchy, so reordering entries is a behavior change.
"""

import re
from dataclasses import dataclass
from enum import Enum

from app.roles.exceptions import ConfigurationError, UnknownRoleError
from app.roles.tiers import TIERS, validate_tiers


class OrganizationRole(str, Enum):
    """Role levels for organization (licensing) members."""

    OWNER = "owner"  # Full access, billing control, can delete org
    ADMIN = "admin"  # Full access, no billing control
    MEMBER = "member"  # Standard access
    VIEWER = "viewer"  # Read-only

    @property
    def hierarchy(self) -> int:
        return ORGANIZATION_ROLE_HIERARCHY[self]


# Hierarchy levels for organization member roles (higher = more privileges)
ORGANIZATION_ROLE_HIERARCHY: dict[OrganizationRole, int] = {
    OrganizationRole.OWNER: 100,
    OrganizationRole.ADMIN: 90,
    OrganizationRole.MEMBER: 50,
    OrganizationRole.VIEWER: 10,
}


@dataclass(frozen=True)
class ProjectRole:
    """A project (dashboard) role: production title, hierarchy and responsibility tags."""

    name: str
    hierarchy: int
    responsibilities: tuple[str, ...] = ()

    @property
    def display_name(self) -> str:
        return self.name.replace("_", " ").title()


def _role(name: str, hierarchy: int, *responsibilities: str) -> ProjectRole:
    return ProjectRole(name=name, hierarchy=hierarchy, responsibilities=responsibilities)


PROJECT_ROLE_CATALOG: tuple[ProjectRole, ...] = (
    # Management band (80-100)
    _role("ADMIN", 100, "administration", "system access", "user management", "billing"),
    _role("SUPERADMIN", 100, "platform administration", "all organizations"),
    _role("EXECUTIVE_PRODUCER", 90, "financing", "executive oversight", "greenlight"),
    _role("MANAGER", 80, "management", "team management", "scheduling", "operations"),
    _role("OPERATIONS_MANAGER", 80, "operations", "facilities", "vendor management"),
    # Production band (40-79)
    _role("PROJECT_MANAGER", 75, "project planning", "milestones", "coordination"),
    _role("IT_MANAGER", 75, "infrastructure", "it", "security"),
    _role("LINE_PRODUCER", 70, "budget", "crew hiring", "cost reports"),
    _role("DIRECTOR", 70, "direction", "creative vision", "performance", "blocking"),
    _role("CREATIVE_DIRECTOR", 70, "creative direction", "brand", "concept"),
    _role("SYSTEMS_ADMINISTRATOR", 70, "servers", "accounts", "backups"),
    _role("POST_PRODUCTION_SUPERVISOR", 70, "post production", "deliverables", "workflow"),
    _role("PRODUCER", 65, "producing", "production", "budget", "talent"),
    _role("DEVOPS_ENGINEER", 65, "deployment", "automation", "pipelines"),
    _role("DIRECTOR_OF_PHOTOGRAPHY", 65, "cinematography", "camera", "lighting"),
    _role("PRODUCTION_MANAGER", 60, "production logistics", "crew", "schedules"),
    _role("EDITOR", 60, "editing", "video", "cut", "timeline", "story"),
    _role("NETWORK_ENGINEER", 60, "networking", "connectivity", "bandwidth"),
    _role("ASSOCIATE_PRODUCER", 55, "production support", "research", "clearances"),
    _role("ASSISTANT_EDITOR", 55, "ingest", "media management", "sync dailies"),
    _role("ART_DIRECTOR", 55, "art direction", "set design", "props"),
    _role("SCRIPT_SUPERVISOR", 50, "continuity", "script notes"),
    _role("WRITER", 50, "writing", "script", "story development"),
    _role("LOCATION_MANAGER", 50, "locations", "permits", "scouting"),
    _role("CASTING_DIRECTOR", 50, "casting", "auditions", "talent"),
    _role("ACCOUNT_MANAGER", 45, "client relations", "accounts", "sales"),
    _role("PRODUCTION_COORDINATOR", 45, "coordination", "paperwork", "travel"),
    _role("POST_PRODUCTION_COORDINATOR", 45, "post production", "vendors", "deliveries"),
    # Support band (10-39, plus 40 entry level)
    _role("PRODUCTION_ASSISTANT", 40, "set support", "errands", "runner"),
    _role("BUSINESS_ANALYST", 40, "analysis", "reporting", "metrics"),
    _role("MEDIA_MANAGER", 40, "media", "archive", "storage"),
    _role("DIGITAL_IMAGING_TECHNICIAN", 40, "data wrangling", "camera media", "backups"),
    _role("GRAPHIC_DESIGNER", 35, "graphic design", "titles", "artwork"),
    _role("MOTION_GRAPHICS_ARTIST", 35, "motion graphics", "animation", "titles"),
    _role("AUDIO_ENGINEER", 35, "audio", "mixing", "recording"),
    _role("SOUND_DESIGNER", 35, "sound design", "foley", "effects"),
    _role("VFX_ARTIST", 35, "visual effects", "compositing", "vfx"),
    _role("COLORIST", 35, "color grading", "color correction", "finishing"),
    _role("CAMERA_OPERATOR", 35, "camera", "shooting", "coverage"),
    _role("GAFFER", 35, "lighting", "electrical"),
    _role("GRIP", 30, "rigging", "dollies"),
    _role("MAKEUP_ARTIST", 30, "makeup", "hair"),
    _role("WARDROBE_STYLIST", 30, "wardrobe", "costumes"),
    _role("TEAM_MEMBER", 30, "general contribution"),
    _role("TRANSCRIPTIONIST", 25, "transcription", "logging"),
    _role("CONTRACTOR", 20, "freelance", "contract work"),
    _role("INTERN", 20, "learning", "shadowing"),
    _role("USER", 20, "general access"),
    _role("CLIENT", 15, "client review", "feedback"),
    _role("REVIEWER", 15, "review", "notes"),
    _role("GUEST", 10, "read only", "guest access"),
)

PROJECT_ROLES: dict[str, ProjectRole] = {role.name: role for role in PROJECT_ROLE_CATALOG}

# Roles other modules refer to by name; validate_catalog() requires them
REQUIRED_PROJECT_ROLES: dict[str, int] = {
    "ADMIN": 100,
    "MANAGER": 80,
    "PRODUCER": 65,
    "EDITOR": 60,
    "ASSISTANT_EDITOR": 55,
    "PRODUCTION_ASSISTANT": 40,
    "GUEST": 10,
}

_NAME_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*$")


def normalize_role_name(name: str) -> str:
    """Normalize free text to catalog key form: 'assistant editor' -> 'ASSISTANT_EDITOR'."""
    return re.sub(r"[\s\-]+", "_", name.strip()).upper()


def parse_organization_role(role: "str | OrganizationRole") -> OrganizationRole:
    """Resolve an organization role from an enum or a case-insensitive string."""
    if isinstance(role, OrganizationRole):
        return role
    if isinstance(role, str):
        try:
            return OrganizationRole(role.strip().lower())
        except ValueError:
            pass
    raise UnknownRoleError(role, kind="organization role")


def get_project_role(role: "str | ProjectRole") -> ProjectRole:
    """Look up a project role by name (case-insensitive). Raises UnknownRoleError."""
    if isinstance(role, ProjectRole):
        catalog_role = PROJECT_ROLES.get(role.name)
        if catalog_role != role:
            raise UnknownRoleError(role.name, kind="project role")
        return role
    if isinstance(role, str):
        catalog_role = PROJECT_ROLES.get(normalize_role_name(role))
        if catalog_role is not None:
            return catalog_role
    raise UnknownRoleError(role, kind="project role")


def validate_catalog(catalog: tuple[ProjectRole, ...] = PROJECT_ROLE_CATALOG) -> None:
    """
    Validate the project role catalog and tier table.

    Called once at startup. Every problem found is a deployment bug, so this
    raises ConfigurationError instead of trying to repair the data.
    """
    validate_tiers()

    seen: set[str] = set()
    for role in catalog:
        if not _NAME_PATTERN.match(role.name):
            raise ConfigurationError(f"Malformed project role name '{role.name}'", key=role.name)
        if role.name in seen:
            raise ConfigurationError(f"Duplicate project role '{role.name}'", key=role.name)
        if not isinstance(role.hierarchy, int) or not 1 <= role.hierarchy <= 100:
            raise ConfigurationError(
                f"Project role '{role.name}' hierarchy {role.hierarchy!r} outside 1-100",
                key=role.name,
            )
        seen.add(role.name)

    by_name = {role.name: role for role in catalog}
    for name, hierarchy in REQUIRED_PROJECT_ROLES.items():
        if name not in by_name:
            raise ConfigurationError(f"Required project role '{name}' missing", key=name)
        if by_name[name].hierarchy != hierarchy:
            raise ConfigurationError(
                f"Project role '{name}' must have hierarchy {hierarchy}",
                key=name,
            )

    for policy in TIERS.values():
        if not any(role.hierarchy <= policy.max_hierarchy for role in catalog):
            raise ConfigurationError(
                f"No project role fits under tier '{policy.tier}' ceiling "
                f"{policy.max_hierarchy}",
                key=policy.tier,
            )
