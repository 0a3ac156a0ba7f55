from app.models.organization import Organization, OrganizationMember
from app.models.project import Project, ProjectMember
from app.models.role_assignment import (
    RoleAssignment,
    RoleAssignmentRead,
    RoleAssignmentUpdate,
    RoleMappingRead,
    RoleResolveRequest,
    RoleTemplateIn,
    TierUpdate,
)
from app.models.sync_event import (
    AppliedSyncEvent,
    SourceContext,
    SyncEvent,
    SyncEventRead,
    SyncEventStatus,
    SyncEventType,
)
from app.models.user import User

__all__ = [
    "User",
    "Organization",
    "OrganizationMember",
    "Project",
    "ProjectMember",
    "RoleAssignment",
    "RoleAssignmentRead",
    "RoleAssignmentUpdate",
    "RoleMappingRead",
    "RoleResolveRequest",
    "RoleTemplateIn",
    "TierUpdate",
    "SyncEvent",
    "SyncEventRead",
    "SyncEventStatus",
    "SyncEventType",
    "SourceContext",
    "AppliedSyncEvent",
]
