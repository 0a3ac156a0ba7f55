"""Role assignment services - mapping persistence, cache and claims."""

from app.services.assignments.cache import RoleMappingCache, role_mapping_cache
from app.services.assignments.service import (
    AssignmentNotFoundError,
    AssignmentResult,
    MembershipNotFoundError,
    RoleAssignmentService,
    build_template,
    compute_role_mapping,
    role_assignment_service,
)

__all__ = [
    "AssignmentNotFoundError",
    "AssignmentResult",
    "MembershipNotFoundError",
    "RoleAssignmentService",
    "RoleMappingCache",
    "build_template",
    "compute_role_mapping",
    "role_assignment_service",
    "role_mapping_cache",
]
