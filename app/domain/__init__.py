from app.domain.org_member_operations import org_member_ops
from app.domain.organization_operations import organization_ops
from app.domain.project_operations import project_member_ops, project_ops
from app.domain.role_assignment_operations import role_assignment_ops
from app.domain.sync_event_operations import sync_event_ops
from app.domain.user_operations import user_ops

__all__ = [
    "user_ops",
    "organization_ops",
    "org_member_ops",
    "project_ops",
    "project_member_ops",
    "role_assignment_ops",
    "sync_event_ops",
]
