# Services package

from app.services.assignments import role_assignment_service, role_mapping_cache
from app.services.claims_publisher import publish_claims
from app.services.role_sync import role_synchronizer

__all__ = [
    # Assignments
    "role_assignment_service",
    "role_mapping_cache",
    "publish_claims",
    # Cross-context sync
    "role_synchronizer",
]
