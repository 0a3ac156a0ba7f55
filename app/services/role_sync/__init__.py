"""Cross-context role synchronization (licensing <-> dashboard)."""

from app.services.role_sync.conflicts import ConflictResolution, resolve_conflicts
from app.services.role_sync.synchronizer import (
    RoleSynchronizer,
    SyncReport,
    retry_delay,
    role_synchronizer,
)

__all__ = [
    "ConflictResolution",
    "RoleSynchronizer",
    "SyncReport",
    "resolve_conflicts",
    "retry_delay",
    "role_synchronizer",
]
