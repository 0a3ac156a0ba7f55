from app.api.v1 import assignments, claims, internal, roles, sync_events

__all__ = [
    "roles",
    "assignments",
    "sync_events",
    "claims",
    "internal",
]
