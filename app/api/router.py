from fastapi import APIRouter

from app.api.v1 import assignments, claims, internal, roles, sync_events

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(roles.router)
api_router.include_router(assignments.router)
api_router.include_router(sync_events.router)
api_router.include_router(claims.router)
api_router.include_router(internal.router)
