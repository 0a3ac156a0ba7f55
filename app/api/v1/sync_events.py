"""Sync event audit view and operator retry."""

import logging
import uuid as uuid_pkg

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import PolicyGate, get_db_with_rls, get_organization
from app.core.access_policy import Action
from app.core.database import get_db
from app.core.exceptions import ConflictError, NotFoundError
from app.domain.sync_event_operations import sync_event_ops
from app.models.organization import Organization
from app.models.sync_event import SyncEventRead, SyncEventStatus
from app.roles.claims import RoleClaims

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations/{org_id}/sync-events", tags=["sync-events"])


@router.get("", response_model=list[SyncEventRead])
async def list_sync_events(
    org_id: uuid_pkg.UUID,
    status: SyncEventStatus | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    _claims: RoleClaims = Depends(PolicyGate("sync_events", Action.READ)),
    db: AsyncSession = Depends(get_db_with_rls),
    organization: Organization = Depends(get_organization),
) -> list[SyncEventRead]:
    """List sync events for the organization, newest first."""
    events = await sync_event_ops.list_by_org(
        db, organization.id, status=status, limit=limit, offset=offset
    )
    return [SyncEventRead.model_validate(event, from_attributes=True) for event in events]


@router.post("/{event_id}/retry", response_model=SyncEventRead)
async def retry_sync_event(
    org_id: uuid_pkg.UUID,
    event_id: uuid_pkg.UUID,
    _claims: RoleClaims = Depends(PolicyGate("sync_events", Action.WRITE)),
    organization: Organization = Depends(get_organization),
    db: AsyncSession = Depends(get_db),
) -> SyncEventRead:
    """Move a FAILED event back to PENDING so the next drain delivers it."""
    event = await sync_event_ops.get_in_org(db, organization.id, event_id)
    if event is None:
        raise NotFoundError("Sync event")

    try:
        event = await sync_event_ops.retry(db, event)
    except ValueError as e:
        raise ConflictError(str(e)) from None

    logger.info(f"[role-sync] Event {event_id} requeued by operator")
    return SyncEventRead.model_validate(event, from_attributes=True)
