"""Domain operations for SyncEvent and the applied-event ledger."""

import uuid as uuid_pkg
from collections.abc import Collection
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.sync_event import (
    AppliedSyncEvent,
    SourceContext,
    SyncEvent,
    SyncEventStatus,
    SyncEventType,
)


class SyncEventOperations:
    """Queue and audit-log operations for cross-context sync events."""

    async def create(
        self,
        db: AsyncSession,
        event_type: SyncEventType,
        source_context: SourceContext,
        organization_id: uuid_pkg.UUID,
        project_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
        payload: dict[str, Any],
    ) -> SyncEvent:
        """Insert a PENDING event in the caller's transaction."""
        event = SyncEvent(
            event_type=event_type.value,
            source_context=source_context.value,
            organization_id=organization_id,
            project_id=project_id,
            user_id=user_id,
            payload=payload,
        )
        db.add(event)
        await db.flush()
        return event

    async def get_in_org(
        self,
        db: AsyncSession,
        organization_id: uuid_pkg.UUID,
        event_id: uuid_pkg.UUID,
    ) -> SyncEvent | None:
        """Get an event only if it belongs to the organization."""
        statement = select(SyncEvent).where(
            SyncEvent.id == event_id,
            SyncEvent.organization_id == organization_id,
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def list_by_org(
        self,
        db: AsyncSession,
        organization_id: uuid_pkg.UUID,
        status: SyncEventStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[SyncEvent]:
        """Audit view: events for an organization, newest first."""
        statement = select(SyncEvent).where(SyncEvent.organization_id == organization_id)
        if status is not None:
            statement = statement.where(SyncEvent.status == status.value)
        statement = (
            statement.order_by(SyncEvent.created_at.desc(), SyncEvent.id)  # type: ignore[attr-defined]
            .offset(offset)
            .limit(limit)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def claim_pending_batch(
        self,
        db: AsyncSession,
        limit: int,
        now: datetime | None = None,
    ) -> list[SyncEvent]:
        """
        Claim up to `limit` due PENDING events and mark them PROCESSING.

        Uses FOR UPDATE SKIP LOCKED so concurrent drains never claim the same
        row. The caller commits to make the claim visible.
        """
        now = now or datetime.now(UTC)
        statement = (
            select(SyncEvent)
            .where(
                SyncEvent.status == SyncEventStatus.PENDING.value,
                SyncEvent.next_attempt_at <= now,
            )
            .order_by(SyncEvent.created_at, SyncEvent.id)  # type: ignore[arg-type]
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        result = await db.execute(statement)
        events = list(result.scalars().all())
        for event in events:
            event.status = SyncEventStatus.PROCESSING.value
            event.claimed_at = now
            db.add(event)
        await db.flush()
        return events

    async def lock_pending_for_pair(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID,
        project_id: uuid_pkg.UUID,
        claimed_ids: Collection[uuid_pkg.UUID],
    ) -> list[SyncEvent]:
        """
        Lock every undelivered event for (user, project).

        Includes all PENDING events for the pair (whether or not they are due)
        plus the PROCESSING events this drain claimed.
        """
        statement = (
            select(SyncEvent)
            .where(
                SyncEvent.user_id == user_id,
                SyncEvent.project_id == project_id,
                or_(
                    SyncEvent.status == SyncEventStatus.PENDING.value,
                    SyncEvent.id.in_(list(claimed_ids)),  # type: ignore[attr-defined]
                ),
            )
            .order_by(SyncEvent.created_at, SyncEvent.id)  # type: ignore[arg-type]
            .with_for_update()
        )
        result = await db.execute(statement)
        return [
            event
            for event in result.scalars().all()
            if event.status in (SyncEventStatus.PENDING.value, SyncEventStatus.PROCESSING.value)
        ]

    async def release_stale_claims(
        self,
        db: AsyncSession,
        claimed_before: datetime,
    ) -> int:
        """Move PROCESSING events claimed before the cutoff back to PENDING."""
        statement = (
            update(SyncEvent)
            .where(
                SyncEvent.status == SyncEventStatus.PROCESSING.value,
                SyncEvent.claimed_at < claimed_before,  # type: ignore[operator]
            )
            .values(status=SyncEventStatus.PENDING.value, claimed_at=None)
        )
        result = await db.execute(statement)
        return result.rowcount or 0  # type: ignore[attr-defined]

    async def release_claims(
        self,
        db: AsyncSession,
        event_ids: Collection[uuid_pkg.UUID],
    ) -> int:
        """Return still-PROCESSING events to PENDING (used on shutdown)."""
        if not event_ids:
            return 0
        statement = (
            update(SyncEvent)
            .where(
                SyncEvent.id.in_(list(event_ids)),  # type: ignore[attr-defined]
                SyncEvent.status == SyncEventStatus.PROCESSING.value,
            )
            .values(status=SyncEventStatus.PENDING.value, claimed_at=None)
        )
        result = await db.execute(statement)
        return result.rowcount or 0  # type: ignore[attr-defined]

    async def retry(self, db: AsyncSession, event: SyncEvent) -> SyncEvent:
        """
        Move a FAILED event back to PENDING with a fresh attempt budget.

        last_error is kept for the audit trail until the next delivery.

        Raises:
            ValueError: event is not FAILED.
        """
        if event.status != SyncEventStatus.FAILED.value:
            raise ValueError(f"Only FAILED events can be retried (status is {event.status})")
        event.status = SyncEventStatus.PENDING.value
        event.attempt = 0
        event.next_attempt_at = datetime.now(UTC)
        event.claimed_at = None
        db.add(event)
        await db.flush()
        await db.refresh(event)
        return event

    async def is_applied(
        self,
        db: AsyncSession,
        event_id: uuid_pkg.UUID,
        target_context: SourceContext,
    ) -> bool:
        """Check the idempotency ledger."""
        statement = select(AppliedSyncEvent.event_id).where(
            AppliedSyncEvent.event_id == event_id,
            AppliedSyncEvent.target_context == target_context.value,
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none() is not None

    async def record_applied(
        self,
        db: AsyncSession,
        event_id: uuid_pkg.UUID,
        target_context: SourceContext,
    ) -> None:
        """Write the ledger entry; must share the transaction of the target mutation."""
        db.add(AppliedSyncEvent(event_id=event_id, target_context=target_context.value))
        await db.flush()


sync_event_ops = SyncEventOperations()
