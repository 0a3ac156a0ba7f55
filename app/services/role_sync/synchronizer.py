"""
Cross-context role synchronizer.

Drains PENDING sync events and delivers each one to the opposite context of
its source. Delivery is two-phase:

1. Claim: up to `sync_batch_size` due events are locked with SKIP LOCKED,
   marked PROCESSING and committed.
2. Deliver: per (user, project) pair, every undelivered event is locked and
   coalesced (see conflicts.py). The winner is applied to the target, the
   idempotency ledger row is written and all statuses move forward, in one
   transaction. Losers become COMPLETED with `superseded_by` set. When the
   winner superseded anything, its mapping is also written back to its source
   context and the stored assignment so both contexts end up equal.

A failed apply rolls the delivery transaction back and records the failure in
a separate one: transient errors go back to PENDING with exponential backoff
until `sync_max_attempts`, permanent errors go straight to FAILED.

Only the background worker (scheduler job or internal drain endpoint) calls
process_queue(); request handlers only enqueue.
"""

import asyncio
import logging
import time
import uuid as uuid_pkg
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.core.database import async_session_maker
from app.domain.role_assignment_operations import role_assignment_ops
from app.domain.sync_event_operations import sync_event_ops
from app.models.sync_event import (
    SourceContext,
    SyncEvent,
    SyncEventStatus,
    SyncEventType,
)
from app.roles.exceptions import (
    RoleEngineError,
    SyncPermanentError,
    SyncTransientError,
)
from app.roles.types import RoleMapping
from app.services.role_sync.conflicts import resolve_conflicts
from app.services.role_sync.targets import write_context

logger = logging.getLogger(__name__)

Pair = tuple[uuid_pkg.UUID, uuid_pkg.UUID]


@dataclass
class SyncReport:
    """Summary of one process_queue() call."""

    claimed: int = 0
    applied: int = 0
    duplicates: int = 0  # Winner was already in the ledger
    superseded: int = 0
    retried: int = 0
    failed: int = 0
    released: int = 0  # Stale PROCESSING claims returned to PENDING
    batches: int = 0
    skipped: bool = False
    duration_seconds: float = 0.0


def retry_delay(attempt: int) -> float:
    """Backoff before the next attempt: base * 2^(attempt-1), capped."""
    delay = settings.sync_backoff_base_seconds * (2 ** max(attempt - 1, 0))
    return min(delay, settings.sync_backoff_max_seconds)


def parse_payload(event: SyncEvent) -> RoleMapping:
    """
    Rebuild the event's RoleMapping.

    Raises:
        SyncPermanentError: the payload is malformed or references unknown roles/tiers.
    """
    try:
        return RoleMapping.from_payload(event.payload)
    except (KeyError, TypeError, ValueError, RoleEngineError) as e:
        raise SyncPermanentError(f"Malformed payload for event {event.id}: {e!r}") from e


def _is_transient(error: BaseException) -> bool:
    if isinstance(error, SyncTransientError | TimeoutError | OSError | OperationalError):
        return True
    return isinstance(error, DBAPIError) and error.connection_invalidated


def _invalidate_cached_mapping(user_id: uuid_pkg.UUID, project_id: uuid_pkg.UUID) -> None:
    # Imported here: the assignments package imports this module
    from app.services.assignments.cache import role_mapping_cache

    role_mapping_cache.invalidate(user_id, project_id)


class RoleSynchronizer:
    """Single-flight drain of the sync event queue."""

    def __init__(self, session_maker: Callable[[], Any] = async_session_maker):
        self._session_maker = session_maker
        self._drain_lock = asyncio.Lock()
        self._idle = asyncio.Event()
        self._idle.set()
        self._stopping = False

    async def enqueue(
        self,
        db: AsyncSession,
        event_type: SyncEventType,
        source_context: SourceContext,
        organization_id: uuid_pkg.UUID,
        project_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
        payload: dict[str, Any],
    ) -> SyncEvent:
        """Insert a PENDING event in the caller's transaction (never commits)."""
        return await sync_event_ops.create(
            db,
            event_type=event_type,
            source_context=source_context,
            organization_id=organization_id,
            project_id=project_id,
            user_id=user_id,
            payload=payload,
        )

    @property
    def is_draining(self) -> bool:
        return self._drain_lock.locked()

    def request_stop(self) -> None:
        """Stop claiming new batches; the in-flight batch is allowed to finish."""
        self._stopping = True
        logger.info("[role-sync] Stop requested")

    def resume(self) -> None:
        self._stopping = False

    async def wait_idle(self, timeout: float | None = None) -> bool:
        """Wait for an in-flight drain to finish. Returns False on timeout."""
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    async def process_queue(self) -> SyncReport:
        """
        Drain up to `sync_max_batches_per_cycle` batches.

        Returns immediately with skipped=True if a drain is already running in
        this process or a stop was requested.
        """
        if self._stopping or self._drain_lock.locked():
            return SyncReport(skipped=True)

        async with self._drain_lock:
            self._idle.clear()
            start = time.monotonic()
            report = SyncReport()
            try:
                report.released = await self._release_stale_claims()
                for _ in range(settings.sync_max_batches_per_cycle):
                    if self._stopping:
                        logger.info("[role-sync] Stopping before next batch")
                        break
                    claimed = await self._process_batch(report)
                    if claimed < settings.sync_batch_size:
                        break
            finally:
                report.duration_seconds = round(time.monotonic() - start, 3)
                self._idle.set()

        if report.claimed or report.released:
            logger.info(
                f"[role-sync] Drain complete: {report.claimed} claimed, "
                f"{report.applied} applied, {report.superseded} superseded, "
                f"{report.retried} retried, {report.failed} failed "
                f"({report.duration_seconds}s)"
            )
        return report

    async def _release_stale_claims(self) -> int:
        cutoff = datetime.now(UTC) - timedelta(seconds=settings.sync_claim_timeout_seconds)
        async with self._session_maker() as db:
            released = await sync_event_ops.release_stale_claims(db, cutoff)
            await db.commit()
        if released:
            logger.warning(f"[role-sync] Released {released} stale PROCESSING events")
        return released

    async def _process_batch(self, report: SyncReport) -> int:
        """Claim one batch and deliver it pair by pair. Returns the number claimed."""
        async with self._session_maker() as db:
            events = await sync_event_ops.claim_pending_batch(db, settings.sync_batch_size)
            await db.commit()

        if not events:
            return 0

        report.batches += 1
        report.claimed += len(events)

        pairs: dict[Pair, list[uuid_pkg.UUID]] = {}
        for event in events:
            pairs.setdefault((event.user_id, event.project_id), []).append(event.id)

        for (user_id, project_id), claimed_ids in pairs.items():
            await self._deliver_pair(user_id, project_id, claimed_ids, report)

        return len(events)

    async def _deliver_pair(
        self,
        user_id: uuid_pkg.UUID,
        project_id: uuid_pkg.UUID,
        claimed_ids: list[uuid_pkg.UUID],
        report: SyncReport,
    ) -> None:
        winner: SyncEvent | None = None
        try:
            async with self._session_maker() as db:
                events = await sync_event_ops.lock_pending_for_pair(
                    db, user_id, project_id, claimed_ids
                )
                if not events:
                    await db.rollback()
                    return

                resolution = resolve_conflicts(events)
                winner = resolution.winner
                now = datetime.now(UTC)

                applied = await asyncio.wait_for(
                    self._apply(db, winner, converge=bool(resolution.superseded)),
                    timeout=settings.sync_apply_timeout_seconds,
                )

                winner.status = SyncEventStatus.COMPLETED.value
                winner.attempt += 1
                winner.completed_at = now
                winner.claimed_at = None
                winner.last_error = None
                db.add(winner)
                for loser in resolution.superseded:
                    loser.status = SyncEventStatus.COMPLETED.value
                    loser.superseded_by = winner.id
                    loser.completed_at = now
                    loser.claimed_at = None
                    db.add(loser)
                await db.commit()

            if applied:
                report.applied += 1
                if resolution.superseded:
                    _invalidate_cached_mapping(user_id, project_id)
            else:
                report.duplicates += 1
            report.superseded += len(resolution.superseded)
            if resolution.superseded:
                logger.info(
                    f"[role-sync] {user_id}/{project_id}: applied {winner.id}, "
                    f"superseded {len(resolution.superseded)}"
                )
        except Exception as e:
            await self._record_failure(winner, claimed_ids, e, report)

    async def _apply(self, db: AsyncSession, event: SyncEvent, converge: bool = False) -> bool:
        """
        Apply one event to its target context. Returns False if already applied.

        The ledger check and ledger write share the caller's transaction with
        the mutation, so a redelivered event is a no-op. With converge=True
        (the winner superseded other events) the winner is also written back to
        its own source context and the stored assignment, since a superseded
        event may have left either of them holding the losing mapping.
        """
        target = event.target_context
        if await sync_event_ops.is_applied(db, event.id, target):
            logger.debug(f"[role-sync] Event {event.id} already applied to {target.value}")
            return False

        mapping = None if event.is_removal else parse_payload(event)
        contexts = [target, target.opposite] if converge else [target]
        for context in contexts:
            await write_context(
                db,
                context,
                event.organization_id,
                event.project_id,
                event.user_id,
                mapping,
                sync_event_id=event.id,
            )
        if converge:
            await self._store_assignment(db, event, mapping)
        await sync_event_ops.record_applied(db, event.id, target)
        return True

    async def _store_assignment(
        self,
        db: AsyncSession,
        event: SyncEvent,
        mapping: RoleMapping | None,
    ) -> None:
        assignment = await role_assignment_ops.get(
            db, event.user_id, event.project_id, for_update=True
        )
        if mapping is None:
            if assignment is not None:
                await role_assignment_ops.delete(db, assignment)
            return
        await role_assignment_ops.upsert(
            db,
            organization_id=event.organization_id,
            project_id=event.project_id,
            user_id=event.user_id,
            mapping=mapping,
            template=assignment.template if assignment is not None else None,
            source_context=event.source_context,
        )

    async def _record_failure(
        self,
        winner: SyncEvent | None,
        claimed_ids: list[uuid_pkg.UUID],
        error: Exception,
        report: SyncReport,
    ) -> None:
        """Persist a failed delivery in a fresh transaction."""
        permanent = isinstance(error, SyncPermanentError)
        transient = _is_transient(error)
        if not permanent and not transient:
            logger.exception(f"[role-sync] Unexpected error delivering events {claimed_ids}: {error}")

        try:
            async with self._session_maker() as db:
                if winner is not None:
                    event = await db.get(SyncEvent, winner.id)
                    if event is not None:
                        self._mark_failed_attempt(event, error, permanent, report)
                        db.add(event)
                # Other claimed events in the pair go back to the queue untouched
                await sync_event_ops.release_claims(
                    db, [i for i in claimed_ids if winner is None or i != winner.id]
                )
                await db.commit()
        except Exception as e:
            # Stale-claim release recovers these rows on a later drain
            logger.exception(f"[role-sync] Could not record failure for {claimed_ids}: {e}")

    def _mark_failed_attempt(
        self,
        event: SyncEvent,
        error: Exception,
        permanent: bool,
        report: SyncReport,
    ) -> None:
        event.attempt += 1
        event.last_error = f"{type(error).__name__}: {error}"[:2000]
        event.claimed_at = None

        if permanent or event.attempt >= settings.sync_max_attempts:
            event.status = SyncEventStatus.FAILED.value
            report.failed += 1
            logger.error(
                f"[role-sync] Event {event.id} FAILED after {event.attempt} attempt(s): "
                f"{event.last_error}"
            )
            return

        delay = retry_delay(event.attempt)
        event.status = SyncEventStatus.PENDING.value
        event.next_attempt_at = datetime.now(UTC) + timedelta(seconds=delay)
        report.retried += 1
        logger.warning(
            f"[role-sync] Event {event.id} attempt {event.attempt} failed, "
            f"retrying in {delay:.0f}s: {event.last_error}"
        )


role_synchronizer = RoleSynchronizer()
