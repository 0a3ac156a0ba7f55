"""Unit tests for SyncEventOperations: queue claiming, retry and the applied ledger."""

import uuid
from datetime import UTC, datetime

import pytest

from app.domain.sync_event_operations import SyncEventOperations
from app.models.sync_event import (
    AppliedSyncEvent,
    SourceContext,
    SyncEventStatus,
    SyncEventType,
)

from tests.helpers.mock_factories import (
    make_mock_db,
    make_sync_event,
    mock_scalar_result,
    mock_scalars_result,
)


class TestCreate:
    def setup_method(self):
        self.ops = SyncEventOperations()
        self.db = make_mock_db()

    @pytest.mark.asyncio
    async def test_creates_pending_event(self):
        org_id, project_id, user_id = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

        event = await self.ops.create(
            self.db,
            event_type=SyncEventType.ROLE_ASSIGNED,
            source_context=SourceContext.DASHBOARD,
            organization_id=org_id,
            project_id=project_id,
            user_id=user_id,
            payload={"tier": "PRO"},
        )

        assert event.status == SyncEventStatus.PENDING.value
        assert event.event_type == "ROLE_ASSIGNED"
        assert event.source_context == "dashboard"
        assert event.target_context is SourceContext.LICENSING
        assert event.attempt == 0
        self.db.add.assert_called_once_with(event)
        self.db.flush.assert_awaited_once()
        self.db.commit.assert_not_awaited()


class TestClaimAndLock:
    def setup_method(self):
        self.ops = SyncEventOperations()
        self.db = make_mock_db()

    @pytest.mark.asyncio
    async def test_claim_marks_processing(self):
        events = [make_sync_event(status=SyncEventStatus.PENDING) for _ in range(2)]
        self.db.execute.return_value = mock_scalars_result(events)
        now = datetime(2026, 3, 1, tzinfo=UTC)

        claimed = await self.ops.claim_pending_batch(self.db, limit=10, now=now)

        assert claimed == events
        assert all(e.status == SyncEventStatus.PROCESSING.value for e in claimed)
        assert all(e.claimed_at == now for e in claimed)

    @pytest.mark.asyncio
    async def test_claim_nothing_due(self):
        self.db.execute.return_value = mock_scalars_result([])
        assert await self.ops.claim_pending_batch(self.db, limit=10) == []

    @pytest.mark.asyncio
    async def test_lock_drops_finished_events(self):
        pending = make_sync_event(status=SyncEventStatus.PENDING)
        processing = make_sync_event(status=SyncEventStatus.PROCESSING)
        done = make_sync_event(status=SyncEventStatus.COMPLETED)
        self.db.execute.return_value = mock_scalars_result([pending, processing, done])

        locked = await self.ops.lock_pending_for_pair(
            self.db, uuid.uuid4(), uuid.uuid4(), [processing.id, done.id]
        )

        assert locked == [pending, processing]


class TestReleaseClaims:
    def setup_method(self):
        self.ops = SyncEventOperations()
        self.db = make_mock_db()

    @pytest.mark.asyncio
    async def test_empty_ids_skip_query(self):
        assert await self.ops.release_claims(self.db, []) == 0
        self.db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_returns_rowcount(self):
        result = mock_scalar_result(None)
        result.rowcount = 2
        self.db.execute.return_value = result

        assert await self.ops.release_claims(self.db, [uuid.uuid4(), uuid.uuid4()]) == 2

    @pytest.mark.asyncio
    async def test_release_stale_claims(self):
        result = mock_scalar_result(None)
        result.rowcount = 0
        self.db.execute.return_value = result

        assert await self.ops.release_stale_claims(self.db, datetime.now(UTC)) == 0


class TestRetry:
    def setup_method(self):
        self.ops = SyncEventOperations()
        self.db = make_mock_db()

    @pytest.mark.asyncio
    async def test_requeues_failed_event(self):
        event = make_sync_event(
            status=SyncEventStatus.FAILED, attempt=5, last_error="SyncTransientError: down"
        )

        result = await self.ops.retry(self.db, event)

        assert result.status == SyncEventStatus.PENDING.value
        assert result.attempt == 0
        assert result.claimed_at is None
        # Kept for the audit trail
        assert result.last_error == "SyncTransientError: down"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [SyncEventStatus.PENDING, SyncEventStatus.PROCESSING, SyncEventStatus.COMPLETED],
    )
    async def test_rejects_non_failed(self, status):
        with pytest.raises(ValueError, match="Only FAILED"):
            await self.ops.retry(self.db, make_sync_event(status=status))
        self.db.flush.assert_not_awaited()


class TestAppliedLedger:
    def setup_method(self):
        self.ops = SyncEventOperations()
        self.db = make_mock_db()

    @pytest.mark.asyncio
    async def test_is_applied(self):
        event_id = uuid.uuid4()
        self.db.execute.return_value = mock_scalar_result(event_id)
        assert await self.ops.is_applied(self.db, event_id, SourceContext.DASHBOARD) is True

        self.db.execute.return_value = mock_scalar_result(None)
        assert await self.ops.is_applied(self.db, event_id, SourceContext.DASHBOARD) is False

    @pytest.mark.asyncio
    async def test_record_applied(self):
        event_id = uuid.uuid4()

        await self.ops.record_applied(self.db, event_id, SourceContext.LICENSING)

        row = self.db.add.call_args.args[0]
        assert isinstance(row, AppliedSyncEvent)
        assert row.event_id == event_id
        assert row.target_context == "licensing"
        self.db.flush.assert_awaited_once()
