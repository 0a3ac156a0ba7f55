"""Unit tests for the context writers used by assignments and the synchronizer."""

import uuid
from unittest.mock import AsyncMock, patch

import pytest

from app.models.sync_event import SourceContext
from app.roles.exceptions import SyncPermanentError
from app.services.role_sync.targets import (
    licensing_entry,
    write_context,
    write_dashboard,
    write_licensing,
)

from tests.helpers.mock_factories import (
    make_mapping,
    make_mock_db,
    make_mock_org_member,
    make_mock_project,
)

TARGETS = "app.services.role_sync.targets"


class TestWriteDashboard:
    def setup_method(self):
        self.db = make_mock_db()
        self.org_id = uuid.uuid4()
        self.project_id = uuid.uuid4()
        self.user_id = uuid.uuid4()

    @pytest.mark.asyncio
    async def test_upserts_membership(self):
        mapping = make_mapping("member", project_role="EDITOR")
        event_id = uuid.uuid4()
        with (
            patch(f"{TARGETS}.project_ops") as mock_projects,
            patch(f"{TARGETS}.project_member_ops") as mock_members,
        ):
            mock_projects.get_in_org = AsyncMock(return_value=make_mock_project())
            mock_members.upsert_from_mapping = AsyncMock()

            await write_dashboard(
                self.db, self.org_id, self.project_id, self.user_id, mapping, event_id
            )

            mock_members.upsert_from_mapping.assert_awaited_once_with(
                self.db, self.project_id, self.user_id, mapping, event_id
            )

    @pytest.mark.asyncio
    async def test_missing_project_is_permanent(self):
        with (
            patch(f"{TARGETS}.project_ops") as mock_projects,
            patch(f"{TARGETS}.project_member_ops") as mock_members,
        ):
            mock_projects.get_in_org = AsyncMock(return_value=None)
            mock_members.upsert_from_mapping = AsyncMock()

            with pytest.raises(SyncPermanentError):
                await write_dashboard(
                    self.db, self.org_id, self.project_id, self.user_id, make_mapping()
                )
            mock_members.upsert_from_mapping.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_removal_deletes_membership(self):
        with patch(f"{TARGETS}.project_member_ops") as mock_members:
            mock_members.remove = AsyncMock(return_value=False)

            await write_dashboard(self.db, self.org_id, self.project_id, self.user_id, None)

            mock_members.remove.assert_awaited_once_with(self.db, self.project_id, self.user_id)


class TestWriteLicensing:
    def setup_method(self):
        self.db = make_mock_db()
        self.org_id = uuid.uuid4()
        self.project_id = uuid.uuid4()
        self.user_id = uuid.uuid4()

    @pytest.mark.asyncio
    async def test_records_project_role(self):
        membership = make_mock_org_member()
        mapping = make_mapping("admin", tier="PRO")
        event_id = uuid.uuid4()
        with patch(f"{TARGETS}.org_member_ops") as mock_ops:
            mock_ops.get_by_org_and_user = AsyncMock(return_value=membership)
            mock_ops.set_project_role = AsyncMock()

            await write_licensing(
                self.db, self.org_id, self.project_id, self.user_id, mapping, event_id
            )

            mock_ops.get_by_org_and_user.assert_awaited_once_with(
                self.db, self.org_id, self.user_id, for_update=True
            )
            mock_ops.set_project_role.assert_awaited_once_with(
                self.db, membership, self.project_id, licensing_entry(mapping, event_id)
            )

    @pytest.mark.asyncio
    async def test_removal_clears_project_role(self):
        membership = make_mock_org_member()
        with patch(f"{TARGETS}.org_member_ops") as mock_ops:
            mock_ops.get_by_org_and_user = AsyncMock(return_value=membership)
            mock_ops.clear_project_role = AsyncMock(return_value=True)

            await write_licensing(self.db, self.org_id, self.project_id, self.user_id, None)

            mock_ops.clear_project_role.assert_awaited_once_with(
                self.db, membership, self.project_id
            )

    @pytest.mark.asyncio
    async def test_missing_member_is_permanent(self):
        with patch(f"{TARGETS}.org_member_ops") as mock_ops:
            mock_ops.get_by_org_and_user = AsyncMock(return_value=None)

            with pytest.raises(SyncPermanentError):
                await write_licensing(
                    self.db, self.org_id, self.project_id, self.user_id, make_mapping()
                )

    @pytest.mark.asyncio
    async def test_removal_for_departed_member_is_noop(self):
        with patch(f"{TARGETS}.org_member_ops") as mock_ops:
            mock_ops.get_by_org_and_user = AsyncMock(return_value=None)
            mock_ops.clear_project_role = AsyncMock()

            await write_licensing(self.db, self.org_id, self.project_id, self.user_id, None)

            mock_ops.clear_project_role.assert_not_awaited()


class TestLicensingEntry:
    def test_shape(self):
        mapping = make_mapping("member", project_role="EDITOR")
        event_id = uuid.uuid4()

        assert licensing_entry(mapping, event_id) == {
            "role": "EDITOR",
            "hierarchy": 60,
            "effective_hierarchy": 60,
            "tier": "ENTERPRISE",
            "sync_event_id": str(event_id),
        }

    def test_without_event(self):
        assert licensing_entry(make_mapping(), None)["sync_event_id"] is None


class TestWriteContext:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("context", "writer"),
        [(SourceContext.DASHBOARD, "write_dashboard"), (SourceContext.LICENSING, "write_licensing")],
    )
    async def test_dispatches_by_context(self, context, writer):
        db = make_mock_db()
        ids = (uuid.uuid4(), uuid.uuid4(), uuid.uuid4())
        with patch(f"{TARGETS}.{writer}", new_callable=AsyncMock) as mock_writer:
            await write_context(db, context, *ids, None)

            mock_writer.assert_awaited_once_with(db, *ids, None, None)
