"""Unit tests for RoleAssignmentOperations and the RoleAssignment row helpers."""

import uuid

import pytest

from app.domain.role_assignment_operations import RoleAssignmentOperations
from app.models.role_assignment import RoleAssignment

from tests.helpers.mock_factories import make_mapping, make_mock_db, mock_scalar_result


class TestUpsert:
    def setup_method(self):
        self.ops = RoleAssignmentOperations()
        self.db = make_mock_db()
        self.org_id = uuid.uuid4()
        self.project_id = uuid.uuid4()
        self.user_id = uuid.uuid4()

    @pytest.mark.asyncio
    async def test_creates_row(self):
        self.db.execute.return_value = mock_scalar_result(None)
        mapping = make_mapping("admin", tier="BASIC")
        template = {"name": "Producer", "hierarchy_hint": None, "responsibilities": []}

        assignment, created = await self.ops.upsert(
            self.db,
            organization_id=self.org_id,
            project_id=self.project_id,
            user_id=self.user_id,
            mapping=mapping,
            template=template,
            source_context="licensing",
        )

        assert created is True
        assert assignment.organization_id == self.org_id
        assert assignment.template == template
        assert assignment.clamped_from == mapping.clamped_from
        assert assignment.to_mapping() == mapping

    @pytest.mark.asyncio
    async def test_updates_existing_row(self):
        existing = RoleAssignment(
            organization_id=self.org_id,
            project_id=self.project_id,
            user_id=self.user_id,
            organization_role="viewer",
            project_role="GUEST",
            effective_hierarchy=10,
            mapping_reason="default_table",
            tier="ENTERPRISE",
            source_context="licensing",
        )
        self.db.execute.return_value = mock_scalar_result(existing)
        mapping = make_mapping("member", project_role="EDITOR")

        assignment, created = await self.ops.upsert(
            self.db,
            organization_id=self.org_id,
            project_id=self.project_id,
            user_id=self.user_id,
            mapping=mapping,
            template=None,
            source_context="dashboard",
        )

        assert created is False
        assert assignment is existing
        assert assignment.project_role == "EDITOR"
        assert assignment.source_context == "dashboard"
        assert assignment.to_mapping() == mapping


class TestToMapping:
    def test_rejects_tampered_row(self):
        row = RoleAssignment(
            organization_id=uuid.uuid4(),
            project_id=uuid.uuid4(),
            user_id=uuid.uuid4(),
            organization_role="member",
            project_role="EDITOR",
            effective_hierarchy=99,
            mapping_reason="direct_match",
            tier="PRO",
            source_context="licensing",
        )
        with pytest.raises(ValueError):
            row.to_mapping()
