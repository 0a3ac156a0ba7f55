"""Unit tests for organization loading and the PolicyGate dependency."""

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import HTTPException

from app.api.deps.organization import PolicyGate, get_organization
from app.core.access_policy import Action

from tests.helpers.mock_factories import (
    make_mock_db,
    make_mock_organization,
    make_mock_user,
    make_role_claims,
)


class TestGetOrganization:
    @pytest.mark.asyncio
    async def test_returns_organization(self):
        org = make_mock_organization()
        with patch("app.api.deps.organization.organization_ops") as mock_ops:
            mock_ops.get = AsyncMock(return_value=org)
            assert await get_organization(org.id, db=make_mock_db()) is org

    @pytest.mark.asyncio
    async def test_missing_organization_is_404(self):
        with patch("app.api.deps.organization.organization_ops") as mock_ops:
            mock_ops.get = AsyncMock(return_value=None)
            with pytest.raises(HTTPException) as exc_info:
                await get_organization(uuid.uuid4(), db=make_mock_db())
        assert exc_info.value.status_code == 404


class TestPolicyGate:
    def setup_method(self):
        self.org_id = uuid.uuid4()
        self.user = make_mock_user()

    def test_unknown_collection_fails_at_definition(self):
        with pytest.raises(ValueError, match="Unknown collection"):
            PolicyGate("invoices", Action.READ)

    @pytest.mark.asyncio
    async def test_allows_and_returns_claims(self):
        gate = PolicyGate("role_assignments", Action.WRITE)
        project_id = uuid.uuid4()
        claims = make_role_claims(self.org_id, 90, project_id=project_id)

        result = await gate(
            self.org_id, project_id=project_id, current_user=self.user, claims=claims
        )

        assert result is claims

    @pytest.mark.asyncio
    async def test_denies_claims_for_other_project(self):
        gate = PolicyGate("role_assignments", Action.WRITE)
        claims = make_role_claims(self.org_id, 100, project_id=uuid.uuid4())

        with pytest.raises(HTTPException) as exc_info:
            await gate(self.org_id, project_id=uuid.uuid4(), current_user=self.user, claims=claims)

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_denies_insufficient_claims(self):
        gate = PolicyGate("role_assignments", Action.WRITE)
        project_id = uuid.uuid4()
        claims = make_role_claims(self.org_id, 80, project_id=project_id)

        with pytest.raises(HTTPException) as exc_info:
            await gate(self.org_id, project_id=project_id, current_user=self.user, claims=claims)

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Not allowed to write role_assignments"

    @pytest.mark.asyncio
    async def test_denies_missing_claims(self):
        gate = PolicyGate("projects", Action.READ)

        with pytest.raises(HTTPException) as exc_info:
            await gate(self.org_id, current_user=self.user, claims=None)

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_denies_claims_for_other_organization(self):
        gate = PolicyGate("projects", Action.READ)
        claims = make_role_claims(uuid.uuid4(), 100)

        with pytest.raises(HTTPException):
            await gate(self.org_id, current_user=self.user, claims=claims)

    @pytest.mark.asyncio
    async def test_self_access_uses_path_user(self):
        gate = PolicyGate("role_assignments", Action.READ)
        claims = make_role_claims(self.org_id, 10)

        result = await gate(
            self.org_id, user_id=self.user.id, current_user=self.user, claims=claims
        )
        assert result is claims

        with pytest.raises(HTTPException):
            await gate(self.org_id, user_id=uuid.uuid4(), current_user=self.user, claims=claims)

    @pytest.mark.asyncio
    async def test_org_wide_write_needs_organization_level_authority(self):
        gate = PolicyGate("organizations", Action.WRITE)
        project_elevated = make_role_claims(self.org_id, 90, team_member_hierarchy=50)

        with pytest.raises(HTTPException) as exc_info:
            await gate(self.org_id, current_user=self.user, claims=project_elevated)
        assert exc_info.value.status_code == 403

        admin = make_role_claims(self.org_id, 90)
        assert await gate(self.org_id, current_user=self.user, claims=admin) is admin
