"""Claims refresh endpoint."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from app.services.assignments.service import (
    AssignmentNotFoundError,
    AssignmentResult,
    MembershipNotFoundError,
)

from tests.helpers.auth_assertions import assert_requires_auth
from tests.helpers.mock_factories import make_mapping

URL = "/api/v1/claims/refresh"


@pytest.fixture
def body(test_org):
    return {"organization_id": str(test_org.id), "project_id": str(uuid.uuid4())}


@pytest.fixture
def mock_orgs(test_org):
    with patch("app.api.v1.claims.organization_ops") as ops:
        ops.get = AsyncMock(return_value=test_org)
        yield ops


@pytest.fixture
def mock_refresh():
    with patch("app.api.v1.claims.role_assignment_service") as service:
        service.refresh_claims = AsyncMock()
        yield service.refresh_claims


class TestRefreshClaims:
    @pytest.mark.asyncio
    async def test_requires_auth(self, unauth_client: AsyncClient, body):
        await assert_requires_auth(unauth_client, "post", URL, json=body)

    @pytest.mark.asyncio
    async def test_refreshes_own_claims(
        self, api_client: AsyncClient, body, test_org, test_user, mock_orgs, mock_refresh
    ):
        mapping = make_mapping("admin")
        claims = {"organizationId": str(test_org.id), "effectiveHierarchy": 90}
        mock_refresh.return_value = AssignmentResult(
            mapping=mapping, sync_event=None, claims=claims, claims_published=True
        )

        resp = await api_client.post(URL, json=body)

        assert resp.status_code == 200
        data = resp.json()
        assert data["mapping"]["project_role"] == "MANAGER"
        assert data["claims"] == claims
        assert data["claims_published"] is True
        args = mock_refresh.await_args.args
        assert args[1] is test_org
        assert args[2] == uuid.UUID(body["project_id"])
        assert args[3] == test_user.id

    @pytest.mark.asyncio
    async def test_missing_organization(self, api_client: AsyncClient, body, mock_orgs, mock_refresh):
        mock_orgs.get.return_value = None

        resp = await api_client.post(URL, json=body)

        assert resp.status_code == 404
        assert resp.json()["detail"] == "Organization not found"
        mock_refresh.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [AssignmentNotFoundError, MembershipNotFoundError])
    async def test_nothing_to_refresh(
        self, api_client: AsyncClient, body, mock_orgs, mock_refresh, error
    ):
        mock_refresh.side_effect = error(uuid.uuid4(), uuid.uuid4())

        resp = await api_client.post(URL, json=body)

        assert resp.status_code == 404
        assert resp.json()["detail"] == "Role assignment not found"

    @pytest.mark.asyncio
    async def test_works_without_existing_claims(
        self, no_claims_client: AsyncClient, body, mock_orgs, mock_refresh
    ):
        mock_refresh.return_value = AssignmentResult(
            mapping=make_mapping("member"), sync_event=None, claims=None, claims_published=False
        )

        resp = await no_claims_client.post(URL, json=body)

        assert resp.status_code == 200
        assert resp.json()["claims"] == {}
