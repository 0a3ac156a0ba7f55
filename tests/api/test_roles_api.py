"""Role catalog, resolve preview and permission preview endpoints."""
# ruff: noqa: ARG002

from __future__ import annotations

import pytest
from httpx import AsyncClient

from tests.helpers.auth_assertions import assert_requires_auth


class TestRolesRequireAuth:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method,url,body",
        [
            ("get", "/api/v1/roles/catalog", None),
            ("post", "/api/v1/roles/resolve", {"organization_role": "member", "tier": "PRO"}),
            ("get", "/api/v1/roles/permissions?effective_hierarchy=50&tier=PRO", None),
        ],
    )
    async def test_unauth_returns_401(self, unauth_client: AsyncClient, method, url, body):
        kwargs = {"json": body} if body else {}
        await assert_requires_auth(unauth_client, method, url, **kwargs)


class TestCatalog:
    @pytest.mark.asyncio
    async def test_lists_roles_and_tiers(self, api_client: AsyncClient):
        resp = await api_client.get("/api/v1/roles/catalog")

        assert resp.status_code == 200
        data = resp.json()
        assert [r["role"] for r in data["organization_roles"]] == [
            "owner",
            "admin",
            "member",
            "viewer",
        ]
        assert data["project_roles"][0]["name"] == "ADMIN"
        assert [t["tier"] for t in data["tiers"]] == ["BASIC", "PRO", "ENTERPRISE"]
        assert data["tiers"][-1]["max_hierarchy"] == 100


class TestResolve:
    @pytest.mark.asyncio
    async def test_default_mapping(self, api_client: AsyncClient):
        resp = await api_client.post(
            "/api/v1/roles/resolve",
            json={"organization_role": "admin", "tier": "ENTERPRISE"},
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["project_role"] == "MANAGER"
        assert data["effective_hierarchy"] == 90
        assert data["mapping_reason"] == "default_table"
        assert "canManageTeam" in data["permissions"]

    @pytest.mark.asyncio
    async def test_template_is_clamped_by_tier(self, api_client: AsyncClient):
        resp = await api_client.post(
            "/api/v1/roles/resolve",
            json={"organization_role": "member", "tier": "BASIC", "template": {"name": "Director"}},
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["clamped_from"] == "DIRECTOR"
        assert data["project_role"] == "PRODUCTION_ASSISTANT"

    @pytest.mark.asyncio
    async def test_unknown_tier_is_400(self, api_client: AsyncClient):
        resp = await api_client.post(
            "/api/v1/roles/resolve", json={"organization_role": "member", "tier": "GOLD"}
        )
        assert resp.status_code == 400
        assert "Unknown tier" in resp.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_organization_role_is_400(self, api_client: AsyncClient):
        resp = await api_client.post(
            "/api/v1/roles/resolve", json={"organization_role": "emperor", "tier": "PRO"}
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_hint_out_of_range_is_422(self, api_client: AsyncClient):
        resp = await api_client.post(
            "/api/v1/roles/resolve",
            json={
                "organization_role": "member",
                "tier": "PRO",
                "template": {"name": "Grip", "hierarchy_hint": 150},
            },
        )
        assert resp.status_code == 422


class TestPermissionsPreview:
    @pytest.mark.asyncio
    async def test_preview(self, api_client: AsyncClient):
        resp = await api_client.get(
            "/api/v1/roles/permissions", params={"effective_hierarchy": 65, "tier": "pro"}
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["tier"] == "PRO"
        assert data["permissions"]["canManageProjects"] is True
        assert data["permissions"]["canViewFinancials"] is False
        assert data["permissions"]["hierarchyLevel"] == 65

    @pytest.mark.asyncio
    async def test_hierarchy_out_of_range(self, api_client: AsyncClient):
        resp = await api_client.get(
            "/api/v1/roles/permissions", params={"effective_hierarchy": 101, "tier": "PRO"}
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_tier(self, api_client: AsyncClient):
        resp = await api_client.get(
            "/api/v1/roles/permissions", params={"effective_hierarchy": 50, "tier": "FREE"}
        )
        assert resp.status_code == 400
