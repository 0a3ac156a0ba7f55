"""Unit tests for OrganizationOperations: slug lookup and tier changes."""

import uuid

import pytest

from app.domain.organization_operations import OrganizationOperations
from app.models.organization import Organization
from app.roles.exceptions import ConfigurationError

from tests.helpers.mock_factories import make_mock_db, mock_scalar_result


def _org(tier: str = "BASIC") -> Organization:
    return Organization(name="Studio", slug=f"studio-{uuid.uuid4().hex[:6]}", tier=tier)


class TestSetTier:
    def setup_method(self):
        self.ops = OrganizationOperations()
        self.db = make_mock_db()

    @pytest.mark.asyncio
    async def test_sets_canonical_tier(self):
        org = _org()
        await self.ops.set_tier(self.db, org, "ENTERPRISE")
        assert org.tier == "ENTERPRISE"
        self.db.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_normalizes_legacy_name(self):
        org = _org()
        await self.ops.set_tier(self.db, org, "professional")
        assert org.tier == "PRO"

    @pytest.mark.asyncio
    async def test_unknown_tier(self):
        org = _org()
        with pytest.raises(ConfigurationError):
            await self.ops.set_tier(self.db, org, "GOLD")
        assert org.tier == "BASIC"


class TestLookups:
    @pytest.mark.asyncio
    async def test_get_by_slug(self):
        db = make_mock_db()
        org = _org()
        db.execute.return_value = mock_scalar_result(org)
        assert await OrganizationOperations().get_by_slug(db, org.slug) is org

    @pytest.mark.asyncio
    async def test_get_for_update_locks(self):
        db = make_mock_db()
        db.execute.return_value = mock_scalar_result(None)

        assert await OrganizationOperations().get_for_update(db, uuid.uuid4()) is None
        assert db.execute.await_args.args[0]._for_update_arg is not None
