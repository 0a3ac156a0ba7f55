"""Root conftest - test infrastructure for all backend tests.

Provides:
- Mock database session and test user/organization fixtures
- API client with dependency overrides (auth, DB, role claims)
- Autouse guard against real identity provider calls
- Autouse reset of the role mapping cache and synchronizer stop flag
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from tests.helpers.mock_factories import (
    make_mock_db,
    make_mock_organization,
    make_mock_project,
    make_mock_user,
    make_role_claims,
)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "api: HTTP-level tests against the FastAPI app")


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def mock_db() -> MagicMock:
    """AsyncSession stand-in: execute/flush/commit/refresh are AsyncMocks."""
    return make_mock_db()


@pytest.fixture
def test_user() -> MagicMock:
    return make_mock_user()


@pytest.fixture
def test_org() -> MagicMock:
    """An ENTERPRISE organization, so tier clamping stays out of the way by default."""
    return make_mock_organization(tier="ENTERPRISE")


@pytest.fixture
def test_project(test_org) -> MagicMock:
    return make_mock_project(organization_id=test_org.id)


@pytest.fixture
def owner_claims(test_org, test_project):
    """Verified claims for an organization owner (hierarchy 100, every permission).

    Scoped to test_project, the project routes under test address.
    """
    return make_role_claims(
        test_org.id, effective_hierarchy=100, tier="ENTERPRISE", project_id=test_project.id
    )


# ─────────────────────────────────────────────────────────────────────────────
# API Client
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
async def api_client(mock_db, test_user, test_org, owner_claims):
    """HTTP client that bypasses JWT auth and uses the mock DB session.

    Overrides: get_current_user, get_db, get_db_with_rls, get_role_claims,
    get_organization. Tests that need different claims override
    get_role_claims again on app.dependency_overrides.
    """
    from app.api.deps.auth import get_current_user, get_db_with_rls, get_role_claims
    from app.api.deps.organization import get_organization
    from app.core.database import get_db
    from app.main import app

    app.dependency_overrides[get_current_user] = lambda: test_user
    app.dependency_overrides[get_role_claims] = lambda: owner_claims
    app.dependency_overrides[get_organization] = lambda: test_org

    async def override_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_db

    # For tests, skip setting RLS context and just yield the session
    async def override_db_rls():
        yield mock_db

    app.dependency_overrides[get_db_with_rls] = override_db_rls

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ─────────────────────────────────────────────────────────────────────────────
# Safety + isolation (autouse)
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def mock_identity_provider():
    """SAFETY: never reach the real Supabase admin API from tests."""
    with patch("app.services.claims_publisher.get_supabase_admin_client") as mock_client:
        supabase = MagicMock()
        supabase.auth.admin.update_user_by_id = MagicMock(return_value=None)
        mock_client.return_value = supabase
        yield supabase


@pytest.fixture(autouse=True)
def reset_role_state():
    """Clear the process-wide cache and synchronizer stop flag between tests."""
    from app.services.assignments.cache import role_mapping_cache
    from app.services.role_sync.synchronizer import role_synchronizer

    role_mapping_cache.clear()
    role_synchronizer.resume()
    yield
    role_mapping_cache.clear()
    role_synchronizer.resume()


@pytest.fixture
def publish_claims_mock():
    """Patch claims publication in the assignment service."""
    with patch(
        "app.services.assignments.service.publish_claims",
        new_callable=AsyncMock,
        return_value=True,
    ) as mock_publish:
        yield mock_publish
