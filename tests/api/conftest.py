"""API test fixtures - auth variant clients.

Builds on root conftest fixtures (mock_db, test_user, test_org, owner_claims,
api_client). Variant clients swap the verified role claims only; everything
else (user, organization, DB session) stays overridden.
"""

from __future__ import annotations

import uuid

import pytest
from httpx import ASGITransport, AsyncClient

from tests.helpers.mock_factories import make_role_claims


@pytest.fixture
async def unauth_client(mock_db):
    """HTTP client with no auth overrides: requests carry no bearer token."""
    from app.core.database import get_db
    from app.main import app

    async def override_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def _claims_client_fixture(name: str, effective_hierarchy: int, same_org: bool = True):
    @pytest.fixture(name=name)
    async def _client(api_client, test_org, test_project):
        from app.api.deps.auth import get_role_claims
        from app.main import app

        org_id = test_org.id if same_org else uuid.uuid4()
        claims = make_role_claims(
            org_id, effective_hierarchy=effective_hierarchy, project_id=test_project.id
        )
        app.dependency_overrides[get_role_claims] = lambda: claims
        yield api_client

    return _client


# Viewer (10): reads only
viewer_client = _claims_client_fixture("viewer_client", 10)
# Editor (60): manages projects, not the team
editor_client = _claims_client_fixture("editor_client", 60)
# Admin (90): manages the team, below the owner
admin_client = _claims_client_fixture("admin_client", 90)
other_org_client = _claims_client_fixture("other_org_client", 100, same_org=False)


@pytest.fixture
def no_claims_client(api_client):
    """Authenticated, but the token carries no role claims."""
    from app.api.deps.auth import get_role_claims
    from app.main import app

    app.dependency_overrides[get_role_claims] = lambda: None
    return api_client
