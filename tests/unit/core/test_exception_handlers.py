"""Unit tests for role engine exception handlers."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    register_exception_handlers,
)
from app.roles.exceptions import ClaimsTooLargeError, ConfigurationError, UnknownRoleError


def _app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/unknown-role")
    async def unknown_role():
        raise UnknownRoleError("WIZARD", kind="project role")

    @app.get("/bad-config")
    async def bad_config():
        raise ConfigurationError("Tier table has duplicate rank 2", key="PRO")

    @app.get("/too-large")
    async def too_large():
        raise ClaimsTooLargeError(size=1200, limit=1000)

    @app.get("/conflict")
    async def conflict():
        raise ConflictError("Event is not FAILED")

    return app


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=_app()), base_url="http://test") as ac:
        yield ac


class TestExceptionHandlers:
    @pytest.mark.asyncio
    async def test_unknown_role_is_bad_request(self, client):
        response = await client.get("/unknown-role")
        assert response.status_code == 400
        assert response.json() == {"detail": "Unknown project role: 'WIZARD'"}

    @pytest.mark.asyncio
    async def test_configuration_error_hides_details(self, client):
        response = await client.get("/bad-config")
        assert response.status_code == 500
        assert response.json() == {"detail": "Role configuration error"}

    @pytest.mark.asyncio
    async def test_claims_too_large(self, client):
        response = await client.get("/too-large")
        assert response.status_code == 422
        assert response.json()["size"] == 1200
        assert response.json()["limit"] == 1000

    @pytest.mark.asyncio
    async def test_conflict(self, client):
        response = await client.get("/conflict")
        assert response.status_code == 409


class TestHttpErrors:
    def test_not_found_message(self):
        assert NotFoundError("Project").detail == "Project not found"
        assert NotFoundError("Project").status_code == 404

    def test_forbidden_default_message(self):
        assert ForbiddenError().status_code == 403
