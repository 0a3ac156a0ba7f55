"""Unit tests for publishing role claims to the identity provider."""

import time
import uuid
from unittest.mock import MagicMock, patch

import pytest

from app.config.settings import settings
from app.services.claims_publisher import ClaimsPublishError, publish_claims

PUBLISHER = "app.services.claims_publisher"


@pytest.fixture
def publishing_enabled(monkeypatch):
    monkeypatch.setattr(settings, "supabase_url", "https://example.supabase.co")
    monkeypatch.setattr(settings, "supabase_service_role_key", "service-role-key")


class TestPublishClaims:
    def setup_method(self):
        self.user_id = uuid.uuid4()
        self.claims = {"dashboardRole": "EDITOR", "effectiveHierarchy": 60}

    @pytest.mark.asyncio
    async def test_disabled_without_configuration(self, monkeypatch):
        monkeypatch.setattr(settings, "supabase_service_role_key", "")
        with patch(f"{PUBLISHER}.get_supabase_admin_client") as mock_client:
            assert await publish_claims(self.user_id, self.claims) is False
            mock_client.assert_not_called()

    @pytest.mark.asyncio
    async def test_writes_app_metadata(self, publishing_enabled):
        client = MagicMock()
        with patch(f"{PUBLISHER}.get_supabase_admin_client", return_value=client):
            assert await publish_claims(self.user_id, self.claims) is True

        client.auth.admin.update_user_by_id.assert_called_once_with(
            str(self.user_id), {"app_metadata": self.claims}
        )

    @pytest.mark.asyncio
    async def test_provider_error_is_wrapped(self, publishing_enabled):
        client = MagicMock()
        client.auth.admin.update_user_by_id.side_effect = RuntimeError("user not found")
        with patch(f"{PUBLISHER}.get_supabase_admin_client", return_value=client):
            with pytest.raises(ClaimsPublishError, match="user not found"):
                await publish_claims(self.user_id, self.claims)

    @pytest.mark.asyncio
    async def test_timeout_is_wrapped(self, publishing_enabled, monkeypatch):
        monkeypatch.setattr(settings, "identity_timeout_seconds", 0.01)
        client = MagicMock()
        client.auth.admin.update_user_by_id.side_effect = lambda *_: time.sleep(0.2)
        with patch(f"{PUBLISHER}.get_supabase_admin_client", return_value=client):
            with pytest.raises(ClaimsPublishError, match="Timed out"):
                await publish_claims(self.user_id, self.claims)
