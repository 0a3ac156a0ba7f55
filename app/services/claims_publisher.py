"""
Claims publisher - pushes role claims to the identity provider.

Claims are written to the Supabase user's app_metadata, which only the
service role can modify. Supabase merges app_metadata keys, so unrelated
metadata (provider, providers) is preserved. The new claims reach the client
on its next token refresh.
"""

import asyncio
import logging
import uuid as uuid_pkg
from typing import Any

from app.config.settings import settings
from app.services.supabase import get_supabase_admin_client

logger = logging.getLogger(__name__)


class ClaimsPublishError(Exception):
    """Raised when the identity provider rejects or times out a claims update."""

    pass


async def publish_claims(user_id: uuid_pkg.UUID, claims: dict[str, Any]) -> bool:
    """
    Write custom claims to the user's app_metadata.

    Returns:
        True if claims were written, False if publication is not configured.

    Raises:
        ClaimsPublishError: the admin API call failed or timed out.
    """
    if not settings.claims_publishing_enabled:
        logger.debug(f"Claims publishing disabled, skipping user {user_id}")
        return False

    try:
        supabase = get_supabase_admin_client()
        # supabase-py is synchronous; run it in a thread with an explicit deadline
        await asyncio.wait_for(
            asyncio.to_thread(
                supabase.auth.admin.update_user_by_id,
                str(user_id),
                {"app_metadata": claims},
            ),
            timeout=settings.identity_timeout_seconds,
        )
    except TimeoutError as e:
        raise ClaimsPublishError(
            f"Timed out after {settings.identity_timeout_seconds}s publishing claims"
        ) from e
    except Exception as e:
        raise ClaimsPublishError(f"Failed to publish claims: {e}") from e

    logger.info(
        f"Published claims for user {user_id}: "
        f"{claims.get('dashboardRole')} (effective {claims.get('effectiveHierarchy')})"
    )
    return True
